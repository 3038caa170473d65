"""Request store: persistence boundary for requests, orders and captures.

Wraps a SQLAlchemy session so the engine sees domain errors only:
backend failures become ``StorageError``, stale version tokens become
``ConcurrentUpdate`` and unique-key collisions become ``DuplicateEntry``.
A failed commit is always rolled back, so no partial state survives.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from request_desk.errors import NotFound, StorageError, ConcurrentUpdate, DuplicateEntry
from request_desk.models.request import ProjectRequest, RequestStatus, PaymentStatus
from request_desk.models.payment import PaymentOrder, PaymentCapture
from request_desk.models.project import Project
from request_desk.models.user import User

logger = logging.getLogger(__name__)


class RequestStore:
    def __init__(self, db: Session):
        self.db = db

    # -- requests ---------------------------------------------------------
    def add(self, request: ProjectRequest) -> ProjectRequest:
        self.db.add(request)
        return request

    def get(self, request_id: str) -> ProjectRequest:
        request = self._query(lambda: self.db.get(ProjectRequest, request_id))
        if request is None:
            raise NotFound("Request not found")
        return request

    def get_for_update(self, request_id: str) -> ProjectRequest:
        """Load a request holding a row lock (where the backend supports it)."""
        request = self._query(
            lambda: self.db.query(ProjectRequest)
            .filter(ProjectRequest.request_id == request_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if request is None:
            raise NotFound("Request not found")
        return request

    def list_for_requester(self, user_id: str) -> list[ProjectRequest]:
        return self._query(
            lambda: self.db.query(ProjectRequest)
            .filter(ProjectRequest.user_id == user_id)
            .order_by(ProjectRequest.created_at.desc())
            .all()
        )

    def list_all(
        self,
        status: Optional[RequestStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> list[ProjectRequest]:
        def _run():
            query = self.db.query(ProjectRequest)
            if status:
                query = query.filter(ProjectRequest.status == status)
            if payment_status:
                query = query.filter(ProjectRequest.payment_status == payment_status)
            return query.order_by(ProjectRequest.created_at.desc()).all()

        return self._query(_run)

    # -- read-only lookups (identity and catalog) --------------------------
    def get_user(self, user_id: str) -> Optional[User]:
        return self._query(lambda: self.db.get(User, user_id))

    def get_project(self, project_id: str) -> Optional[Project]:
        return self._query(lambda: self.db.get(Project, project_id))

    # -- payments ---------------------------------------------------------
    def add_order(self, order: PaymentOrder) -> PaymentOrder:
        self.db.add(order)
        return order

    def get_order(self, order_id: str) -> PaymentOrder:
        order = self._query(lambda: self.db.get(PaymentOrder, order_id))
        if order is None:
            raise NotFound("Payment order not found")
        return order

    def find_capture(self, payment_id: str) -> Optional[PaymentCapture]:
        return self._query(
            lambda: self.db.query(PaymentCapture).filter(PaymentCapture.payment_id == payment_id).first()
        )

    def add_capture(self, capture: PaymentCapture) -> PaymentCapture:
        self.db.add(capture)
        return capture

    # -- unit of work -----------------------------------------------------
    def commit(self) -> None:
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise ConcurrentUpdate("Request was modified concurrently. Re-fetch and retry.")
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateEntry(f"Conflicting record: {exc.orig}")
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Commit failed")
            raise StorageError("Storage backend failure")

    def refresh(self, instance) -> None:
        self._query(lambda: self.db.refresh(instance))

    def rollback(self) -> None:
        self.db.rollback()

    def _query(self, run):
        try:
            return run()
        except SQLAlchemyError:
            logger.exception("Query failed")
            raise StorageError("Storage backend failure")
