"""Request lifecycle engine: enforces the request invariants.

Responsibilities:
- Creation with exactly one requester variant and one project variant
- Status transitions restricted to the allowed table; terminal states stay terminal
- First-entry timestamps (``approved_at`` / ``completed_at``), never reset
- One status-history entry per admin update, in call order
- Payment status derived from captures, at most once per gateway payment id
- Fire-and-forget notifications, only after persistence succeeded

Every mutating call is load → validate → mutate → commit.  Validation
happens before the first attribute is touched, so a rejected call changes
nothing.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from request_desk.database import utcnow
from request_desk.errors import ConcurrentUpdate, DuplicateEntry, RequestDeskError, ValidationError
from request_desk.models.payment import PaymentCapture, PaymentOrder, OrderStatus
from request_desk.models.request import (
    ProjectRequest, ClientType, ProjectKind, RequestStatus, PaymentOption, PaymentStatus,
)
from request_desk.models.status_history import StatusHistoryEntry
from request_desk.schemas.request import RequestCreate, RequestUpdate, RegisteredRequester, CatalogProjectChoice
from request_desk.services import lifecycle
from request_desk.services.notifications import RequestNotifier
from request_desk.services.request_store import RequestStore

logger = logging.getLogger(__name__)


class RequestLifecycleEngine:
    def __init__(
        self,
        store: RequestStore,
        notifier: RequestNotifier,
        currency: str = "INR",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.notifier = notifier
        self.currency = currency
        self.clock = clock

    # ------------------------------------------------------------------
    def create(self, data: RequestCreate) -> ProjectRequest:
        """Persist a new pending request and acknowledge it to the requester."""
        now = self.clock()
        request = ProjectRequest(
            status=RequestStatus.pending,
            payment_status=PaymentStatus.pending,
            payment_option=data.payment_option,
            estimated_price=data.estimated_price,
            created_at=now,
            updated_at=now,
        )

        if isinstance(data.requester, RegisteredRequester):
            if self.store.get_user(data.requester.user_id) is None:
                raise ValidationError("Registered requester does not exist")
            request.client_type = ClientType.registered
            request.user_id = data.requester.user_id
        else:
            request.client_type = ClientType.guest
            request.guest_name = data.requester.name
            request.guest_email = str(data.requester.email)
            request.guest_phone = data.requester.phone

        if isinstance(data.project, CatalogProjectChoice):
            project = self.store.get_project(data.project.project_id)
            if project is None or not project.is_active:
                raise ValidationError("Unknown or inactive catalog project")
            request.project_kind = ProjectKind.catalog
            request.project_id = project.project_id
            if request.estimated_price is None:
                request.estimated_price = project.price
        else:
            request.project_kind = ProjectKind.custom
            request.custom_name = data.project.name
            request.custom_description = data.project.description
            request.custom_technologies = list(data.project.technologies)

        self.store.add(request)
        self.store.commit()
        self.store.refresh(request)
        logger.info(
            "Created %s request %s (%s project, %s payment)",
            request.client_type.value, request.request_id, request.project_kind.value, request.payment_option.value,
        )
        self.notifier.request_received(request)
        return request

    # ------------------------------------------------------------------
    def apply_update(self, request_id: str, fields: RequestUpdate, acting_admin_id: str) -> ProjectRequest:
        """Apply an admin update and append exactly one history entry."""
        changes = fields.model_dump(exclude_unset=True, exclude={"version"})
        # A null status / payment_status means "leave as is", not "clear".
        for key in ("status", "payment_status"):
            if key in changes and changes[key] is None:
                del changes[key]

        request = self.store.get_for_update(request_id)

        target = changes.get("status", request.status)
        target_payment = changes.get("payment_status", request.payment_status)
        if "payment_status" not in changes and changes.keys() & {"actual_price", "estimated_price"}:
            settled = lifecycle.settled_payment_status(
                request.payment_status,
                request.payment_option,
                lifecycle.effective_price(
                    changes.get("actual_price", request.actual_price),
                    changes.get("estimated_price", request.estimated_price),
                ),
                request.amount_paid,
            )
            if settled == PaymentStatus.completed and target not in lifecycle.PAYABLE_STATUSES:
                settled = request.payment_status
            target_payment = changes["payment_status"] = settled
        try:
            if fields.version is not None and fields.version != request.version:
                raise ConcurrentUpdate(
                    f"Version mismatch: expected {request.version}, got {fields.version}. Re-fetch and retry."
                )
            lifecycle.check_transition(request.status, target)
            lifecycle.check_payment_option(request.payment_option, target_payment)
            lifecycle.check_payment_coupling(target, target_payment)
        except RequestDeskError:
            self.store.rollback()  # release the row lock
            raise

        previous = request.status
        now = self.clock()
        for field, value in changes.items():
            setattr(request, field, value)
        lifecycle.stamp_transition(request, target, now)
        request.updated_at = now
        request.history.append(
            StatusHistoryEntry(
                status=target,
                notes=request.admin_notes,
                updated_by=acting_admin_id,
                updated_at=now,
            )
        )

        self.store.commit()
        self.store.refresh(request)
        logger.info(
            "Request %s updated by %s: %s -> %s (version %d)",
            request_id, acting_admin_id, previous.value, request.status.value, request.version,
        )
        self.notifier.status_changed(request)
        return request

    # ------------------------------------------------------------------
    def record_payment_captured(
        self,
        request_id: str,
        amount: int,
        option: PaymentOption,
        payment_ref: str,
        order: Optional[PaymentOrder] = None,
    ) -> ProjectRequest:
        """Record a captured payment at most once per ``payment_ref``.

        Replays return the request untouched and send nothing.  Only
        ``payment_status`` moves; ``status`` is never changed here.  A
        verified capture is always kept, even when the request's status no
        longer allows the payment to complete.
        """
        existing = self.store.find_capture(payment_ref)
        if existing is not None:
            if existing.request_id != request_id:
                logger.warning(
                    "Payment %s already recorded for request %s, ignoring replay for %s",
                    payment_ref, existing.request_id, request_id,
                )
            else:
                logger.info("Payment %s already recorded for request %s", payment_ref, request_id)
            return self.store.get(existing.request_id)

        if amount <= 0:
            raise ValidationError("Captured amount must be positive")

        request = self.store.get_for_update(request_id)
        price = lifecycle.effective_price(request.actual_price, request.estimated_price)
        new_status = lifecycle.derive_payment_status(
            request.payment_status, option, price, request.amount_paid + amount
        )
        if new_status == PaymentStatus.partial and request.payment_option != PaymentOption.advance:
            new_status = request.payment_status
        if new_status == PaymentStatus.completed and request.status not in lifecycle.PAYABLE_STATUSES:
            # The money is in; keep the ledger and leave the status for an admin.
            logger.warning(
                "Payment %s captured for %s request %s; payment status left at %s for admin review",
                payment_ref, request.status.value, request_id, request.payment_status.value,
            )
            new_status = request.payment_status

        now = self.clock()
        self.store.add_capture(
            PaymentCapture(
                payment_id=payment_ref,
                order_id=order.order_id if order is not None else None,
                request_id=request_id,
                amount=amount,
                captured_at=now,
            )
        )
        if order is not None:
            order.status = OrderStatus.paid
        request.payment_status = new_status
        request.updated_at = now

        try:
            self.store.commit()
        except DuplicateEntry:
            if self.store.find_capture(payment_ref) is None:
                raise
            logger.info("Payment %s recorded concurrently for request %s", payment_ref, request_id)
            return self.store.get(request_id)

        self.store.refresh(request)
        logger.info(
            "Captured %d for request %s via %s: payment status %s",
            amount, request_id, payment_ref, request.payment_status.value,
        )
        self.notifier.payment_received(request, amount, order.currency if order is not None else self.currency)
        return request
