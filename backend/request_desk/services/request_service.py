"""Request service: the operations exposed to callers.

Translates caller inputs (acting principal, guest form, gateway callback)
into lifecycle-engine calls, and owns the payment-initiation and
confirmation paths that sit between the engine and the gateway.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from request_desk.errors import (
    Forbidden, GatewayError, InvalidTransition, PaymentVerificationFailed, ValidationError,
)
from request_desk.models.payment import PaymentOrder, OrderPurpose
from request_desk.models.request import ProjectRequest, ClientType, PaymentOption, PaymentStatus, RequestStatus
from request_desk.models.user import User, UserRole
from request_desk.schemas.request import RequestCreate, RequestSubmission, RequestUpdate, RegisteredRequester
from request_desk.services import lifecycle
from request_desk.services.payment_gateway import OrderHandle, PaymentGateway
from request_desk.services.request_engine import RequestLifecycleEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitiatedPayment:
    order: OrderHandle
    purpose: OrderPurpose


class RequestService:
    def __init__(self, engine: RequestLifecycleEngine, gateway: PaymentGateway, currency: str = "INR"):
        self.engine = engine
        self.store = engine.store
        self.gateway = gateway
        self.currency = currency

    # -- requests ---------------------------------------------------------
    def create_request(self, submission: RequestSubmission, principal: Optional[User]) -> ProjectRequest:
        """Authenticated callers are registered requesters; anyone else is a guest."""
        if principal is not None and submission.guest is not None:
            raise ValidationError("Signed-in requests cannot carry guest contact details")
        if principal is None and submission.guest is None:
            raise ValidationError("Guest contact details are required when not signed in")

        requester = RegisteredRequester(user_id=principal.user_id) if principal is not None else submission.guest
        data = RequestCreate(
            requester=requester,
            project=submission.project,
            payment_option=submission.payment_option,
            estimated_price=submission.estimated_price,
        )
        return self.engine.create(data)

    def list_requests_for_requester(self, requester_id: str) -> list[ProjectRequest]:
        return self.store.list_for_requester(requester_id)

    def list_all_requests(
        self,
        status: Optional[RequestStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
    ) -> list[ProjectRequest]:
        return self.store.list_all(status=status, payment_status=payment_status)

    def get_request(self, request_id: str, principal: User) -> ProjectRequest:
        request = self.store.get(request_id)
        if principal.role != UserRole.admin and request.user_id != principal.user_id:
            raise Forbidden("Not allowed to view this request")
        return request

    def update_request(self, request_id: str, fields: RequestUpdate, acting_admin: User) -> ProjectRequest:
        return self.engine.apply_update(request_id, fields, acting_admin.user_id)

    # -- payments ---------------------------------------------------------
    def initiate_payment(
        self,
        request_id: str,
        option: Optional[PaymentOption],
        principal: Optional[User],
    ) -> InitiatedPayment:
        """Create a gateway order for whatever is due now.

        Registered requests may only be paid by their owner (or an admin);
        guest requests by whoever holds the request id.  Nothing is
        persisted if the gateway call fails.
        """
        request = self.store.get(request_id)
        if request.client_type == ClientType.registered:
            if principal is None:
                raise Forbidden("Sign in to pay for this request")
            if principal.role != UserRole.admin and principal.user_id != request.user_id:
                raise Forbidden("Not allowed to pay for this request")

        if request.status not in lifecycle.PAYABLE_STATUSES:
            raise InvalidTransition(f"Request is '{request.status.value}'; payment opens once it is approved")
        if request.payment_status == PaymentStatus.completed:
            raise ValidationError("Request is already fully paid")

        price = lifecycle.effective_price(request.actual_price, request.estimated_price)
        if price <= 0:
            raise ValidationError("Request has no price set yet")

        option = option or request.payment_option
        if option == PaymentOption.advance and request.payment_option != PaymentOption.advance:
            raise ValidationError("Advance payment is not available for this request")

        if request.payment_status == PaymentStatus.partial:
            purpose = OrderPurpose.balance
        else:
            purpose = OrderPurpose(option.value)
        amount = lifecycle.next_charge(price, option, request.payment_status, request.amount_paid)
        if amount <= 0:
            raise ValidationError("Nothing left to pay")

        handle = self.gateway.create_order(
            amount,
            self.currency,
            {"request_id": request.request_id, "purpose": purpose.value, "receipt": f"req_{request.request_id[:8]}"},
        )
        if handle.amount != amount:
            raise GatewayError("Payment gateway returned an order for a different amount")

        self.store.add_order(
            PaymentOrder(
                order_id=handle.id,
                request_id=request.request_id,
                amount=handle.amount,
                currency=handle.currency,
                purpose=purpose,
            )
        )
        self.store.commit()
        logger.info("Order %s created for request %s: %d %s (%s)", handle.id, request_id, amount, handle.currency, purpose.value)
        return InitiatedPayment(order=handle, purpose=purpose)

    def confirm_payment(self, order_id: str, payment_id: str, signature: str) -> ProjectRequest:
        """Verify the gateway signature, then record the capture once."""
        order = self.store.get_order(order_id)
        if not self.gateway.verify(order_id, payment_id, signature):
            logger.warning("Signature mismatch for order %s / payment %s", order_id, payment_id)
            raise PaymentVerificationFailed("Payment verification failed")

        option = PaymentOption.full if order.purpose == OrderPurpose.full else PaymentOption.advance
        return self.engine.record_payment_captured(
            order.request_id,
            order.amount,
            option,
            payment_ref=payment_id,
            order=order,
        )
