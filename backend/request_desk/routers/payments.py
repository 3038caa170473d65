"""Payment API routes: order creation and gateway confirmation."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, status

from request_desk.dependencies import get_principal, get_request_service
from request_desk.models.user import User
from request_desk.schemas.payment import PaymentInitiate, OrderOut, PaymentConfirm
from request_desk.schemas.request import RequestOut
from request_desk.services.request_service import RequestService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/create-order", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: PaymentInitiate,
    principal: Optional[User] = Depends(get_principal),
    service: RequestService = Depends(get_request_service),
):
    """Open a gateway order for the amount currently due on a request."""
    initiated = service.initiate_payment(payload.request_id, payload.option, principal)
    return OrderOut(
        id=initiated.order.id,
        amount=initiated.order.amount,
        currency=initiated.order.currency,
        purpose=initiated.purpose.value,
        key_id=getattr(service.gateway, "key_id", ""),
    )


@router.post("/verify", response_model=RequestOut)
def verify_payment(payload: PaymentConfirm, service: RequestService = Depends(get_request_service)):
    """Confirm a checkout result. Replays of the same payment are no-ops."""
    return service.confirm_payment(payload.order_id, payload.payment_id, payload.signature)
