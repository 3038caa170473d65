"""Project request API routes: creation, tracking and admin updates."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from request_desk.dependencies import get_principal, get_request_service, require_admin, require_user
from request_desk.models.request import RequestStatus, PaymentStatus
from request_desk.models.user import User
from request_desk.schemas.request import RequestSubmission, RequestUpdate, RequestOut
from request_desk.services.request_service import RequestService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=RequestOut, status_code=status.HTTP_201_CREATED)
def create_request(
    payload: RequestSubmission,
    principal: Optional[User] = Depends(get_principal),
    service: RequestService = Depends(get_request_service),
):
    """Submit a catalog or custom project request (signed in or as a guest)."""
    return service.create_request(payload, principal)


@router.get("/my", response_model=list[RequestOut])
def list_my_requests(
    principal: User = Depends(require_user),
    service: RequestService = Depends(get_request_service),
):
    """The caller's own requests, newest first."""
    return service.list_requests_for_requester(principal.user_id)


@router.get("/", response_model=list[RequestOut])
def list_requests(
    status_filter: Optional[RequestStatus] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    admin: User = Depends(require_admin),
    service: RequestService = Depends(get_request_service),
):
    """All requests (admin), newest first, optionally filtered."""
    return service.list_all_requests(status=status_filter, payment_status=payment_status)


@router.get("/{request_id}", response_model=RequestOut)
def get_request(
    request_id: str,
    principal: User = Depends(require_user),
    service: RequestService = Depends(get_request_service),
):
    return service.get_request(request_id, principal)


@router.put("/{request_id}", response_model=RequestOut)
def update_request(
    request_id: str,
    payload: RequestUpdate,
    admin: User = Depends(require_admin),
    service: RequestService = Depends(get_request_service),
):
    """Move a request through its lifecycle and record progress (admin only)."""
    return service.update_request(request_id, payload, admin)
