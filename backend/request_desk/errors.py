"""Error taxonomy for the request lifecycle.

Each error is an ``HTTPException`` so services can raise it directly and
FastAPI renders it with the right status code.  ``DeliveryError`` is the
exception: it belongs to the mail transport and never reaches a client.
"""
from fastapi import HTTPException, status


class RequestDeskError(HTTPException):
    """Base class for domain errors surfaced to callers."""

    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str | dict):
        super().__init__(status_code=self.http_status, detail=detail)


class ValidationError(RequestDeskError):
    """Malformed or missing input (e.g. both or neither requester variants)."""

    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY


class Unauthorized(RequestDeskError):
    http_status = status.HTTP_401_UNAUTHORIZED


class Forbidden(RequestDeskError):
    http_status = status.HTTP_403_FORBIDDEN


class NotFound(RequestDeskError):
    http_status = status.HTTP_404_NOT_FOUND


class InvalidTransition(RequestDeskError):
    """Status change outside the allowed transition table."""

    http_status = status.HTTP_409_CONFLICT


class ConcurrentUpdate(RequestDeskError):
    """Stale version token: another writer got there first."""

    http_status = status.HTTP_409_CONFLICT


class PaymentVerificationFailed(RequestDeskError):
    http_status = status.HTTP_400_BAD_REQUEST


class StorageError(RequestDeskError):
    """Persistence backend failure. Nothing from the call was committed."""

    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR


class DuplicateEntry(StorageError):
    """Unique constraint violation on insert."""

    http_status = status.HTTP_409_CONFLICT


class GatewayError(RequestDeskError):
    """Upstream payment gateway returned an error or could not be reached."""

    http_status = status.HTTP_502_BAD_GATEWAY


class GatewayTimeout(GatewayError):
    http_status = status.HTTP_504_GATEWAY_TIMEOUT


class DeliveryError(Exception):
    """Mail transport failure. Always caught by the notification layer."""
