"""Payment gateway adapter (Razorpay-compatible REST API).

Two capabilities only: create an order, and verify the signature the
checkout widget hands back after a payment.  ``verify`` is the sole
authority for marking payment state; nothing the client reports is
trusted without it.
"""
import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from request_desk.errors import GatewayError, GatewayTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderHandle:
    id: str
    amount: int
    currency: str


class PaymentGateway(Protocol):
    key_id: str

    def create_order(self, amount: int, currency: str, metadata: dict[str, Any]) -> OrderHandle:
        ...

    def verify(self, order_id: str, payment_id: str, signature: str) -> bool:
        ...


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Hex HMAC-SHA256 of ``"{order_id}|{payment_id}"`` under the key secret."""
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class RazorpayGateway:
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=timeout,
            auth=(key_id, key_secret),
        )

    def close(self) -> None:
        self._client.close()

    def create_order(self, amount: int, currency: str, metadata: dict[str, Any]) -> OrderHandle:
        """Create an order for ``amount`` minor units."""
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": str(metadata.get("receipt", ""))[:40],
            "notes": {k: str(v) for k, v in metadata.items()},
        }
        try:
            response = self._client.post("/orders", json=payload)
        except httpx.TimeoutException:
            logger.error("Payment gateway timed out creating order for %s", metadata.get("request_id"))
            raise GatewayTimeout("Payment gateway did not respond")
        except httpx.HTTPError as exc:
            logger.error("Payment gateway unreachable: %s", exc)
            raise GatewayError("Payment gateway unreachable")

        if response.status_code >= 400:
            logger.error("Payment gateway rejected order (%d): %s", response.status_code, response.text)
            raise GatewayError(f"Payment gateway rejected the order ({response.status_code})")

        data = response.json()
        return OrderHandle(id=data["id"], amount=int(data["amount"]), currency=data["currency"])

    def verify(self, order_id: str, payment_id: str, signature: str) -> bool:
        expected = compute_signature(self.key_secret, order_id, payment_id)
        return hmac.compare_digest(expected, signature)
