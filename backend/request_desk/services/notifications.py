"""Notification gateway and best-effort request notifications.

Messages are rendered synchronously from the request while its session is
still live, then handed to a dispatcher (FastAPI ``BackgroundTasks.add_task``
in the HTTP layer) so delivery happens after the response is committed.
Delivery failures are logged and never propagate.
"""
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Callable, Optional, Protocol

from request_desk.errors import DeliveryError

logger = logging.getLogger(__name__)

Dispatch = Callable[..., Any]


def dispatch_now(func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    """Dispatcher that runs the task inline, for use outside a request scope."""
    func(*args, **kwargs)


class MailGateway(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> None:
        ...


class SmtpMailGateway:
    """Send plain-text mail through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, recipient: str, subject: str, body: str) -> None:
        if not self.host:
            logger.info("SMTP not configured; skipping mail '%s' to %s", subject, recipient)
            return

        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.set_content(body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"Could not deliver mail to {recipient}: {exc}") from exc


@dataclass(frozen=True)
class NotificationConfig:
    admin_address: str
    sender: str


@dataclass(frozen=True)
class Notification:
    recipient: str
    subject: str
    body: str
    admin: bool = False


class RequestNotifier:
    """Render lifecycle notifications and dispatch them fire-and-forget."""

    def __init__(self, gateway: MailGateway, config: NotificationConfig, dispatch: Dispatch = dispatch_now):
        self.gateway = gateway
        self.config = config
        self.dispatch = dispatch

    def deliver(self, notification: Notification) -> None:
        try:
            self.gateway.send(notification.recipient, notification.subject, notification.body)
        except DeliveryError as exc:
            logger.warning(
                "Notification '%s' to %s failed: %s", notification.subject, notification.recipient, exc
            )

    def _enqueue(self, notifications: list[Notification]) -> None:
        for n in notifications:
            self.dispatch(self.deliver, n)

    def _requester(self, request, subject: str, body: str) -> Optional[Notification]:
        recipient = request.requester_email
        if not recipient:
            logger.warning("Request %s has no requester address; skipping '%s'", request.request_id, subject)
            return None
        return Notification(recipient=recipient, subject=subject, body=body)

    def _admin(self, request, subject: str, body: str) -> Notification:
        return Notification(
            recipient=self.config.admin_address,
            subject=f"ADMIN: {subject}",
            body=f"Request ID: {request.request_id}\n{body}",
            admin=True,
        )

    # -- lifecycle events -------------------------------------------------
    def request_received(self, request) -> None:
        n = self._requester(
            request,
            "New Project Request",
            f"Your request for '{request.display_name}' is received and pending review.",
        )
        self._enqueue([n] if n else [])

    def status_changed(self, request) -> None:
        status = request.status.value
        subject = f"Request {status.upper()}"
        body = f"Your request is now {status}. {request.admin_notes or ''}".strip()
        queued = [self._requester(request, subject, body), self._admin(request, subject, body)]
        self._enqueue([n for n in queued if n])

    def payment_received(self, request, amount: int, currency: str) -> None:
        subject = "Payment Received"
        body = (
            f"We received your payment of {amount / 100:.2f} {currency} for "
            f"'{request.display_name}'. Payment status: {request.payment_status.value}."
        )
        queued = [self._requester(request, subject, body), self._admin(request, subject, body)]
        self._enqueue([n for n in queued if n])
