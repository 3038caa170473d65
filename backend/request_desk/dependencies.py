"""FastAPI dependencies: principal resolution and service wiring.

Gateways are built once from settings; tests swap them through
``app.dependency_overrides``.
"""
from functools import lru_cache
from typing import Optional

from fastapi import BackgroundTasks, Depends, Header
from sqlalchemy.orm import Session

from request_desk.config import settings
from request_desk.database import get_db
from request_desk.errors import Forbidden, Unauthorized
from request_desk.models.user import User, UserRole
from request_desk.services.notifications import MailGateway, NotificationConfig, RequestNotifier, SmtpMailGateway
from request_desk.services.payment_gateway import PaymentGateway, RazorpayGateway
from request_desk.services.request_engine import RequestLifecycleEngine
from request_desk.services.request_service import RequestService
from request_desk.services.request_store import RequestStore


def get_principal(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Resolve the acting principal from ``X-User-Id``; ``None`` for guests."""
    if not x_user_id:
        return None
    user = db.get(User, x_user_id)
    if user is None:
        raise Unauthorized("Unknown principal")
    return user


def require_user(principal: Optional[User] = Depends(get_principal)) -> User:
    if principal is None:
        raise Unauthorized("Authentication required")
    return principal


def require_admin(principal: User = Depends(require_user)) -> User:
    if principal.role != UserRole.admin:
        raise Forbidden("Admin access required")
    return principal


def get_notification_config() -> NotificationConfig:
    return NotificationConfig(admin_address=settings.ADMIN_NOTIFICATION_EMAIL, sender=settings.MAIL_SENDER)


@lru_cache
def get_mail_gateway() -> MailGateway:
    config = get_notification_config()
    return SmtpMailGateway(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        sender=config.sender,
        username=settings.SMTP_USERNAME,
        password=settings.SMTP_PASSWORD,
        use_tls=settings.SMTP_USE_TLS,
        timeout=settings.SMTP_TIMEOUT_SECONDS,
    )


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    return RazorpayGateway(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        base_url=settings.RAZORPAY_API_URL,
        timeout=settings.PAYMENT_TIMEOUT_SECONDS,
    )


def get_engine(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    mail: MailGateway = Depends(get_mail_gateway),
    config: NotificationConfig = Depends(get_notification_config),
) -> RequestLifecycleEngine:
    notifier = RequestNotifier(mail, config, dispatch=background_tasks.add_task)
    return RequestLifecycleEngine(RequestStore(db), notifier, currency=settings.PAYMENT_CURRENCY)


def get_request_service(
    engine: RequestLifecycleEngine = Depends(get_engine),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> RequestService:
    return RequestService(engine, gateway, currency=settings.PAYMENT_CURRENCY)
