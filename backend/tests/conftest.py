"""Pytest fixtures: SQLite database per test, recording mail and a mocked gateway."""
import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import httpx
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from request_desk.database import Base, get_db
from request_desk.dependencies import get_mail_gateway, get_notification_config, get_payment_gateway
from request_desk.errors import DeliveryError
from request_desk.main import app
from request_desk.models.project import Project
from request_desk.services.notifications import NotificationConfig, RequestNotifier
from request_desk.services.payment_gateway import RazorpayGateway, compute_signature
from request_desk.services.request_engine import RequestLifecycleEngine
from request_desk.services.request_store import RequestStore

# Import all models so they register with Base.metadata
import request_desk.models  # noqa: F401

SQLITE_URL = "sqlite:///./test.db"
GATEWAY_KEY_ID = "rzp_test_key"
GATEWAY_SECRET = "rzp_test_secret"
ADMIN_ADDRESS = "admin@example.com"


class RecordingMailGateway:
    """Mail gateway double that keeps every message it is asked to send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    def send(self, recipient: str, subject: str, body: str) -> None:
        if self.fail:
            raise DeliveryError(f"relay refused mail to {recipient}")
        self.sent.append({"recipient": recipient, "subject": subject, "body": body})

    def to(self, recipient: str) -> list[dict]:
        return [m for m in self.sent if m["recipient"] == recipient]


class GatewayBackend:
    """Stand-in for the gateway's REST API, served through ``httpx.MockTransport``."""

    def __init__(self):
        self.orders: list[dict] = []
        self.timeout = False
        self.fail_status: int | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.timeout:
            raise httpx.ReadTimeout("gateway too slow", request=request)
        if self.fail_status:
            return httpx.Response(self.fail_status, json={"error": {"description": "rejected"}})
        body = json.loads(request.content)
        order = {
            "id": f"order_{len(self.orders) + 1:04d}",
            "amount": body["amount"],
            "currency": body["currency"],
            "receipt": body.get("receipt"),
            "notes": body.get("notes", {}),
            "status": "created",
        }
        self.orders.append(order)
        return httpx.Response(200, json=order)


def sign(order_id: str, payment_id: str) -> str:
    """Signature the checkout widget would return for a genuine payment."""
    return compute_signature(GATEWAY_SECRET, order_id, payment_id)


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def mail():
    return RecordingMailGateway()


@pytest.fixture(scope="function")
def gateway_backend():
    return GatewayBackend()


@pytest.fixture(scope="function")
def payment_gateway(gateway_backend):
    client = httpx.Client(
        base_url="https://gateway.test/v1",
        transport=httpx.MockTransport(gateway_backend.handler),
        auth=(GATEWAY_KEY_ID, GATEWAY_SECRET),
    )
    gateway = RazorpayGateway(GATEWAY_KEY_ID, GATEWAY_SECRET, client=client)
    yield gateway
    gateway.close()


@pytest.fixture(scope="function")
def engine(db, mail):
    """Lifecycle engine over the test session; notifications are delivered inline."""
    notifier = RequestNotifier(mail, NotificationConfig(admin_address=ADMIN_ADDRESS, sender="desk@example.com"))
    return RequestLifecycleEngine(RequestStore(db), notifier, currency="INR")


@pytest.fixture(scope="function")
def client(session_factory, mail, payment_gateway):
    """FastAPI TestClient with database, mail and payment gateway overridden."""
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    config = NotificationConfig(admin_address=ADMIN_ADDRESS, sender="desk@example.com")
    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_mail_gateway] = lambda: mail
    app.dependency_overrides[get_notification_config] = lambda: config
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def create_test_user(client: TestClient, username: str = "client", role: str = "client") -> dict:
    """Helper: POST /api/users and return response JSON."""
    resp = client.post("/api/users/", json={
        "username": username,
        "email": f"{username}@example.com",
        "role": role,
    })
    assert resp.status_code == 201, resp.text
    return resp.json()


def as_user(user: dict) -> dict:
    """Headers identifying the acting principal."""
    return {"X-User-Id": user["user_id"]}


def create_catalog_project(db, name: str = "Inventory Manager", price: int = 1000, is_active: bool = True) -> Project:
    project = Project(
        name=name,
        description=f"{name}: ready-made project",
        technologies=["Python", "React"],
        category="web",
        price=price,
        is_active=is_active,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def guest_submission(email: str = "guest@example.com", **overrides) -> dict:
    payload = {
        "project": {"kind": "custom", "name": "Clinic Booking", "description": "Appointments for a small clinic",
                    "technologies": ["FastAPI"]},
        "payment_option": "advance",
        "guest": {"name": "Guest Person", "email": email, "phone": "+91 90000 00000"},
        "estimated_price": 1000,
    }
    payload.update(overrides)
    return payload
