"""Payment order and capture ORM models.

``PaymentOrder`` remembers what was asked of the gateway so a later
confirmation can be mapped back to its request and amount.
``PaymentCapture`` is the ledger of captured payments; the unique
``payment_id`` makes capture recording idempotent.
"""
import uuid
import enum
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from request_desk.database import Base, str_enum, utcnow


class OrderPurpose(str, enum.Enum):
    advance = "advance"
    full = "full"
    balance = "balance"


class OrderStatus(str, enum.Enum):
    created = "created"
    paid = "paid"


class PaymentOrder(Base):
    __tablename__ = "payment_orders"

    order_id = Column(String(64), primary_key=True)  # gateway-assigned
    request_id = Column(String(36), ForeignKey("project_requests.request_id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    purpose = Column(str_enum(OrderPurpose), nullable=False)
    status = Column(str_enum(OrderStatus), nullable=False, default=OrderStatus.created)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class PaymentCapture(Base):
    __tablename__ = "payment_captures"

    capture_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    payment_id = Column(String(64), nullable=False, unique=True)  # de-duplication key
    order_id = Column(String(64), ForeignKey("payment_orders.order_id"), nullable=True)
    request_id = Column(String(36), ForeignKey("project_requests.request_id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    captured_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    request = relationship("ProjectRequest", back_populates="captures")
