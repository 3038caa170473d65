"""Pydantic schemas for payment initiation and confirmation."""
from typing import Optional
from pydantic import BaseModel, Field

from request_desk.models.request import PaymentOption


class PaymentInitiate(BaseModel):
    request_id: str
    option: Optional[PaymentOption] = None  # defaults to the request's own option


class OrderOut(BaseModel):
    id: str
    amount: int
    currency: str
    purpose: str
    key_id: str = ""  # public gateway key for the checkout widget


class PaymentConfirm(BaseModel):
    order_id: str = Field(min_length=1)
    payment_id: str = Field(min_length=1)
    signature: str = Field(min_length=1)
