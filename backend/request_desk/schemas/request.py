"""Pydantic schemas for project requests.

Requester and project choices are discriminated unions: the ``kind`` tag
picks exactly one variant, and unknown fields are rejected so a payload
cannot smuggle in both.
"""
from __future__ import annotations
from datetime import date, datetime
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field

from request_desk.models.request import ClientType, ProjectKind, RequestStatus, PaymentOption, PaymentStatus
from request_desk.services import lifecycle


# --- requester variants ---------------------------------------------------
class RegisteredRequester(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["registered"] = "registered"
    user_id: str


class GuestContact(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["guest"] = "guest"
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=30)


Requester = Annotated[Union[RegisteredRequester, GuestContact], Field(discriminator="kind")]


# --- project variants -----------------------------------------------------
class CatalogProjectChoice(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["catalog"] = "catalog"
    project_id: str


class CustomProjectChoice(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["custom"] = "custom"
    name: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    technologies: list[str] = []


ProjectChoice = Annotated[Union[CatalogProjectChoice, CustomProjectChoice], Field(discriminator="kind")]


# --- inputs ---------------------------------------------------------------
class RequestSubmission(BaseModel):
    """Body of ``POST /api/requests``.

    Authenticated callers are registered requesters and must not send
    ``guest``; anonymous callers must send it.
    """

    project: ProjectChoice
    payment_option: PaymentOption = PaymentOption.advance
    guest: Optional[GuestContact] = None
    estimated_price: Optional[int] = Field(default=None, ge=0)


class RequestCreate(BaseModel):
    """Engine-level creation input: both variants already resolved."""

    requester: Requester
    project: ProjectChoice
    payment_option: PaymentOption
    estimated_price: Optional[int] = Field(default=None, ge=0)


class RequestUpdate(BaseModel):
    """Admin update: only these fields are mutable, anything else is ignored."""

    status: Optional[RequestStatus] = None
    admin_notes: Optional[str] = None
    github_link: Optional[str] = Field(default=None, max_length=500)
    current_module: Optional[str] = Field(default=None, max_length=200)
    expected_completion: Optional[date] = None
    estimated_price: Optional[int] = Field(default=None, ge=0)
    actual_price: Optional[int] = Field(default=None, ge=0)
    payment_status: Optional[PaymentStatus] = None
    version: Optional[int] = None  # optimistic lock token, checked when sent


# --- outputs --------------------------------------------------------------
class RegisteredRequesterOut(BaseModel):
    kind: Literal["registered"]
    user_id: str
    username: Optional[str] = None


class GuestContactOut(BaseModel):
    kind: Literal["guest"]
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class CatalogProjectOut(BaseModel):
    kind: Literal["catalog"]
    project_id: str
    name: Optional[str] = None
    description: Optional[str] = None
    technologies: list[str] = []


class CustomProjectOut(BaseModel):
    kind: Literal["custom"]
    name: str
    description: Optional[str] = None
    technologies: list[str] = []


class StatusHistoryOut(BaseModel):
    seq: int
    status: RequestStatus
    notes: Optional[str] = None
    updated_by: str
    updated_at: datetime

    model_config = {"from_attributes": True}


class PaymentSummary(BaseModel):
    price: int
    amount_due_now: int
    remaining_balance: int
    amount_paid: int


class RequestOut(BaseModel):
    request_id: str
    client_type: ClientType
    requester: Annotated[Union[RegisteredRequesterOut, GuestContactOut], Field(discriminator="kind")]
    project_kind: ProjectKind
    project_ref: Annotated[Union[CatalogProjectOut, CustomProjectOut], Field(discriminator="kind")]
    status: RequestStatus
    payment_option: PaymentOption
    payment_status: PaymentStatus
    estimated_price: Optional[int] = None
    actual_price: Optional[int] = None
    amount_paid: int = 0
    current_module: Optional[str] = None
    admin_notes: Optional[str] = None
    github_link: Optional[str] = None
    expected_completion: Optional[date] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime
    history: list[StatusHistoryOut] = []

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def payment_summary(self) -> PaymentSummary:
        price = lifecycle.effective_price(self.actual_price, self.estimated_price)
        return PaymentSummary(
            **lifecycle.payment_summary(price, self.payment_option, self.payment_status, self.amount_paid)
        )
