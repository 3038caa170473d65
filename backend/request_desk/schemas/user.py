"""Pydantic schemas for Users."""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from request_desk.models.user import UserRole


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: EmailStr
    role: UserRole = UserRole.client


class UserOut(BaseModel):
    user_id: str
    username: str
    email: str
    role: UserRole
    created_at: datetime

    model_config = {"from_attributes": True}
