"""User API routes: account provisioning for the identity layer."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from request_desk.database import get_db
from request_desk.errors import DuplicateEntry, NotFound
from request_desk.models.user import User, UserRole
from request_desk.schemas.user import UserCreate, UserOut

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    """Register an account (client by default). Usernames and emails are unique."""
    email = str(payload.email).lower()
    taken = db.query(User).filter((User.username == payload.username) | (User.email == email)).first()
    if taken:
        raise DuplicateEntry("Username or email already registered")

    account = User(username=payload.username, email=email, role=payload.role)
    db.add(account)
    db.commit()
    db.refresh(account)
    logger.info("Provisioned %s account %s (%s)", account.role.value, account.user_id, account.username)
    return account


@router.get("/", response_model=list[UserOut])
def list_users(role: Optional[UserRole] = Query(None), db: Session = Depends(get_db)):
    """Accounts in sign-up order, optionally only one role."""
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.created_at).all()


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, db: Session = Depends(get_db)):
    account = db.get(User, user_id)
    if account is None:
        raise NotFound("User not found")
    return account
