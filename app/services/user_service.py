"""Accounts: registration, sign-in and approver assignment."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    DomainNotAllowed,
    EmailTaken,
    NotFoundOrForbidden,
    ValidationError,
)
from app.core.roles import ALL_ROLES, APPROVER_ROLES, ROLE_EMPLOYEE, is_approver
from app.core.security import hash_password, verify_password
from app.models.user import User
from app.schemas.auth import RegisterRequest
from app.schemas.user import UserRoleUpdate

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def register_user(db: Session, payload: RegisterRequest) -> User:
    email = normalize_email(payload.email)
    if "@" not in email:
        raise ValidationError("Invalid email address")

    domain = settings.ALLOWED_EMAIL_DOMAIN.lower().lstrip("@")
    if domain and not email.endswith(f"@{domain}"):
        raise DomainNotAllowed(f"Only @{domain} email addresses are allowed to register")

    if db.query(User).filter(User.email == email).first():
        raise EmailTaken()

    user = User(
        email=email,
        name=payload.name.strip(),
        password_hash=hash_password(payload.password),
        role=ROLE_EMPLOYEE,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed sign-in for %s", normalize_email(email))
        return None
    return user


def list_users(db: Session) -> List[User]:
    return db.query(User).order_by(User.name).all()


def list_approvers(db: Session) -> List[User]:
    return db.query(User).filter(User.role.in_(APPROVER_ROLES)).order_by(User.name).all()


def update_user(db: Session, user_id, payload: UserRoleUpdate, actor_id=None) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFoundOrForbidden("User not found")

    data = payload.model_dump(exclude_unset=True)

    if data.get("role") is not None:
        if data["role"] not in ALL_ROLES:
            raise ValidationError(f"Unknown role: {data['role']}")
        user.role = data["role"]

    if "approver_id" in data:
        approver_id = data["approver_id"]
        if approver_id is not None:
            if approver_id == user.id:
                raise ValidationError("A user cannot approve their own reports")
            if not is_approver(db.get(User, approver_id)):
                raise ValidationError("Approver must be a manager or admin")
        user.approver_id = approver_id

    db.commit()
    db.refresh(user)
    logger.info("User %s updated by %s: %s", user.id, actor_id, sorted(data))
    return user
