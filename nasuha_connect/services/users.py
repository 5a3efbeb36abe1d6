"""
User account helpers shared by the register and user-admin endpoints.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.errors import Conflict, InvalidInput
from ..core.security import hash_password
from ..models.korda import Korda
from ..models.role import Role
from ..models.user import User
from ..schemas.user import UserCreate


def get_live_role(db: Session, role_id: str) -> Optional[Role]:
    return db.query(Role).filter(Role.id == role_id, Role.deleted_at.is_(None)).first()


def get_live_korda(db: Session, korda_id: str) -> Optional[Korda]:
    return db.query(Korda).filter(Korda.id == korda_id, Korda.deleted_at.is_(None)).first()


def email_taken(db: Session, email: str, *, exclude_id: Optional[str] = None) -> bool:
    # Soft-deleted rows still hold the unique email.
    query = db.query(User.id).filter(func.lower(User.email) == email.lower())
    if exclude_id:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def check_assignment(db: Session, *, role_id: Optional[str], korda_id: Optional[str]) -> None:
    if role_id is not None and get_live_role(db, role_id) is None:
        raise InvalidInput("Invalid role")
    if korda_id is not None and get_live_korda(db, korda_id) is None:
        raise InvalidInput("Invalid korda")


def create_user_account(db: Session, payload: UserCreate, *, korda_id: Optional[str] = None) -> User:
    """
    Insert a user row and commit.

    ``korda_id`` overrides the payload value; branch admins create users in
    their own korda only.
    """
    if email_taken(db, payload.email):
        raise Conflict("Email already registered")
    target_korda = korda_id if korda_id is not None else payload.korda_id
    check_assignment(db, role_id=payload.role_id, korda_id=target_korda)
    user = User(
        email=payload.email.lower(),
        full_name=payload.full_name,
        phone=payload.phone,
        password_hash=hash_password(payload.password) if payload.password else None,
        role_id=payload.role_id,
        korda_id=target_korda,
        is_active=payload.is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
