"""
Authorization resolver: turns a verified subject id into an `AuthContext`
holding the user's role and flat permission set.

Permission state is read fresh on every call; there is no cache, so a role
change takes effect on the caller's next request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..models.role import Role
from ..models.user import User
from .security import TokenClaims


@dataclass(frozen=True)
class AuthContext:
    id: str
    email: str
    full_name: str
    phone: Optional[str]
    role_id: str
    role_name: str
    korda_id: Optional[str]
    is_active: bool
    permissions: frozenset[str] = field(default_factory=frozenset)
    claims: Optional[TokenClaims] = None

    @property
    def is_national(self) -> bool:
        return self.korda_id is None


def load_active_user(db: Session, user_id: str) -> Optional[User]:
    stmt = (
        select(User)
        .where(User.id == user_id, User.deleted_at.is_(None))
        .options(selectinload(User.role).selectinload(Role.permissions))
    )
    return db.execute(stmt).scalar_one_or_none()


def context_for_user(user: User, claims: Optional[TokenClaims] = None) -> AuthContext:
    return AuthContext(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        phone=user.phone,
        role_id=user.role_id,
        role_name=user.role.name,
        korda_id=user.korda_id,
        is_active=bool(user.is_active),
        permissions=frozenset(user.role.permission_names),
        claims=claims,
    )


def resolve_auth_context(db: Session, subject_id: str) -> Optional[AuthContext]:
    """Load the live user, role and permission names; None if missing or soft-deleted."""
    user = load_active_user(db, subject_id)
    if user is None:
        return None
    return context_for_user(user)


def has_all(context: AuthContext, permission_names: Iterable[str]) -> bool:
    return set(permission_names) <= context.permissions


def has_any(context: AuthContext, permission_names: Iterable[str]) -> bool:
    return not context.permissions.isdisjoint(permission_names)


KORDA_ADMIN_ROLE = "korda_admin"


def branch_scope(context: AuthContext) -> Optional[str]:
    """Korda id a branch admin is confined to, or None when the caller is not branch-scoped."""
    if context.role_name == KORDA_ADMIN_ROLE and context.korda_id:
        return context.korda_id
    return None
