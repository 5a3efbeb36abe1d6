"""
SQLAlchemy model base class for the NASUHA Connect backend.

This package defines ORM models for kordas, roles, permissions, users, media
and audit logs. All models inherit from the declarative `Base` defined here.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return compiler.process(JSON(), **kw)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


class TimestampMixin:
    """created/updated/deleted columns shared by business tables."""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    # Soft delete: NULL means live.
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)


from .korda import Korda  # noqa: E402,F401
from .role import Role, Permission, RolePermission  # noqa: E402,F401
from .user import User  # noqa: E402,F401
from .media import MediaCategory, MediaContent, MediaType  # noqa: E402,F401
from .audit_log import AuditLog  # noqa: E402,F401

__all__ = [
    "Base",
    "TimestampMixin",

    # Organization
    "Korda",

    # Access control
    "Role",
    "Permission",
    "RolePermission",
    "User",

    # Media
    "MediaCategory",
    "MediaContent",
    "MediaType",

    # Audit
    "AuditLog",
]
