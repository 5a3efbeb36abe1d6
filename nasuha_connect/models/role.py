"""
Dynamic RBAC tables: roles, permissions and the join between them.

Permissions are plain rows named ``module:action``; nothing in code
enumerates them. A role grants exactly the union of its joined permissions.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base, TimestampMixin, new_id, utcnow

if TYPE_CHECKING:
    from .user import User


class RolePermission(Base):
    __tablename__ = "role_permissions"

    role_id: Mapped[str] = mapped_column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    )


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String(100))
    module: Mapped[str] = mapped_column(String(50), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Role(TimestampMixin, Base):
    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # System roles cannot be deleted or renamed.
    is_system: Mapped[bool] = mapped_column(Boolean, default=False)

    permissions: Mapped[List[Permission]] = relationship(
        Permission,
        secondary="role_permissions",
        order_by=Permission.name,
    )
    users: Mapped[List["User"]] = relationship(back_populates="role")

    @property
    def permission_names(self) -> list[str]:
        return [p.name for p in self.permissions]
