"""
Pydantic schemas for roles and permissions.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator

from ..models.role import Role
from .common import ApiModel, Text100, reject_nulls

ROLE_NAME_RE = re.compile(r"^[a-z0-9_]+$")
PERMISSION_NAME_RE = re.compile(r"^[a-z0-9_]+:[a-z0-9_]+$")


def _role_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.lower()
    if not ROLE_NAME_RE.match(value):
        raise ValueError("Role name may only contain lowercase letters, digits and underscores")
    return value


class PermissionOut(ApiModel):
    id: str
    name: str
    display_name: str
    module: str


class RoleCreate(ApiModel):
    name: Text100
    display_name: Text100
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return _role_name(value)


class RoleUpdate(ApiModel):
    name: Optional[Text100] = None
    display_name: Optional[Text100] = None
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _required_not_null(cls, data: Any) -> Any:
        return reject_nulls(data, ("name", "display_name"))

    @field_validator("name")
    @classmethod
    def _name(cls, value: Optional[str]) -> Optional[str]:
        return _role_name(value)


class AssignPermissionsIn(ApiModel):
    permissions: list[str]

    @field_validator("permissions")
    @classmethod
    def _names(cls, value: list[str]) -> list[str]:
        cleaned: list[str] = []
        for name in value:
            name = name.strip().lower()
            if not PERMISSION_NAME_RE.match(name):
                raise ValueError(f"Invalid permission name {name!r}, expected module:action")
            if name not in cleaned:
                cleaned.append(name)
        return cleaned


class RoleOut(ApiModel):
    id: str
    name: str
    display_name: str
    description: Optional[str] = None
    is_system: bool
    permissions: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def role_out(role: Role) -> RoleOut:
    return RoleOut(
        id=role.id,
        name=role.name,
        display_name=role.display_name,
        description=role.description,
        is_system=role.is_system,
        permissions=role.permission_names,
        created_at=role.created_at,
        updated_at=role.updated_at,
    )
