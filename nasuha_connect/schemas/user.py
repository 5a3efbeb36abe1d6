"""
Pydantic schemas for user administration.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from .common import ApiModel, Text255, check_uuid, normalize_phone, reject_nulls


class RoleBrief(ApiModel):
    id: str
    name: str
    display_name: str


class KordaBrief(ApiModel):
    id: str
    code: str
    name: str


class UserCreate(ApiModel):
    email: EmailStr
    full_name: Text255
    phone: Optional[str] = None
    # Accounts created without a password cannot log in by password.
    password: Optional[str] = Field(None, min_length=8, max_length=256)
    role_id: str
    korda_id: Optional[str] = None
    is_active: bool = True

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: Optional[str]) -> Optional[str]:
        return normalize_phone(value)

    @field_validator("role_id", "korda_id")
    @classmethod
    def _ids(cls, value: Optional[str]) -> Optional[str]:
        return check_uuid(value)


class UserUpdate(ApiModel):
    email: Optional[EmailStr] = None
    full_name: Optional[Text255] = None
    phone: Optional[str] = None
    role_id: Optional[str] = None
    korda_id: Optional[str] = None
    is_active: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def _required_not_null(cls, data: Any) -> Any:
        return reject_nulls(data, ("email", "full_name", "role_id", "is_active"))

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value else value

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: Optional[str]) -> Optional[str]:
        return normalize_phone(value)

    @field_validator("role_id", "korda_id")
    @classmethod
    def _ids(cls, value: Optional[str]) -> Optional[str]:
        return check_uuid(value)


class UserOut(ApiModel):
    id: str
    email: str
    full_name: str
    phone: Optional[str] = None
    role_id: str
    korda_id: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserDetailOut(UserOut):
    role: RoleBrief
    korda: Optional[KordaBrief] = None
