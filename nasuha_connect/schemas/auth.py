"""
Pydantic schemas for authentication endpoints.
"""

from __future__ import annotations

from typing import Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from .common import ApiModel, check_uuid
from .user import KordaBrief, RoleBrief


class LoginIn(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def _lower_email(cls, value: str) -> str:
        return value.lower()


class ImpersonateIn(ApiModel):
    target_user_id: str
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("target_user_id")
    @classmethod
    def _target(cls, value: str) -> str:
        return check_uuid(value)


class ChangePasswordIn(ApiModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=256)
    confirm_password: str

    @model_validator(mode="after")
    def _passwords_match(self) -> "ChangePasswordIn":
        if self.new_password != self.confirm_password:
            raise ValueError("Password confirmation does not match")
        return self


class SessionUser(ApiModel):
    id: str
    email: str
    full_name: str
    phone: Optional[str] = None
    role: RoleBrief
    korda: Optional[KordaBrief] = None


class LoginOut(ApiModel):
    token: str
    user: SessionUser


class ProfileOut(SessionUser):
    permissions: list[str]


class ImpersonateOut(ApiModel):
    token: str
    impersonating: SessionUser
    warning: str
