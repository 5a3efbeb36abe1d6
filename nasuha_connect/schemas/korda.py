"""
Pydantic schemas for korda (regional branch) administration.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator, model_validator

from .common import ApiModel, Text255, reject_nulls

KORDA_CODE_RE = re.compile(r"^[A-Z0-9-]{1,20}$")


def _korda_code(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().upper()
    if not KORDA_CODE_RE.match(value):
        raise ValueError("Korda code must be 1-20 uppercase letters, digits or hyphens")
    return value


class KordaCreate(ApiModel):
    code: str
    name: Text255
    city: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def _code(cls, value: str) -> str:
        return _korda_code(value)


class KordaUpdate(ApiModel):
    code: Optional[str] = None
    name: Optional[Text255] = None
    city: Optional[str] = Field(None, max_length=100)
    province: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def _required_not_null(cls, data: Any) -> Any:
        return reject_nulls(data, ("code", "name", "is_active"))

    @field_validator("code")
    @classmethod
    def _code(cls, value: Optional[str]) -> Optional[str]:
        return _korda_code(value)


class KordaOut(ApiModel):
    id: str
    code: str
    name: str
    city: Optional[str] = None
    province: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
