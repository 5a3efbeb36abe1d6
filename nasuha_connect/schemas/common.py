"""
Shared pydantic helpers: camelCase wire format, phone normalization and
field checks reused across request schemas.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, StringConstraints
from pydantic.alias_generators import to_camel

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
UUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")

Text50 = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
Text100 = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
Text255 = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class ApiModel(BaseModel):
    """Base for request/response bodies; accepts and emits camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """
    Normalize an Indonesian mobile number to the ``08…`` form.

    ``+6281234567890``, ``6281234567890``, ``081234567890`` and
    ``81234567890`` all become ``081234567890``.
    """
    if value is None:
        return None
    raw = value.strip()
    if len(raw) < 10:
        raise ValueError("Phone number must have at least 10 digits")
    if len(raw) > 15:
        raise ValueError("Phone number must have at most 15 digits")
    digits = re.sub(r"\D", "", raw)
    if digits.startswith("62"):
        digits = "0" + digits[2:]
    elif not digits.startswith("0"):
        digits = "0" + digits
    if not digits.startswith("08"):
        raise ValueError("Phone number must start with 08")
    return digits


def whatsapp_link(phone: str) -> str:
    """``081234567890`` -> ``https://wa.me/6281234567890``."""
    return f"https://wa.me/62{phone[1:]}"


def check_uuid(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not UUID_RE.match(value):
        raise ValueError("Invalid id")
    return value.lower()


def check_slug(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if not SLUG_RE.match(value):
        raise ValueError("Slug may only contain lowercase letters, digits and hyphens")
    return value


def reject_nulls(data: Any, fields: Iterable[str]) -> Any:
    """For partial updates: a required column may be omitted but not set to null."""
    if isinstance(data, dict):
        for name in fields:
            for key in (name, to_camel(name)):
                if key in data and data[key] is None:
                    raise ValueError(f"{to_camel(name)} cannot be null")
    return data
