"""
Read-only audit log schema.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from .common import ApiModel


class AuditLogOut(ApiModel):
    id: str
    user_id: Optional[str] = None
    action: str
    entity_table: str
    entity_id: Optional[str] = None
    previous_state: Any = None
    new_state: Any = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    # Stored on the ORM row as `extra`.
    metadata: Any = Field(None, validation_alias="extra", serialization_alias="metadata")
    created_at: datetime
