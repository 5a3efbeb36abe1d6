"""
Read-only access to the audit trail.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ...core.auth import require_permission
from ...core.authorization import AuthContext
from ...core.db import get_db
from ...core.errors import db_guard
from ...core.pagination import PageParams, page_params
from ...core.responses import paginated
from ...models.audit_log import AuditLog
from ...schemas.audit import AuditLogOut

router = APIRouter(prefix="/api/audit-logs", tags=["audit"])
logger = logging.getLogger("audit")


@router.get("")
def list_audit_logs(
    response: Response,
    action: Optional[str] = Query(None, max_length=100),
    entity_table: Optional[str] = Query(None, alias="entityTable", max_length=100),
    entity_id: Optional[str] = Query(None, alias="entityId", max_length=100),
    user_id: Optional[str] = Query(None, alias="userId"),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("audit:read")),
) -> dict:
    with db_guard("audit-logs/list", logger):
        query = db.query(AuditLog)
        if action:
            query = query.filter(AuditLog.action == action.upper())
        if entity_table:
            query = query.filter(AuditLog.entity_table == entity_table)
        if entity_id:
            query = query.filter(AuditLog.entity_id == entity_id)
        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if date_from:
            query = query.filter(AuditLog.created_at >= date_from)
        if date_to:
            query = query.filter(AuditLog.created_at <= date_to)
        total = query.count()
        rows = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset(params.offset)
            .limit(params.limit)
            .all()
        )
        items = [AuditLogOut.model_validate(row) for row in rows]
    return paginated(response, items, params, total)
