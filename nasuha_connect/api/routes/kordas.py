"""
Korda (regional branch) endpoints.

Branch admins can read their own korda only.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...core.audit import AuditAction, AuditRecorder, get_audit_recorder, get_client_info, snapshot
from ...core.auth import require_permission
from ...core.authorization import AuthContext, branch_scope
from ...core.db import LIKE_ESCAPE, contains_pattern, get_db
from ...core.errors import Conflict, InvalidInput, NotFound, db_guard
from ...core.pagination import PageParams, page_params
from ...core.responses import paginated, success
from ...models import utcnow
from ...models.korda import Korda
from ...models.user import User
from ...schemas.korda import KordaCreate, KordaOut, KordaUpdate

router = APIRouter(prefix="/api/kordas", tags=["kordas"])
logger = logging.getLogger("kordas")

CODE_TAKEN = "Korda code already exists"


def _scoped_query(db: Session, current: AuthContext):
    query = db.query(Korda).filter(Korda.deleted_at.is_(None))
    scope = branch_scope(current)
    if scope is not None:
        query = query.filter(Korda.id == scope)
    return query


def _get_korda(db: Session, current: AuthContext, korda_id: str) -> Korda:
    korda = _scoped_query(db, current).filter(Korda.id == korda_id).first()
    if korda is None:
        raise NotFound("Korda not found")
    return korda


def _code_taken(db: Session, code: str, *, exclude_id: Optional[str] = None) -> bool:
    query = db.query(Korda.id).filter(Korda.code == code)
    if exclude_id:
        query = query.filter(Korda.id != exclude_id)
    return query.first() is not None


@router.get("")
def list_kordas(
    response: Response,
    search: Optional[str] = Query(None, max_length=100),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("korda:read")),
) -> dict:
    with db_guard("kordas/list", logger):
        query = _scoped_query(db, current)
        if search:
            pattern = contains_pattern(search.strip())
            query = query.filter(
                or_(
                    Korda.name.ilike(pattern, escape=LIKE_ESCAPE),
                    Korda.code.ilike(pattern, escape=LIKE_ESCAPE),
                    Korda.city.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )
        if is_active is not None:
            query = query.filter(Korda.is_active.is_(is_active))
        total = query.count()
        rows = query.order_by(Korda.code.asc()).offset(params.offset).limit(params.limit).all()
        items = [KordaOut.model_validate(row) for row in rows]
    return paginated(response, items, params, total)


@router.get("/{korda_id}")
def get_korda(
    korda_id: str,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("korda:read")),
) -> dict:
    with db_guard("kordas/get", logger):
        return success(KordaOut.model_validate(_get_korda(db, current, korda_id)))


@router.post("", status_code=201)
def create_korda(
    payload: KordaCreate,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("korda:create")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    with db_guard("kordas/create", logger, db=db, conflict_message=CODE_TAKEN):
        if _code_taken(db, payload.code):
            raise Conflict(CODE_TAKEN)
        korda = Korda(**payload.model_dump())
        db.add(korda)
        db.commit()
        db.refresh(korda)
    recorder.record(
        AuditAction.CREATE_KORDA,
        "kordas",
        user_id=current.id,
        entity_id=korda.id,
        new_state=snapshot(korda),
        client=get_client_info(request),
    )
    return success(KordaOut.model_validate(korda))


@router.patch("/{korda_id}")
def update_korda(
    korda_id: str,
    payload: KordaUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("korda:update")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    with db_guard("kordas/update", logger, db=db, conflict_message=CODE_TAKEN):
        korda = _get_korda(db, current, korda_id)
        if "code" in changes and _code_taken(db, changes["code"], exclude_id=korda.id):
            raise Conflict(CODE_TAKEN)
        previous = snapshot(korda)
        for key, value in changes.items():
            setattr(korda, key, value)
        db.commit()
        db.refresh(korda)
    recorder.record(
        AuditAction.UPDATE_KORDA,
        "kordas",
        user_id=current.id,
        entity_id=korda.id,
        previous_state=previous,
        new_state=snapshot(korda),
        client=get_client_info(request),
    )
    return success(KordaOut.model_validate(korda))


@router.delete("/{korda_id}")
def delete_korda(
    korda_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("korda:delete")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    with db_guard("kordas/delete", logger, db=db):
        korda = _get_korda(db, current, korda_id)
        members = db.query(User.id).filter(User.korda_id == korda.id, User.deleted_at.is_(None)).first()
        if members is not None:
            raise InvalidInput("Korda still has users assigned")
        previous = snapshot(korda)
        korda.deleted_at = utcnow()
        db.commit()
    recorder.record(
        AuditAction.DELETE_KORDA,
        "kordas",
        user_id=current.id,
        entity_id=korda_id,
        previous_state=previous,
        client=get_client_info(request),
    )
    return success({"id": korda_id, "deleted": True})
