"""
Media category endpoints.

Categories share the media permissions: reading needs media:read, writes
need media:create / media:update / media:delete.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...core.audit import AuditAction, AuditRecorder, get_audit_recorder, get_client_info, snapshot
from ...core.auth import require_permission
from ...core.authorization import AuthContext
from ...core.db import get_db
from ...core.errors import Conflict, NotFound, db_guard
from ...core.responses import success
from ...models import utcnow
from ...models.media import MediaCategory
from ...schemas.media import CategoryCreate, CategoryOut, CategoryUpdate

router = APIRouter(prefix="/api/categories", tags=["categories"])
logger = logging.getLogger("categories")

SLUG_TAKEN = "Category slug already in use"


def _get_category(db: Session, category_id: str) -> MediaCategory:
    category = (
        db.query(MediaCategory)
        .filter(MediaCategory.id == category_id, MediaCategory.deleted_at.is_(None))
        .first()
    )
    if category is None:
        raise NotFound("Category not found")
    return category


def _slug_taken(db: Session, slug: str, *, exclude_id: Optional[str] = None) -> bool:
    query = db.query(MediaCategory.id).filter(MediaCategory.slug == slug)
    if exclude_id:
        query = query.filter(MediaCategory.id != exclude_id)
    return query.first() is not None


@router.get("")
def list_categories(
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:read")),
) -> dict:
    with db_guard("categories/list", logger):
        rows = (
            db.query(MediaCategory)
            .filter(MediaCategory.deleted_at.is_(None))
            .order_by(MediaCategory.name.asc())
            .all()
        )
        return success([CategoryOut.model_validate(row) for row in rows])


@router.get("/{category_id}")
def get_category(
    category_id: str,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:read")),
) -> dict:
    with db_guard("categories/get", logger):
        return success(CategoryOut.model_validate(_get_category(db, category_id)))


@router.post("", status_code=201)
def create_category(
    payload: CategoryCreate,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:create")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    with db_guard("categories/create", logger, db=db, conflict_message=SLUG_TAKEN):
        if _slug_taken(db, payload.slug):
            raise Conflict(SLUG_TAKEN)
        category = MediaCategory(**payload.model_dump())
        db.add(category)
        db.commit()
        db.refresh(category)
    recorder.record(
        AuditAction.CREATE_CATEGORY,
        "media_categories",
        user_id=current.id,
        entity_id=category.id,
        new_state=snapshot(category),
        client=get_client_info(request),
    )
    return success(CategoryOut.model_validate(category))


@router.patch("/{category_id}")
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:update")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    with db_guard("categories/update", logger, db=db, conflict_message=SLUG_TAKEN):
        category = _get_category(db, category_id)
        if "slug" in changes and _slug_taken(db, changes["slug"], exclude_id=category.id):
            raise Conflict(SLUG_TAKEN)
        previous = snapshot(category)
        for key, value in changes.items():
            setattr(category, key, value)
        db.commit()
        db.refresh(category)
    recorder.record(
        AuditAction.UPDATE_CATEGORY,
        "media_categories",
        user_id=current.id,
        entity_id=category.id,
        previous_state=previous,
        new_state=snapshot(category),
        client=get_client_info(request),
    )
    return success(CategoryOut.model_validate(category))


@router.delete("/{category_id}")
def delete_category(
    category_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:delete")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    with db_guard("categories/delete", logger, db=db):
        category = _get_category(db, category_id)
        previous = snapshot(category)
        category.deleted_at = utcnow()
        db.commit()
    recorder.record(
        AuditAction.DELETE_CATEGORY,
        "media_categories",
        user_id=current.id,
        entity_id=category_id,
        previous_state=previous,
        client=get_client_info(request),
    )
    return success({"id": category_id, "deleted": True})
