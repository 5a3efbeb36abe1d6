"""
Media center endpoints: listing, CRUD, archive and feature toggles.

Branch admins (korda_admin with a korda) are confined to their own korda:
listings are filtered, creates are forced into it and any write or read of
another korda's media is refused.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session, selectinload

from ...core.audit import AuditAction, AuditRecorder, get_audit_recorder, get_client_info, snapshot
from ...core.auth import require_permission
from ...core.authorization import AuthContext, branch_scope
from ...core.db import LIKE_ESCAPE, contains_pattern, get_db
from ...core.errors import Forbidden, InvalidInput, NotFound, db_guard
from ...core.pagination import PageParams, page_params
from ...core.responses import paginated, success
from ...models import utcnow
from ...models.media import MediaCategory, MediaContent, MediaType
from ...schemas.media import FeatureIn, MediaCreate, MediaOut, MediaUpdate, validate_media_fields
from ...services.users import get_live_korda

router = APIRouter(prefix="/api/media", tags=["media"])
logger = logging.getLogger("media")

ENTITY_TABLE = "media_contents"


def _with_relations(query):
    return query.options(
        selectinload(MediaContent.category),
        selectinload(MediaContent.uploader),
        selectinload(MediaContent.korda),
    )


def _get_media(db: Session, current: AuthContext, media_id: str, action: str) -> MediaContent:
    media = (
        _with_relations(db.query(MediaContent))
        .filter(MediaContent.id == media_id, MediaContent.deleted_at.is_(None))
        .first()
    )
    if media is None:
        raise NotFound("Media not found")
    scope = branch_scope(current)
    if scope is not None and media.korda_id != scope:
        raise Forbidden(f"Cannot {action} media of another korda")
    return media


def _check_category(db: Session, category_id: Optional[str]) -> None:
    if category_id is None:
        return
    exists = (
        db.query(MediaCategory.id)
        .filter(MediaCategory.id == category_id, MediaCategory.deleted_at.is_(None))
        .first()
    )
    if exists is None:
        raise InvalidInput("Invalid category")


def _check_korda(db: Session, korda_id: Optional[str]) -> None:
    if korda_id is not None and get_live_korda(db, korda_id) is None:
        raise InvalidInput("Invalid korda")


@router.get("")
def list_media(
    response: Response,
    media_type: Optional[MediaType] = Query(None, alias="type"),
    category_id: Optional[str] = Query(None, alias="categoryId"),
    korda_id: Optional[str] = Query(None, alias="kordaId"),
    is_featured: Optional[bool] = Query(None, alias="isFeatured"),
    is_archived: bool = Query(False, alias="isArchived"),
    search: Optional[str] = Query(None, max_length=100),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:read")),
) -> dict:
    with db_guard("media/list", logger):
        query = db.query(MediaContent).filter(
            MediaContent.deleted_at.is_(None),
            MediaContent.is_archived.is_(is_archived),
        )
        if media_type is not None:
            query = query.filter(MediaContent.type == media_type)
        if category_id:
            query = query.filter(MediaContent.category_id == category_id)
        scope = branch_scope(current)
        if scope is not None:
            query = query.filter(MediaContent.korda_id == scope)
        elif korda_id:
            query = query.filter(MediaContent.korda_id == korda_id)
        if is_featured is not None:
            query = query.filter(MediaContent.is_featured.is_(is_featured))
        if search and search.strip():
            query = query.filter(MediaContent.title.ilike(contains_pattern(search.strip()), escape=LIKE_ESCAPE))
        total = query.count()
        rows = (
            _with_relations(query)
            .order_by(MediaContent.created_at.desc(), MediaContent.id.desc())
            .offset(params.offset)
            .limit(params.limit)
            .all()
        )
        items = [MediaOut.model_validate(row) for row in rows]
    return paginated(response, items, params, total)


@router.get("/{media_id}")
def get_media(
    media_id: str,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:read")),
) -> dict:
    with db_guard("media/get", logger):
        return success(MediaOut.model_validate(_get_media(db, current, media_id, "view")))


@router.post("", status_code=201)
def create_media(
    payload: MediaCreate,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:create")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    scope = branch_scope(current)
    korda_id = scope if scope is not None else payload.korda_id
    with db_guard("media/create", logger, db=db):
        _check_category(db, payload.category_id)
        _check_korda(db, korda_id)
        values = payload.model_dump()
        values["korda_id"] = korda_id
        media = MediaContent(**values, uploaded_by=current.id)
        db.add(media)
        db.commit()
        media = _get_media(db, current, media.id, "create")
        result = MediaOut.model_validate(media)
    recorder.record(
        AuditAction.CREATE_MEDIA,
        ENTITY_TABLE,
        user_id=current.id,
        entity_id=media.id,
        new_state=snapshot(media),
        client=get_client_info(request),
    )
    return success(result)


@router.patch("/{media_id}")
def update_media(
    media_id: str,
    payload: MediaUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:update")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    scope = branch_scope(current)
    if scope is not None and "korda_id" in changes and changes["korda_id"] != scope:
        raise Forbidden("Cannot move media to another korda")
    with db_guard("media/update", logger, db=db):
        media = _get_media(db, current, media_id, "edit")
        if "category_id" in changes:
            _check_category(db, changes["category_id"])
        if "korda_id" in changes:
            _check_korda(db, changes["korda_id"])
        try:
            validate_media_fields(
                changes.get("type", media.type),
                changes.get("description", media.description),
                changes.get("file_url", media.file_url),
            )
        except ValueError as exc:
            raise InvalidInput(str(exc)) from exc
        previous = snapshot(media)
        for key, value in changes.items():
            setattr(media, key, value)
        db.commit()
        db.refresh(media)
        result = MediaOut.model_validate(media)
    recorder.record(
        AuditAction.UPDATE_MEDIA,
        ENTITY_TABLE,
        user_id=current.id,
        entity_id=media.id,
        previous_state=previous,
        new_state=snapshot(media),
        client=get_client_info(request),
    )
    return success(result)


@router.delete("/{media_id}")
def delete_media(
    media_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:delete")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    with db_guard("media/delete", logger, db=db):
        media = _get_media(db, current, media_id, "delete")
        previous = snapshot(media)
        media.deleted_at = utcnow()
        db.commit()
    recorder.record(
        AuditAction.DELETE_MEDIA,
        ENTITY_TABLE,
        user_id=current.id,
        entity_id=media_id,
        previous_state=previous,
        client=get_client_info(request),
    )
    return success({"id": media_id, "deleted": True})


def _set_archived(
    media_id: str,
    archived: bool,
    request: Request,
    db: Session,
    current: AuthContext,
    recorder: AuditRecorder,
) -> dict:
    operation = "media/archive" if archived else "media/unarchive"
    with db_guard(operation, logger, db=db):
        media = _get_media(db, current, media_id, "archive" if archived else "unarchive")
        previous = snapshot(media)
        media.is_archived = archived
        media.archived_at = utcnow() if archived else None
        db.commit()
        db.refresh(media)
        result = MediaOut.model_validate(media)
    # Unarchive is recorded as an update; the action list has no separate entry.
    recorder.record(
        AuditAction.ARCHIVE_MEDIA if archived else AuditAction.UPDATE_MEDIA,
        ENTITY_TABLE,
        user_id=current.id,
        entity_id=media.id,
        previous_state=previous,
        new_state=snapshot(media),
        client=get_client_info(request),
    )
    return success(result)


@router.post("/{media_id}/archive")
def archive_media(
    media_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:archive")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    return _set_archived(media_id, True, request, db, current, recorder)


@router.post("/{media_id}/unarchive")
def unarchive_media(
    media_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:archive")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    return _set_archived(media_id, False, request, db, current, recorder)


@router.post("/{media_id}/feature")
def feature_media(
    media_id: str,
    request: Request,
    payload: Optional[FeatureIn] = None,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("media:feature")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    featured = payload.is_featured if payload is not None else True
    with db_guard("media/feature", logger, db=db):
        media = _get_media(db, current, media_id, "feature")
        previous = snapshot(media)
        media.is_featured = featured
        db.commit()
        db.refresh(media)
        result = MediaOut.model_validate(media)
    recorder.record(
        AuditAction.UPDATE_MEDIA,
        ENTITY_TABLE,
        user_id=current.id,
        entity_id=media.id,
        previous_state=previous,
        new_state=snapshot(media),
        metadata={"isFeatured": featured},
        client=get_client_info(request),
    )
    return success(result)
