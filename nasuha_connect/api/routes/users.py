"""
User administration endpoints.

Branch admins only see and touch users of their own korda.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from ...core.audit import AuditAction, AuditRecorder, get_audit_recorder, get_client_info, snapshot
from ...core.auth import require_permission
from ...core.authorization import AuthContext, branch_scope
from ...core.db import LIKE_ESCAPE, contains_pattern, get_db
from ...core.errors import Conflict, Forbidden, InvalidInput, NotFound, db_guard
from ...core.pagination import PageParams, page_params
from ...core.responses import paginated, success
from ...models import utcnow
from ...models.user import User
from ...schemas.user import UserCreate, UserDetailOut, UserOut, UserUpdate
from ...services.users import check_assignment, create_user_account, email_taken

router = APIRouter(prefix="/api/users", tags=["users"])
logger = logging.getLogger("users")


def _scoped_query(db: Session, current: AuthContext):
    query = db.query(User).filter(User.deleted_at.is_(None))
    scope = branch_scope(current)
    if scope is not None:
        query = query.filter(User.korda_id == scope)
    return query


def _get_user(db: Session, current: AuthContext, user_id: str) -> User:
    user = (
        _scoped_query(db, current)
        .options(selectinload(User.role), selectinload(User.korda))
        .filter(User.id == user_id)
        .first()
    )
    if user is None:
        raise NotFound("User not found")
    return user


@router.get("")
def list_users(
    response: Response,
    search: Optional[str] = Query(None, max_length=100),
    role_id: Optional[str] = Query(None, alias="roleId"),
    korda_id: Optional[str] = Query(None, alias="kordaId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("users:read")),
) -> dict:
    with db_guard("users/list", logger):
        query = _scoped_query(db, current)
        if search:
            pattern = contains_pattern(search.strip())
            query = query.filter(
                or_(User.full_name.ilike(pattern, escape=LIKE_ESCAPE), User.email.ilike(pattern, escape=LIKE_ESCAPE))
            )
        if role_id:
            query = query.filter(User.role_id == role_id)
        if korda_id and branch_scope(current) is None:
            query = query.filter(User.korda_id == korda_id)
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))
        total = query.count()
        rows = (
            query.options(selectinload(User.role), selectinload(User.korda))
            .order_by(User.created_at.desc())
            .offset(params.offset)
            .limit(params.limit)
            .all()
        )
        items = [UserDetailOut.model_validate(row) for row in rows]
    return paginated(response, items, params, total)


@router.get("/{user_id}")
def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("users:read")),
) -> dict:
    with db_guard("users/get", logger):
        user = _get_user(db, current, user_id)
        return success(UserDetailOut.model_validate(user))


@router.post("", status_code=201)
def create_user(
    payload: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("users:create")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    with db_guard("users/create", logger, db=db, conflict_message="Email already registered"):
        user = create_user_account(db, payload, korda_id=branch_scope(current))
    recorder.record(
        AuditAction.CREATE_USER,
        "users",
        user_id=current.id,
        entity_id=user.id,
        new_state=snapshot(user),
        client=get_client_info(request),
    )
    return success(UserOut.model_validate(user))


@router.patch("/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("users:update")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    scope = branch_scope(current)
    if scope is not None and "korda_id" in changes and changes["korda_id"] != scope:
        raise Forbidden("Cannot move a user outside your korda")
    with db_guard("users/update", logger, db=db, conflict_message="Email already registered"):
        user = _get_user(db, current, user_id)
        if "email" in changes and email_taken(db, changes["email"], exclude_id=user.id):
            raise Conflict("Email already registered")
        if user.id == current.id and changes.get("is_active") is False:
            raise InvalidInput("Cannot deactivate your own account")
        check_assignment(db, role_id=changes.get("role_id"), korda_id=changes.get("korda_id"))
        previous = snapshot(user)
        for key, value in changes.items():
            setattr(user, key, value)
        db.commit()
        db.refresh(user)
        result = UserDetailOut.model_validate(user)
    recorder.record(
        AuditAction.UPDATE_USER,
        "users",
        user_id=current.id,
        entity_id=user.id,
        previous_state=previous,
        new_state=snapshot(user),
        client=get_client_info(request),
    )
    return success(result)


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("users:delete")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    if user_id == current.id:
        raise InvalidInput("Cannot delete your own account")
    with db_guard("users/delete", logger, db=db):
        user = _get_user(db, current, user_id)
        previous = snapshot(user)
        user.deleted_at = utcnow()
        db.commit()
    recorder.record(
        AuditAction.DELETE_USER,
        "users",
        user_id=current.id,
        entity_id=user_id,
        previous_state=previous,
        client=get_client_info(request),
    )
    return success({"id": user_id, "deleted": True})
