"""
Role and permission administration.

Roles are data: any number can be created and granted any permission rows.
System roles are read-only through the API; their grants come from seeding.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session, selectinload

from ...core.audit import AuditAction, AuditRecorder, get_audit_recorder, get_client_info, snapshot
from ...core.auth import require_permission
from ...core.authorization import AuthContext
from ...core.db import get_db
from ...core.errors import Conflict, InvalidInput, NotFound, db_guard
from ...core.responses import success
from ...models import utcnow
from ...models.role import Permission, Role
from ...models.user import User
from ...schemas.role import AssignPermissionsIn, PermissionOut, RoleCreate, RoleUpdate, role_out

router = APIRouter(prefix="/api/roles", tags=["roles"])
permissions_router = APIRouter(prefix="/api/permissions", tags=["roles"])
logger = logging.getLogger("roles")


def _get_role(db: Session, role_id: str) -> Role:
    role = (
        db.query(Role)
        .options(selectinload(Role.permissions))
        .filter(Role.id == role_id, Role.deleted_at.is_(None))
        .first()
    )
    if role is None:
        raise NotFound("Role not found")
    return role


def _name_taken(db: Session, name: str, *, exclude_id: Optional[str] = None) -> bool:
    query = db.query(Role.id).filter(Role.name == name)
    if exclude_id:
        query = query.filter(Role.id != exclude_id)
    return query.first() is not None


def _role_state(role: Role) -> dict:
    state = snapshot(role) or {}
    state["permissions"] = role.permission_names
    return state


@router.get("")
def list_roles(
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("roles:read")),
) -> dict:
    with db_guard("roles/list", logger):
        rows = (
            db.query(Role)
            .options(selectinload(Role.permissions))
            .filter(Role.deleted_at.is_(None))
            .order_by(Role.name.asc())
            .all()
        )
        return success([role_out(row) for row in rows])


@router.get("/{role_id}")
def get_role(
    role_id: str,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("roles:read")),
) -> dict:
    with db_guard("roles/get", logger):
        return success(role_out(_get_role(db, role_id)))


@router.post("", status_code=201)
def create_role(
    payload: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("roles:create")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    with db_guard("roles/create", logger, db=db, conflict_message="Role name already exists"):
        if _name_taken(db, payload.name):
            raise Conflict("Role name already exists")
        role = Role(**payload.model_dump())
        db.add(role)
        db.commit()
        role = _get_role(db, role.id)
        result = role_out(role)
    recorder.record(
        AuditAction.CREATE_ROLE,
        "roles",
        user_id=current.id,
        entity_id=role.id,
        new_state=_role_state(role),
        client=get_client_info(request),
    )
    return success(result)


@router.patch("/{role_id}")
def update_role(
    role_id: str,
    payload: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("roles:update")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    with db_guard("roles/update", logger, db=db, conflict_message="Role name already exists"):
        role = _get_role(db, role_id)
        if role.is_system:
            raise InvalidInput("System roles cannot be modified")
        new_name = changes.get("name")
        if new_name is not None and new_name != role.name:
            if _name_taken(db, new_name, exclude_id=role.id):
                raise Conflict("Role name already exists")
        previous = _role_state(role)
        for key, value in changes.items():
            setattr(role, key, value)
        db.commit()
        result = role_out(role)
    recorder.record(
        AuditAction.UPDATE_ROLE,
        "roles",
        user_id=current.id,
        entity_id=role.id,
        previous_state=previous,
        new_state=_role_state(role),
        client=get_client_info(request),
    )
    return success(result)


@router.delete("/{role_id}")
def delete_role(
    role_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("roles:delete")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    with db_guard("roles/delete", logger, db=db):
        role = _get_role(db, role_id)
        if role.is_system:
            raise InvalidInput("System roles cannot be deleted")
        in_use = db.query(User.id).filter(User.role_id == role.id, User.deleted_at.is_(None)).first()
        if in_use is not None:
            raise InvalidInput("Role is still assigned to users")
        previous = _role_state(role)
        role.deleted_at = utcnow()
        db.commit()
    recorder.record(
        AuditAction.DELETE_ROLE,
        "roles",
        user_id=current.id,
        entity_id=role_id,
        previous_state=previous,
        client=get_client_info(request),
    )
    return success({"id": role_id, "deleted": True})


@router.put("/{role_id}/permissions")
def assign_permissions(
    role_id: str,
    payload: AssignPermissionsIn,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("roles:assign")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    """Replace the role's permission set with exactly the names given."""
    with db_guard("roles/assign", logger, db=db):
        role = _get_role(db, role_id)
        if role.is_system:
            raise InvalidInput("System role permissions cannot be changed")
        found = db.query(Permission).filter(Permission.name.in_(payload.permissions)).all() if payload.permissions else []
        unknown = sorted(set(payload.permissions) - {p.name for p in found})
        if unknown:
            raise InvalidInput("Unknown permissions", details={"unknown": unknown})
        previous = role.permission_names
        role.permissions = sorted(found, key=lambda p: p.name)
        db.commit()
        result = role_out(role)
    recorder.record(
        AuditAction.ASSIGN_PERMISSIONS,
        "roles",
        user_id=current.id,
        entity_id=role.id,
        previous_state={"permissions": previous},
        new_state={"permissions": role.permission_names},
        client=get_client_info(request),
    )
    return success(result)


@permissions_router.get("")
def list_permissions(
    module: Optional[str] = Query(None, max_length=50),
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("roles:read")),
) -> dict:
    with db_guard("permissions/list", logger):
        query = db.query(Permission)
        if module:
            query = query.filter(Permission.module == module)
        rows = query.order_by(Permission.module.asc(), Permission.name.asc()).all()
        return success([PermissionOut.model_validate(row) for row in rows])
