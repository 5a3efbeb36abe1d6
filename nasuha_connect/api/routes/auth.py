"""
Authentication endpoints: login, registration, profile, impersonation and
password change.

Login and register are rate limited per client IP.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...core.audit import AuditAction, AuditRecorder, get_audit_recorder, get_client_info, snapshot
from ...core.auth import authenticate, require_permission
from ...core.authorization import AuthContext, branch_scope, load_active_user
from ...core.db import get_db
from ...core.errors import Forbidden, InvalidInput, NotFound, Unauthorized, db_guard
from ...core.rate_limit import login_rate_limit, register_rate_limit
from ...core.responses import success
from ...core.security import create_access_token, dummy_password_hash, hash_password, verify_password
from ...models.user import User
from ...schemas.auth import ChangePasswordIn, ImpersonateIn, ImpersonateOut, LoginIn, LoginOut, ProfileOut, SessionUser
from ...schemas.user import UserCreate, UserOut
from ...services.users import create_user_account

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger("auth")

INVALID_CREDENTIALS = "Invalid email or password"
IMPERSONATION_WARNING = "You are now impersonating this user. All actions will be logged."


def _issue_token(request: Request, user: User) -> str:
    settings = request.app.state.settings
    return create_access_token(
        settings.jwt_secret,
        user_id=user.id,
        email=user.email,
        role_id=user.role_id,
        korda_id=user.korda_id,
        expires_in=settings.token_lifetime,
    )


@router.post("/login", dependencies=[Depends(login_rate_limit)])
def login(
    payload: LoginIn,
    request: Request,
    db: Session = Depends(get_db),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    with db_guard("auth/login", logger, db=db):
        user = (
            db.query(User)
            .options(selectinload(User.role), selectinload(User.korda))
            .filter(func.lower(User.email) == payload.email, User.deleted_at.is_(None))
            .first()
        )
    # Unknown email, missing hash and wrong password look the same to the client.
    stored = user.password_hash if user is not None else None
    password_ok = verify_password(payload.password, stored or dummy_password_hash())
    if not stored or not password_ok:
        raise Unauthorized(INVALID_CREDENTIALS)
    if not user.is_active:
        raise Forbidden("Account is inactive. Contact an administrator.")

    token = _issue_token(request, user)
    recorder.record(
        AuditAction.USER_LOGIN,
        "users",
        user_id=user.id,
        entity_id=user.id,
        client=get_client_info(request),
    )
    logger.info("Login ok user_id=%s", user.id)
    return success(LoginOut(token=token, user=SessionUser.model_validate(user)))


@router.post("/register", status_code=201, dependencies=[Depends(register_rate_limit)])
def register(
    payload: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("users:create")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    with db_guard("auth/register", logger, db=db, conflict_message="Email already registered"):
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


@router.get("/me")
def me(
    db: Session = Depends(get_db),
    current: AuthContext = Depends(authenticate),
) -> dict:
    with db_guard("auth/me", logger):
        user = load_active_user(db, current.id)
        if user is None:
            raise NotFound("User not found")
        profile = SessionUser.model_validate(user)
    return success(ProfileOut(**profile.model_dump(), permissions=sorted(current.permissions)))


@router.post("/impersonate")
def impersonate(
    payload: ImpersonateIn,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(require_permission("users:impersonate")),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    if payload.target_user_id == current.id:
        raise InvalidInput("Cannot impersonate yourself")
    with db_guard("auth/impersonate", logger):
        target = load_active_user(db, payload.target_user_id)
        if target is None:
            raise NotFound("User not found")
        if not target.is_active:
            raise InvalidInput("Cannot impersonate an inactive user")
        impersonating = SessionUser.model_validate(target)

    token = _issue_token(request, target)
    recorder.record(
        AuditAction.USER_IMPERSONATE,
        "users",
        user_id=current.id,
        entity_id=target.id,
        metadata={
            "impersonatorId": current.id,
            "impersonatorEmail": current.email,
            "targetUserId": target.id,
            "targetUserEmail": target.email,
            "reason": payload.reason,
        },
        client=get_client_info(request),
    )
    logger.warning("Impersonation started impersonator=%s target=%s", current.id, target.id)
    return success(ImpersonateOut(token=token, impersonating=impersonating, warning=IMPERSONATION_WARNING))


@router.post("/change-password")
def change_password(
    payload: ChangePasswordIn,
    request: Request,
    db: Session = Depends(get_db),
    current: AuthContext = Depends(authenticate),
    recorder: AuditRecorder = Depends(get_audit_recorder),
) -> dict:
    with db_guard("auth/change-password", logger, db=db):
        user = load_active_user(db, current.id)
        if user is None:
            raise NotFound("User not found")
        if not verify_password(payload.current_password, user.password_hash):
            raise InvalidInput("Current password is incorrect")
        user.password_hash = hash_password(payload.new_password)
        db.commit()
    recorder.record(
        AuditAction.CHANGE_PASSWORD,
        "users",
        user_id=current.id,
        entity_id=current.id,
        client=get_client_info(request),
    )
    return success({"message": "Password updated"})
