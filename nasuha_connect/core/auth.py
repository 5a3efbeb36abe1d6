"""
Request authentication and permission gating for FastAPI routes.

`authenticate` runs the per-request state machine: no token, invalid token,
unknown identity and inactive identity all stop the request before any
handler runs. On success it returns a typed `AuthContext` that handlers and
permission gates receive through dependency injection.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import replace
from typing import Iterable, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from .authorization import AuthContext, has_all, has_any, resolve_auth_context
from .db import get_db
from .errors import ErrorCode, Forbidden, Unauthorized
from .security import TokenInvalid, verify_token

logger = logging.getLogger("auth")


class GateMode(str, enum.Enum):
    ALL = "all"
    ANY = "any"


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    if not authorization.lower().startswith("bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None


def authenticate(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> AuthContext:
    token = extract_bearer_token(authorization)
    if not token:
        raise Unauthorized("Missing bearer token")

    verified = verify_token(request.app.state.settings.jwt_secret, token)
    if isinstance(verified, TokenInvalid):
        code = ErrorCode.TOKEN_EXPIRED if verified.expired else ErrorCode.INVALID_TOKEN
        raise Unauthorized("Invalid or expired token", code=code)

    context = resolve_auth_context(db, verified.sub)
    if context is None:
        raise Unauthorized("Unauthorized")
    if not context.is_active:
        logger.info("Rejected inactive user id=%s", context.id)
        raise Forbidden("Account is inactive")
    return replace(context, claims=verified)


class PermissionGate:
    """Dependency requiring all (or any) of a fixed permission list."""

    def __init__(self, permissions: Iterable[str], mode: GateMode = GateMode.ALL) -> None:
        self.permissions = tuple(permissions)
        self.mode = GateMode(mode)

    def check(self, context: Optional[AuthContext]) -> AuthContext:
        if context is None:
            raise Unauthorized("Unauthorized")
        if self.mode is GateMode.ALL:
            allowed = has_all(context, self.permissions)
            message = f"Access denied. Required permission: {', '.join(self.permissions)}"
        else:
            allowed = has_any(context, self.permissions)
            message = f"Access denied. Required any of permissions: {', '.join(self.permissions)}"
        if not allowed:
            raise Forbidden(message, details={"required": list(self.permissions), "mode": self.mode.value})
        return context

    def __call__(self, context: AuthContext = Depends(authenticate)) -> AuthContext:
        return self.check(context)


def require_permission(*permissions: str) -> PermissionGate:
    return PermissionGate(permissions, GateMode.ALL)


def require_any_permission(*permissions: str) -> PermissionGate:
    return PermissionGate(permissions, GateMode.ANY)
