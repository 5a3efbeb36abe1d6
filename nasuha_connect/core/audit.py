"""
Fire-and-forget audit logging for mutations.

`AuditRecorder.record` hands a single insert to a small thread pool and
returns at once. The insert runs on its own session, outside the request's
transaction, so an audit failure can never change the outcome of the request
that triggered it. Failures are logged and dropped; there is no retry.

Audit rows are not guaranteed to be written in the same order as the
mutations they describe.
"""

from __future__ import annotations

import enum
import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional

from fastapi import Request
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from ..models.audit_log import AuditLog
from .errors import log_exception

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "password_hash",
        "passwordhash",
        "new_password",
        "newpassword",
        "current_password",
        "currentpassword",
        "token",
        "access_token",
        "accesstoken",
        "secret",
    }
)


class AuditAction:
    USER_LOGIN = "USER_LOGIN"
    USER_LOGOUT = "USER_LOGOUT"
    USER_IMPERSONATE = "USER_IMPERSONATE"
    CHANGE_PASSWORD = "CHANGE_PASSWORD"

    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"

    CREATE_MEDIA = "CREATE_MEDIA"
    UPDATE_MEDIA = "UPDATE_MEDIA"
    DELETE_MEDIA = "DELETE_MEDIA"
    ARCHIVE_MEDIA = "ARCHIVE_MEDIA"

    CREATE_CATEGORY = "CREATE_CATEGORY"
    UPDATE_CATEGORY = "UPDATE_CATEGORY"
    DELETE_CATEGORY = "DELETE_CATEGORY"

    CREATE_KORDA = "CREATE_KORDA"
    UPDATE_KORDA = "UPDATE_KORDA"
    DELETE_KORDA = "DELETE_KORDA"

    CREATE_ROLE = "CREATE_ROLE"
    UPDATE_ROLE = "UPDATE_ROLE"
    DELETE_ROLE = "DELETE_ROLE"
    ASSIGN_PERMISSIONS = "ASSIGN_PERMISSIONS"


@dataclass(frozen=True)
class ClientInfo:
    ip_address: Optional[str]
    user_agent: Optional[str]


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",", 1)[0].strip() or None
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip() or None
    return request.client.host if request.client else None


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(ip_address=client_ip(request), user_agent=request.headers.get("user-agent"))


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    return str(value)


def redact(value: Any) -> Any:
    """Replace sensitive fields at any depth with a fixed placeholder."""
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            if str(key).lower() in SENSITIVE_KEYS:
                cleaned[key] = REDACTED if item is not None else None
            else:
                cleaned[key] = redact(item)
        return cleaned
    if isinstance(value, list):
        return [redact(item) for item in value]
    return value


def snapshot(row: Any) -> Optional[dict]:
    """Column values of an ORM row as a JSON-safe dict."""
    if row is None:
        return None
    mapper = sa_inspect(row).mapper
    return {attr.key: _json_safe(getattr(row, attr.key)) for attr in mapper.column_attrs}


class AuditRecorder:
    def __init__(self, session_factory: Callable[[], Session], *, max_workers: int = 2) -> None:
        self._session_factory = session_factory
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="audit")
        self._pending: set[Future] = set()
        self._lock = threading.Lock()
        self._logger = logging.getLogger("audit")

    def record(
        self,
        action: str,
        entity_table: str,
        *,
        user_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        previous_state: Any = None,
        new_state: Any = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        metadata: Any = None,
        client: Optional[ClientInfo] = None,
    ) -> None:
        if client is not None:
            ip_address = ip_address or client.ip_address
            user_agent = user_agent or client.user_agent
        try:
            values = {
                "user_id": user_id,
                "action": action,
                "entity_table": entity_table,
                "entity_id": entity_id,
                "previous_state": redact(_json_safe(previous_state)),
                "new_state": redact(_json_safe(new_state)),
                "ip_address": ip_address,
                "user_agent": user_agent,
                "extra": redact(_json_safe(metadata)),
            }
            future = self._executor.submit(self._insert, values)
        except Exception as exc:
            log_exception(self._logger, "Audit log submit failed", extra={"action": action}, exc=exc)
            return
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _insert(self, values: dict) -> None:
        try:
            with self._session_factory() as db:
                db.add(AuditLog(**values))
                db.commit()
        except Exception as exc:
            log_exception(
                self._logger,
                "Audit log insert failed",
                extra={"action": values.get("action"), "entity_table": values.get("entity_table")},
                exc=exc,
            )

    def drain(self, timeout: Optional[float] = 10.0) -> bool:
        """Wait for in-flight inserts. Returns False if some are still running."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


def get_audit_recorder(request: Request) -> AuditRecorder:
    return request.app.state.audit_recorder
