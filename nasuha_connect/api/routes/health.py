"""
Public liveness and readiness endpoints.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ... import __version__
from ...core.errors import log_exception

router = APIRouter(tags=["health"])
logger = logging.getLogger("health")


@router.get("/")
def root() -> dict:
    return {"name": "NASUHA Connect API", "version": __version__, "status": "ok"}


@router.get("/health")
def health(request: Request):
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        log_exception(logger, "Health check database ping failed", exc=exc)
        return JSONResponse(
            status_code=503,
            content={"status": "degraded", "database": "unreachable", "timestamp": timestamp},
        )
    return {"status": "ok", "database": "ok", "timestamp": timestamp}
