"""
Entry point for the NASUHA Connect backend.

This module creates the FastAPI application, wires the database, audit
recorder and rate limiter onto ``app.state`` and includes all API routers.
Run with:

    uvicorn nasuha_connect.main:create_app --factory --reload

"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import api_router
from .core.audit import AuditRecorder
from .core.config import Settings, get_settings, validate_runtime_settings
from .core.db import SessionContext, build_engine, build_session_factory
from .core.errors import install_exception_handlers, log_exception
from .core.rate_limit import SlidingWindowLimiter
from .models import Base
from .scripts.run_migrations import run_migrations_to_head
from .services.media_archive import run_media_auto_archive
from .services.seed import seed_all


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    validate_runtime_settings(settings)
    _configure_logging(settings)

    app = FastAPI(title="NASUHA Connect API", version=__version__)
    engine = build_engine(settings)
    session_factory = build_session_factory(engine)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.audit_recorder = AuditRecorder(session_factory, max_workers=settings.audit_workers)
    app.state.rate_limiter = SlidingWindowLimiter()
    app.state.media_archive_stop = None
    app.state.media_archive_thread = None

    origins = [origin.strip() for origin in settings.cors_origin.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Total-Count", "X-Page", "X-Page-Size"],
    )
    install_exception_handlers(app)
    app.include_router(api_router)

    @app.on_event("startup")
    def _init_db() -> None:
        logger = logging.getLogger("startup")
        if settings.auto_create_db:
            try:
                Base.metadata.create_all(bind=engine)
            except Exception as exc:
                log_exception(logger, "DB create_all failed", exc=exc)
                if settings.is_production:
                    raise
        if settings.auto_run_migrations:
            try:
                run_migrations_to_head(settings.database_url)
            except Exception as exc:
                log_exception(logger, "DB migrations failed", exc=exc)
                if settings.is_production:
                    raise
        if settings.auto_seed:
            try:
                with SessionContext(session_factory) as db:
                    seed_all(db, settings)
            except Exception as exc:
                log_exception(logger, "Seed failed", exc=exc)
                if settings.is_production:
                    raise
        if settings.enable_media_auto_archive:
            stop_event = threading.Event()
            thread = threading.Thread(
                target=run_media_auto_archive,
                args=(stop_event, session_factory, app.state.audit_recorder),
                kwargs={
                    "days": settings.media_auto_archive_days,
                    "interval_sec": settings.media_auto_archive_interval_sec,
                },
                daemon=True,
                name="media-auto-archive",
            )
            thread.start()
            app.state.media_archive_stop = stop_event
            app.state.media_archive_thread = thread
        logger.info("NASUHA Connect API ready env=%s", settings.app_env)

    @app.on_event("shutdown")
    def _shutdown() -> None:
        stop_event = getattr(app.state, "media_archive_stop", None)
        if stop_event:
            stop_event.set()
        thread = getattr(app.state, "media_archive_thread", None)
        if thread:
            thread.join(timeout=5)
        recorder = app.state.audit_recorder
        if not recorder.drain(timeout=10.0):
            logging.getLogger("audit").warning("Audit inserts still pending at shutdown")
        recorder.shutdown()
        engine.dispose()

    return app
