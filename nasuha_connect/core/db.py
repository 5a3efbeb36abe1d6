"""
Database engine and session management for the NASUHA Connect backend.

Uses SQLAlchemy 2.x style `Session` and declarative models. The engine and
session factory are built once in `create_app` and kept on `app.state`;
request handlers receive sessions through the `get_db` dependency, and
background work opens its own sessions from the same factory.
"""

from __future__ import annotations

from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .config import Settings


def build_engine(settings: Settings) -> Engine:
    url = settings.database_url
    if url.startswith("sqlite"):
        # Audit inserts run on worker threads.
        return create_engine(url, echo=False, future=True, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle_sec,
        pool_timeout=settings.db_pool_timeout_sec,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True)


def get_db(request: Request) -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


class SessionContext:
    """Context manager for database sessions outside of request handlers."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def __enter__(self) -> Session:
        self.db = self._session_factory()
        return self.db

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.db.close()


LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """`%term%` for LIKE/ILIKE with the wildcard characters in `term` escaped."""
    escaped = term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
