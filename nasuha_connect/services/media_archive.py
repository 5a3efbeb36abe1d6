"""
Background auto-archive for stale media.

Media older than MEDIA_AUTO_ARCHIVE_DAYS that are still live and unarchived
are archived in place. Each archived row gets an ARCHIVE_MEDIA audit entry
with no actor, marking it as a system action.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from ..core.audit import AuditAction, AuditRecorder, snapshot
from ..core.db import SessionContext
from ..core.errors import log_exception
from ..models.media import MediaContent

MIN_INTERVAL_SEC = 60


def _ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def archive_stale_media(
    db: Session,
    recorder: Optional[AuditRecorder],
    days: int,
    *,
    now: Optional[datetime] = None,
) -> int:
    """Archive media created more than `days` ago. Returns number archived."""
    current = _ensure_utc(now or datetime.now(timezone.utc))
    cutoff = current - timedelta(days=days)
    # SQLite keeps the UTC wall time without an offset.
    candidates = (
        db.query(MediaContent)
        .filter(
            MediaContent.deleted_at.is_(None),
            MediaContent.is_archived.is_(False),
            MediaContent.created_at < cutoff,
        )
        .all()
    )
    archived = []
    for media in candidates:
        previous = snapshot(media)
        media.is_archived = True
        media.archived_at = current
        archived.append((media, previous))
    if not archived:
        return 0
    db.commit()
    if recorder is not None:
        for media, previous in archived:
            recorder.record(
                AuditAction.ARCHIVE_MEDIA,
                "media_contents",
                user_id=None,
                entity_id=media.id,
                previous_state=previous,
                new_state=snapshot(media),
                metadata={"reason": "auto_archive", "days": days},
            )
    return len(archived)


def run_media_auto_archive(
    stop_event: threading.Event,
    session_factory: sessionmaker,
    recorder: AuditRecorder,
    *,
    days: int,
    interval_sec: int,
) -> None:
    logger = logging.getLogger("media_archive")
    interval_sec = max(MIN_INTERVAL_SEC, interval_sec)
    logger.info("Media auto-archive started (days=%s interval=%ss)", days, interval_sec)
    while not stop_event.is_set():
        try:
            with SessionContext(session_factory) as db:
                count = archive_stale_media(db, recorder, days)
            if count:
                logger.info("Auto-archived media count=%s", count)
        except Exception as exc:
            log_exception(logger, "Media auto-archive cycle failed", exc=exc)
        stop_event.wait(interval_sec)
    logger.info("Media auto-archive stopped")
