"""
Seed permissions, roles, sample kordas and the bootstrap admin.

Usage:
    python -m nasuha_connect.scripts.seed
"""

from __future__ import annotations

import logging

from ..core.config import get_settings
from ..core.db import SessionContext, build_engine, build_session_factory
from ..models import Base
from ..services.seed import seed_all


def main() -> int:
    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    engine = build_engine(settings)
    try:
        Base.metadata.create_all(bind=engine)
        with SessionContext(build_session_factory(engine)) as db:
            seed_all(db, settings)
    finally:
        engine.dispose()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
