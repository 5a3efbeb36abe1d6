"""
Run Alembic migrations to head.

Usage:
    python -m nasuha_connect.scripts.run_migrations
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

INITIAL_REVISION = "20261019_01"


def _build_alembic_config(database_url: Optional[str] = None) -> Config:
    project_root = Path(__file__).resolve().parents[2]
    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini}")
    cfg = Config(str(alembic_ini))
    cfg.attributes["configure_logger"] = False
    cfg.set_main_option("script_location", str(project_root / "alembic"))
    db_url = database_url or os.getenv("DATABASE_URL")
    if db_url:
        cfg.attributes["database_url"] = db_url
    return cfg


def _needs_baseline_stamp(cfg: Config) -> bool:
    db_url = cfg.attributes.get("database_url") or cfg.get_main_option("sqlalchemy.url")
    if not db_url:
        return False
    engine = create_engine(db_url)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    if "alembic_version" in tables:
        return False
    # Databases built by create_all() have the schema but no Alembic state.
    return {"users", "roles", "permissions"} <= tables


def run_migrations_to_head(database_url: Optional[str] = None) -> None:
    cfg = _build_alembic_config(database_url)
    if _needs_baseline_stamp(cfg):
        command.stamp(cfg, INITIAL_REVISION)
    command.upgrade(cfg, "head")


def main() -> int:
    logging.basicConfig(level=logging.INFO)
    try:
        run_migrations_to_head()
    except Exception as exc:
        logging.getLogger("migrations").error("Migration failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
