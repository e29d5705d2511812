"""
Run Alembic migrations to head.

Usage:
    python -m evac_status.scripts.run_migrations
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect


LEGACY_BASELINE_REVISION = "20261019_01"


def _build_alembic_config(database_url: Optional[str] = None) -> Config:
    project_root = Path(__file__).resolve().parents[2]
    alembic_ini = project_root / "alembic.ini"
    if not alembic_ini.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini}")
    cfg = Config(str(alembic_ini))
    cfg.set_main_option("script_location", str(project_root / "alembic"))
    db_url = database_url or os.getenv("DATABASE_URL")
    if db_url:
        cfg.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))
    return cfg


def _needs_legacy_bootstrap(cfg: Config) -> bool:
    db_url = cfg.get_main_option("sqlalchemy.url")
    if not db_url:
        return False
    engine = create_engine(db_url)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    if "alembic_version" in tables:
        return False
    # Tables built by create_all() carry no Alembic state.
    return "evacuation_status" in tables


def run_migrations_to_head(database_url: Optional[str] = None) -> None:
    cfg = _build_alembic_config(database_url)
    if _needs_legacy_bootstrap(cfg):
        command.stamp(cfg, LEGACY_BASELINE_REVISION)
    command.upgrade(cfg, "head")


def main() -> int:
    try:
        run_migrations_to_head()
    except Exception as exc:
        print(exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
