"""
Database session management for the evacuation status backend.

Uses SQLAlchemy 2.x style `Session` and declarative models. Provides the
engine and session factory shared by the API and the worker.
"""

from __future__ import annotations

import os
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import settings


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except Exception:
        return default


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        # SQLite pools do not accept the sizing arguments below.
        return create_engine(
            database_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_size=_env_int("DB_POOL_SIZE", 5),
        max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
        pool_recycle=_env_int("DB_POOL_RECYCLE_SEC", 1800),
        pool_timeout=_env_int("DB_POOL_TIMEOUT_SEC", 30),
    )


# Create SQLAlchemy engine
engine = build_engine(settings.database_url)

# Create a configured session factory
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

