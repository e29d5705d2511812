"""
SQLAlchemy model base class for the evacuation status backend.

All models should inherit from the declarative `Base` defined here.
"""

from __future__ import annotations

from sqlalchemy import JSON, Integer
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.types import TypeDecorator


class IntArray(TypeDecorator):
    """PostgreSQL ``integer[]``; stored as JSON on SQLite."""

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(ARRAY(Integer))
        return dialect.type_descriptor(JSON())

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return [int(v) for v in value]

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return [int(v) for v in value]


from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


from .evacuation_status import EvacuationStatus  # noqa: E402,F401

__all__ = [
    "Base",
    "IntArray",
    "EvacuationStatus",
]
