"""
ORM model for per-person evacuation status.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Boolean, Integer
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, IntArray


class EvacuationStatus(Base):
    __tablename__ = "evacuation_status"

    list_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    list_item_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    # Stream sets in effect when the status was last computed
    enter_stream_ids: Mapped[Optional[list[int]]] = mapped_column(IntArray, nullable=True)
    exit_stream_ids: Mapped[Optional[list[int]]] = mapped_column(IntArray, nullable=True)
    status: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    # Epoch millis
    entrance_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    exit_time: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    manually_updated: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    def __repr__(self) -> str:
        return (
            f"EvacuationStatus(list_id={self.list_id}, list_item_id={self.list_item_id}, "
            f"status={self.status}, manually_updated={self.manually_updated})"
        )
