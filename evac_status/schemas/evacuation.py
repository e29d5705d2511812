"""
Pydantic schemas for evacuation status records and manual overrides.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StatusRecord(BaseModel):
    """Persisted on-site/evacuated determination for one (list, person) pair."""

    list_id: int
    list_item_id: int
    enter_stream_ids: Optional[List[int]] = None
    exit_stream_ids: Optional[List[int]] = None
    status: bool = False
    entrance_time: Optional[int] = None
    exit_time: Optional[int] = None
    manually_updated: bool = False

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("status", "manually_updated", mode="before")
    @classmethod
    def null_flag_is_false(cls, value):
        # Rows written by older releases may carry NULL flags.
        return False if value is None else value

    def as_row(self) -> dict:
        return self.model_dump()


class ManualStatusIn(BaseModel):
    status: bool
    # Epoch millis; defaults to the time the override is received
    effective_time_ms: Optional[int] = Field(default=None, ge=0)


class ManualStatusItem(BaseModel):
    list_item_id: int
    status: bool


class ManualStatusBatchIn(BaseModel):
    effective_time_ms: Optional[int] = Field(default=None, ge=0)
    items: List[ManualStatusItem] = Field(min_length=1)


class ActiveIdsOut(BaseModel):
    list_id: int
    items: List[int]


class ListRefreshOut(BaseModel):
    list_id: int
    name: Optional[str] = None
    written: int = 0
    preserved: int = 0
    stale: int = 0
    skipped_reason: Optional[str] = None
    error: Optional[str] = None


class RefreshOut(BaseModel):
    started_at_ms: int
    finished_at_ms: Optional[int] = None
    skipped: bool = False
    error: Optional[str] = None
    lists: List[ListRefreshOut] = Field(default_factory=list)
