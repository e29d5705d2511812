"""
Pydantic schemas for face API responses (lists, list items, detections).

Upstream payloads are loosely populated: a field may be missing, explicitly
null, or present. Scalars treat missing and null alike as ``None``; list
fields are normalized to empty lists.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger("face_api")


class _UpstreamModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _none_to_empty(value):
    return [] if value is None else value


class TimeAttendance(_UpstreamModel):
    enabled: Optional[bool] = None
    entrance_analytics_ids: List[int] = Field(default_factory=list)
    exit_analytics_ids: List[int] = Field(default_factory=list)

    @field_validator("entrance_analytics_ids", "exit_analytics_ids", mode="before")
    @classmethod
    def default_empty_lists(cls, value):
        return _none_to_empty(value)


class FaceList(_UpstreamModel):
    id: int
    name: Optional[str] = None
    comment: Optional[str] = None
    time_attendance: Optional[TimeAttendance] = None


class FaceListsResponse(_UpstreamModel):
    data: List[FaceList] = Field(default_factory=list)
    status: Optional[str] = None
    total: Optional[int] = None
    pages: Optional[int] = None

    @field_validator("data", mode="before")
    @classmethod
    def drop_malformed_lists(cls, value):
        """A list whose entry fails validation is left out, not the whole response."""
        value = _none_to_empty(value)
        if not isinstance(value, list):
            return value
        lists: List[FaceList] = []
        for entry in value:
            try:
                lists.append(FaceList.model_validate(entry))
            except ValidationError as exc:
                list_id = entry.get("id") if isinstance(entry, dict) else None
                logger.warning(
                    "Skip list %s: malformed configuration (%s error(s))", list_id, exc.error_count()
                )
        return lists


class ListImage(_UpstreamModel):
    id: Optional[int] = None
    path: Optional[str] = None


class ListItem(_UpstreamModel):
    id: int
    name: Optional[str] = None
    list_id: Optional[int] = None
    comment: Optional[str] = None
    images: List[ListImage] = Field(default_factory=list)

    @field_validator("images", mode="before")
    @classmethod
    def default_empty_images(cls, value):
        return _none_to_empty(value)


class ListItemsResponse(_UpstreamModel):
    data: List[ListItem] = Field(default_factory=list)
    total: Optional[int] = None

    @field_validator("data", mode="before")
    @classmethod
    def default_empty_data(cls, value):
        return _none_to_empty(value)


class AnalyticsRef(_UpstreamModel):
    id: Optional[int] = None
    stream_id: Optional[int] = None


class DetectionListItemRef(_UpstreamModel):
    id: Optional[int] = None
    list_id: Optional[int] = None
    name: Optional[str] = None


class Detection(_UpstreamModel):
    id: Optional[int] = None
    timestamp: Optional[int] = None
    analytics: Optional[AnalyticsRef] = None
    list_item: Optional[DetectionListItemRef] = None
    face_image: Optional[str] = None

    @property
    def stream_id(self) -> Optional[int]:
        if self.analytics is None:
            return None
        if self.analytics.stream_id is not None:
            return self.analytics.stream_id
        return self.analytics.id

    @property
    def person_id(self) -> Optional[int]:
        if self.list_item is None:
            return None
        return self.list_item.id


class DetectionsResponse(_UpstreamModel):
    data: List[Detection] = Field(default_factory=list)
    total: Optional[int] = None
    pages: Optional[int] = None
    status: Optional[str] = None

    @field_validator("data", mode="before")
    @classmethod
    def default_empty_data(cls, value):
        return _none_to_empty(value)
