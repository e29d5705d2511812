"""
Time-attendance configuration of face lists.

A face list takes part in evacuation tracking only when its time-attendance
block is present and explicitly enabled. Its entrance and exit analytics ids
decide which detections mark a person as on site.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..schemas.face_api import FaceList

logger = logging.getLogger("attendance_config")


def _unique(ids: Iterable[int]) -> Tuple[int, ...]:
    seen: dict[int, None] = {}
    for value in ids:
        seen.setdefault(int(value), None)
    return tuple(seen)


@dataclass(frozen=True)
class AttendanceConfig:
    list_id: int
    name: Optional[str]
    entrance_stream_ids: Tuple[int, ...]
    exit_stream_ids: Tuple[int, ...]

    def all_stream_ids(self) -> List[int]:
        return list(_unique(self.entrance_stream_ids + self.exit_stream_ids))

    def is_entrance(self, stream_id: Optional[int]) -> bool:
        if stream_id is None:
            return False
        return stream_id in self.entrance_stream_ids


def attendance_config_from(face_list: FaceList) -> Optional[AttendanceConfig]:
    """Return the list's config, or None when tracking is missing or disabled."""
    attendance = face_list.time_attendance
    if attendance is None or attendance.enabled is not True:
        return None
    entrance = _unique(attendance.entrance_analytics_ids)
    exit_ = _unique(attendance.exit_analytics_ids)
    overlap = set(entrance) & set(exit_)
    if overlap:
        logger.warning(
            "List %s has streams configured as both entrance and exit: %s; treating them as entrance",
            face_list.id,
            sorted(overlap),
        )
    if not entrance:
        logger.info("List %s has no entrance streams; everyone will reconcile to evacuated", face_list.id)
    return AttendanceConfig(
        list_id=face_list.id,
        name=face_list.name,
        entrance_stream_ids=entrance,
        exit_stream_ids=exit_,
    )


def resolve_enabled_lists(face_lists: Iterable[FaceList]) -> List[AttendanceConfig]:
    configs: List[AttendanceConfig] = []
    for face_list in face_lists:
        config = attendance_config_from(face_list)
        if config is None:
            logger.debug("Skip list %s: attendance disabled or missing", face_list.id)
            continue
        configs.append(config)
    return configs
