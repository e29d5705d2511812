"""
Evacuation status decisions.

Combines the latest detection of each person with the persisted status row
to produce the row to write. Rules:

* A person is on site when their latest detection came from an entrance
  stream. No detection, an exit stream or an unknown stream means evacuated.
* A manual override stands until a detection strictly newer than the
  override's effective time is observed.
* ``entrance_time`` is the timestamp of the entrance detection behind an
  on-site status and is cleared when the person is evacuated. ``exit_time``
  is the timestamp of the detection that last evacuated the person and is
  kept as last-known while they are on site.
* A manual override stores its effective time in ``entrance_time`` (on site)
  or ``exit_time`` (evacuated) and clears the other one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from ..schemas.evacuation import StatusRecord
from ..schemas.face_api import Detection
from .attendance_config import AttendanceConfig


@dataclass
class ReconcileOutcome:
    records: List[StatusRecord] = field(default_factory=list)
    preserved: List[int] = field(default_factory=list)
    stale: List[int] = field(default_factory=list)


def _stream_ids(ids: Iterable[int]) -> Optional[List[int]]:
    values = list(ids)
    return values or None


def override_effective_time(record: StatusRecord) -> Optional[int]:
    times = [t for t in (record.entrance_time, record.exit_time) if t is not None]
    return max(times) if times else None


def override_holds(existing: Optional[StatusRecord], latest: Optional[Detection]) -> bool:
    """True when a manual override must be kept as is."""
    if existing is None or not existing.manually_updated:
        return False
    if latest is None or latest.timestamp is None:
        return True
    basis = override_effective_time(existing)
    if basis is None:
        return False
    return latest.timestamp <= basis


def reconcile_person(
    config: AttendanceConfig,
    person_id: int,
    latest: Optional[Detection],
    existing: Optional[StatusRecord],
) -> Optional[StatusRecord]:
    """Return the row to write, or None when the existing row must be preserved."""
    if override_holds(existing, latest):
        return None

    on_site = latest is not None and config.is_entrance(latest.stream_id)
    previous_exit: Optional[int] = None
    if existing is not None and not existing.manually_updated:
        previous_exit = existing.exit_time

    if on_site:
        entrance_time = latest.timestamp
        exit_time = previous_exit
    else:
        entrance_time = None
        exit_time = latest.timestamp if latest is not None else previous_exit

    return StatusRecord(
        list_id=config.list_id,
        list_item_id=person_id,
        enter_stream_ids=_stream_ids(config.entrance_stream_ids),
        exit_stream_ids=_stream_ids(config.exit_stream_ids),
        status=on_site,
        entrance_time=entrance_time,
        exit_time=exit_time,
        manually_updated=False,
    )


def reconcile_list(
    config: AttendanceConfig,
    roster_ids: Iterable[int],
    latest_by_person: Mapping[int, Detection],
    existing_by_person: Mapping[int, StatusRecord],
) -> ReconcileOutcome:
    """
    Compute the rows to write for every roster member of a list.

    Rows of persons that left the roster are reported as stale and left
    untouched.
    """
    outcome = ReconcileOutcome()
    roster: Dict[int, None] = dict.fromkeys(roster_ids)
    for person_id in roster:
        record = reconcile_person(
            config,
            person_id,
            latest_by_person.get(person_id),
            existing_by_person.get(person_id),
        )
        if record is None:
            outcome.preserved.append(person_id)
            continue
        outcome.records.append(record)
    outcome.stale = [pid for pid in existing_by_person if pid not in roster]
    return outcome


def apply_manual_override(
    list_id: int,
    list_item_id: int,
    status: bool,
    effective_time_ms: int,
    existing: Optional[StatusRecord] = None,
) -> StatusRecord:
    return StatusRecord(
        list_id=list_id,
        list_item_id=list_item_id,
        enter_stream_ids=existing.enter_stream_ids if existing is not None else None,
        exit_stream_ids=existing.exit_stream_ids if existing is not None else None,
        status=status,
        entrance_time=effective_time_ms if status else None,
        exit_time=None if status else effective_time_ms,
        manually_updated=True,
    )
