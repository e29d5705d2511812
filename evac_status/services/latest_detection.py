"""
Reduce a list's detections to the latest one per person.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional

from ..schemas.face_api import Detection


def select_latest_detections(
    detections: Iterable[Detection],
    roster_ids: Iterable[int],
    list_id: Optional[int] = None,
) -> Dict[int, Detection]:
    """
    Map person id to the detection with the greatest timestamp.

    Input order is not assumed to be chronological. On equal timestamps the
    detection seen later in the input wins. Detections without a matched
    person, for a person outside the roster, tagged with another list, or
    without a timestamp are ignored.
    """
    roster = set(roster_ids)
    latest: Dict[int, Detection] = {}
    for detection in detections:
        person_id = detection.person_id
        if person_id is None or person_id not in roster:
            continue
        if detection.timestamp is None:
            continue
        if list_id is not None and detection.list_item is not None:
            owner = detection.list_item.list_id
            if owner is not None and owner != list_id:
                continue
        previous = latest.get(person_id)
        if previous is None or detection.timestamp >= previous.timestamp:
            latest[person_id] = detection
    return latest
