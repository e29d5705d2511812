"""
Fetch every detection of a list inside a time window.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from ..schemas.face_api import Detection, DetectionsResponse

logger = logging.getLogger("detection_window")


class DetectionSource(Protocol):
    def detections(
        self,
        list_id: Optional[int],
        stream_ids: List[int],
        start_ms: Optional[int],
        end_ms: Optional[int],
        offset: int,
        limit: int,
    ) -> DetectionsResponse: ...


def _exhausted(page: DetectionsResponse, page_index: int, next_offset: int) -> bool:
    if page.total is not None and next_offset >= page.total:
        return True
    if page.pages is not None and page_index + 1 >= page.pages:
        return True
    return False


def fetch_detections_in_window(
    source: DetectionSource,
    list_id: int,
    stream_ids: List[int],
    start_ms: Optional[int],
    end_ms: Optional[int],
    page_size: int,
) -> List[Detection]:
    """
    Page through the detection search from offset 0 and return one flat list.

    Stops on a short page or when the reported total/page count says there is
    nothing left. A failing page propagates; no retries are made here. The
    result keeps source order, which is not guaranteed to be chronological.
    """
    if page_size < 1:
        raise ValueError("page_size must be positive")
    if not stream_ids:
        return []
    collected: List[Detection] = []
    seen_ids: set[int] = set()
    offset = 0
    page_index = 0
    while True:
        page = source.detections(list_id, stream_ids, start_ms, end_ms, offset, page_size)
        data = page.data
        for detection in data:
            if detection.id is not None:
                if detection.id in seen_ids:
                    continue
                seen_ids.add(detection.id)
            collected.append(detection)
        if len(data) < page_size:
            break
        offset += page_size
        if _exhausted(page, page_index, offset):
            break
        page_index += 1
    logger.debug(
        "Fetched %s detections for list_id=%s in %s page(s)", len(collected), list_id, page_index + 1
    )
    return collected
