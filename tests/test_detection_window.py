import pytest

from evac_status.core.errors import FaceApiError
from evac_status.schemas.face_api import Detection, DetectionsResponse
from evac_status.services.detection_window import fetch_detections_in_window


def _detection(det_id: int, timestamp: int = 1000) -> Detection:
    return Detection.model_validate(
        {
            "id": det_id,
            "timestamp": timestamp,
            "analytics": {"id": 10},
            "list_item": {"id": det_id % 50, "list_id": 1},
        }
    )


class _PagedSource:
    def __init__(self, count: int, *, report_total: bool = True, report_pages: bool = False) -> None:
        self.events = [_detection(i) for i in range(count)]
        self.report_total = report_total
        self.report_pages = report_pages
        self.calls = []

    def detections(self, list_id, stream_ids, start_ms, end_ms, offset, limit):  # type: ignore[no-untyped-def]
        self.calls.append({"list_id": list_id, "offset": offset, "limit": limit, "stream_ids": stream_ids})
        pages = -(-len(self.events) // limit)
        return DetectionsResponse(
            data=self.events[offset : offset + limit],
            total=len(self.events) if self.report_total else None,
            pages=pages if self.report_pages else None,
        )


def test_window_of_2500_events_takes_three_pages():
    source = _PagedSource(2500)

    detections = fetch_detections_in_window(source, 1, [10, 20], 0, 5000, 1000)

    assert [call["offset"] for call in source.calls] == [0, 1000, 2000]
    assert len(detections) == 2500
    assert len({d.id for d in detections}) == 2500


def test_full_last_page_stops_on_reported_total():
    source = _PagedSource(2000)

    detections = fetch_detections_in_window(source, 1, [10], None, 5000, 1000)

    assert len(source.calls) == 2
    assert len(detections) == 2000


def test_full_last_page_stops_on_reported_page_count():
    source = _PagedSource(2000, report_total=False, report_pages=True)

    detections = fetch_detections_in_window(source, 1, [10], None, 5000, 1000)

    assert len(source.calls) == 2
    assert len(detections) == 2000


def test_without_totals_an_empty_page_ends_the_walk():
    source = _PagedSource(2000, report_total=False)

    detections = fetch_detections_in_window(source, 1, [10], None, 5000, 1000)

    assert [call["offset"] for call in source.calls] == [0, 1000, 2000]
    assert len(detections) == 2000


def test_no_streams_means_no_request():
    source = _PagedSource(10)

    assert fetch_detections_in_window(source, 1, [], None, 5000, 100) == []
    assert source.calls == []


def test_events_repeated_across_pages_are_kept_once():
    class _ShiftingSource(_PagedSource):
        def detections(self, list_id, stream_ids, start_ms, end_ms, offset, limit):  # type: ignore[no-untyped-def]
            # A new event arrived between page requests, shifting the second page by one.
            response = super().detections(list_id, stream_ids, start_ms, end_ms, max(offset - 1, 0), limit)
            response.total = len(self.events) + 1
            return response

    source = _ShiftingSource(4)

    detections = fetch_detections_in_window(source, 1, [10], None, 5000, 2)

    assert [d.id for d in detections] == [0, 1, 2, 3]


def test_page_failure_propagates():
    class _FailingSource(_PagedSource):
        def detections(self, *args, **kwargs):  # type: ignore[no-untyped-def]
            raise FaceApiError("upstream down", status_code=502)

    with pytest.raises(FaceApiError):
        fetch_detections_in_window(_FailingSource(0), 1, [10], None, 5000, 100)


def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        fetch_detections_in_window(_PagedSource(1), 1, [10], None, 5000, 0)
