import logging

from evac_status.schemas.face_api import FaceList, FaceListsResponse
from evac_status.services.attendance_config import (
    AttendanceConfig,
    attendance_config_from,
    resolve_enabled_lists,
)


def _face_list(list_id: int, attendance) -> FaceList:
    payload = {"id": list_id, "name": f"List {list_id}"}
    if attendance is not ...:
        payload["time_attendance"] = attendance
    return FaceList.model_validate(payload)


def test_only_explicitly_enabled_lists_are_tracked():
    lists = [
        _face_list(1, {"enabled": True, "entrance_analytics_ids": [10], "exit_analytics_ids": [20]}),
        _face_list(2, {"enabled": False, "entrance_analytics_ids": [11], "exit_analytics_ids": [21]}),
        _face_list(3, None),
        _face_list(4, ...),
        _face_list(5, {"entrance_analytics_ids": [12]}),
        _face_list(6, {"enabled": True, "entrance_analytics_ids": [13], "exit_analytics_ids": [22, 23]}),
    ]

    configs = resolve_enabled_lists(lists)

    assert [config.list_id for config in configs] == [1, 6]
    assert configs[0] == AttendanceConfig(
        list_id=1, name="List 1", entrance_stream_ids=(10,), exit_stream_ids=(20,)
    )
    assert configs[1].exit_stream_ids == (22, 23)


def test_null_stream_lists_become_empty():
    config = attendance_config_from(
        _face_list(1, {"enabled": True, "entrance_analytics_ids": None, "exit_analytics_ids": None})
    )

    assert config is not None
    assert config.entrance_stream_ids == ()
    assert config.exit_stream_ids == ()
    assert config.all_stream_ids() == []


def test_duplicate_stream_ids_are_collapsed_in_order():
    config = attendance_config_from(
        _face_list(1, {"enabled": True, "entrance_analytics_ids": [3, 1, 3], "exit_analytics_ids": [2, 1]})
    )

    assert config.entrance_stream_ids == (3, 1)
    assert config.all_stream_ids() == [3, 1, 2]


def test_stream_in_both_sets_counts_as_entrance(caplog):
    caplog.set_level(logging.WARNING)
    config = attendance_config_from(
        _face_list(9, {"enabled": True, "entrance_analytics_ids": [1, 2], "exit_analytics_ids": [2, 3]})
    )

    assert config.is_entrance(2) is True
    assert config.is_entrance(3) is False
    assert config.is_entrance(None) is False
    assert any("both entrance and exit" in rec.message for rec in caplog.records)


def test_face_lists_response_tolerates_null_data():
    response = FaceListsResponse.model_validate({"data": None, "status": "ok"})

    assert response.data == []
    assert resolve_enabled_lists(response.data) == []


def test_malformed_list_does_not_hide_valid_lists():
    response = FaceListsResponse.model_validate(
        {
            "data": [
                {"id": 1, "time_attendance": {"enabled": True, "entrance_analytics_ids": "cam-a"}},
                {"id": 2, "time_attendance": {"enabled": True, "entrance_analytics_ids": [10], "exit_analytics_ids": [20]}},
            ]
        }
    )

    assert [config.list_id for config in resolve_enabled_lists(response.data)] == [2]
