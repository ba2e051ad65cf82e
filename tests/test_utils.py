import io
import json
import time
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from callcenter.model.utils import (
    ERR_QUEUE_MAX_WAIT_SIZE,
    AppError,
    array_from_json,
    array_to_json,
    get_millis,
    int64_to_time,
    map_from_json,
    map_string_interface_to_string,
    map_to_json,
    new_id,
    new_uuid,
    string_interface_to_json,
    time_to_int64,
    union_string_maps,
    utc_time,
)


def test_app_error_message_and_str():
    err = AppError("Where.Func", "some.id", None, "details here", 500)
    assert err.message == "some.id"
    assert err.status_code == 500
    assert str(err) == "Where.Func: some.id, details here"


def test_app_error_can_be_raised():
    err = AppError("X", "y.z", {"a": 1}, "d", 404)
    assert err.id == "y.z"
    assert err.params == {"a": 1}
    assert err.detailed_error == "d"
    with pytest.raises(AppError) as info:
        raise err
    assert str(info.value) == "X: y.z, d"


def test_app_error_to_json_fields():
    err = AppError("W", "err.id", None, "detail text", 400)
    data = json.loads(err.to_json())
    assert data["id"] == "err.id"
    assert data["message"] == "err.id"
    assert data["detail"] == "detail text"
    assert data["status_code"] == 400
    assert "request_id" not in data
    assert "is_oauth" not in data
    assert "where" not in data


def test_app_error_to_json_omits_zero_status():
    data = json.loads(AppError("W", "e", None, "", 0).to_json())
    assert "status_code" not in data


def test_queue_max_wait_size_error():
    data = json.loads(ERR_QUEUE_MAX_WAIT_SIZE.to_json())
    assert data["id"] == "queue.bad_request.max_wait_size"
    assert data["status_code"] == 400
    assert data["detail"] == "Queue max wait size"
    assert str(ERR_QUEUE_MAX_WAIT_SIZE) == "Queue: queue.bad_request.max_wait_size, Queue max wait size"


def test_time_none_and_zero():
    assert time_to_int64(None) == 0
    assert int64_to_time(0) is None


@pytest.mark.parametrize("millis", [1_700_000_000_123, 1, 86_400_000, -5000])
def test_time_round_trip(millis):
    assert time_to_int64(int64_to_time(millis)) == millis


def test_time_to_int64_respects_offsets():
    utc = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    shifted = utc.astimezone(timezone(timedelta(hours=3)))
    assert time_to_int64(utc) == time_to_int64(shifted)


def test_utc_time_keeps_instant():
    local = datetime(2024, 5, 1, 15, 0, tzinfo=timezone(timedelta(hours=3)))
    converted = utc_time(local)
    assert converted.utcoffset() == timedelta(0)
    assert converted == local
    assert utc_time(None) is None


def test_new_id_shape_and_uniqueness():
    alphabet = set("ybndrfg8ejkmcpqxot1uwisza345h769")
    ids = {new_id() for _ in range(50)}
    assert len(ids) == 50
    for value in ids:
        assert len(value) == 26
        assert set(value) <= alphabet


def test_new_uuid_is_version_4():
    parsed = uuid.UUID(new_uuid())
    assert parsed.version == 4


def test_map_json_round_trip():
    original = {"b": "2", "a": "1"}
    assert map_from_json(map_to_json(original)) == original
    assert map_from_json(io.StringIO(map_to_json(original))) == original
    assert map_from_json(map_to_json(original).encode()) == original


@pytest.mark.parametrize("bad", ["not json", "[1,2]", '{"a": 1}', ""])
def test_map_from_json_invalid_gives_empty(bad):
    assert map_from_json(bad) == {}


def test_array_json_round_trip():
    original = ["x", "y", "z"]
    assert array_from_json(array_to_json(original)) == original
    assert array_from_json(io.BytesIO(array_to_json(original).encode())) == original


@pytest.mark.parametrize("bad", ["{}", "[1]", "garbage"])
def test_array_from_json_invalid_gives_empty(bad):
    assert array_from_json(bad) == []


def test_string_interface_to_json_round_trip():
    original = {"n": 5, "s": "v", "l": [1, 2]}
    assert json.loads(string_interface_to_json(original)) == original


def test_map_string_interface_to_string():
    result = map_string_interface_to_string(
        {"a": 1, "b": True, "c": "x", "d": None, "e": 1.5, "f": 1e6}
    )
    assert result["a"] == "1"
    assert result["b"] == "true"
    assert result["c"] == "x"
    assert result["d"] == "<nil>"
    assert result["e"] == "1.5"
    assert result["f"] == "1e+06"


def test_union_string_maps_later_wins_and_skips_empty():
    result = union_string_maps(
        {"a": "1", "b": "2"},
        None,
        {"b": "3", "c": "", "": "x"},
    )
    assert result == {"a": "1", "b": "3"}


def test_get_millis_close_to_now():
    before = int(time.time() * 1000)
    value = get_millis()
    after = int(time.time() * 1000)
    assert before - 1 <= value <= after + 1