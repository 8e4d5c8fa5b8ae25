import pytest

from opset import InvalidOperationError
from opset.traversal import (
    MISSING,
    apply_at_path,
    cast_at,
    map_at,
    map_value,
    wrap_at,
    wrap_value,
)


def test_apply_at_path__passes_missing_for_absent_terminal_key():
    seen = []

    def _leaf(current):
        seen.append(current)
        return current

    result = apply_at_path({"a": {}}, "a.b", _leaf)

    assert seen == [MISSING]
    assert result == {"a": {}}


def test_apply_at_path__applies_leaf_to_root():
    assert apply_at_path(3, ".", lambda current: current + 1) == 4


def test_apply_at_path__does_not_call_leaf_for_unresolved_branch():
    calls = []

    apply_at_path({"a": 1}, "a.b.c", calls.append)

    assert calls == []


def test_cast__casts_nested_field(payload):
    result = cast_at(payload, "info.code", "number")

    assert result["info"]["code"] == 6


def test_cast__casts_wildcard_fields(payload):
    result = cast_at(payload, "data.$.age", "string")

    assert [item["age"] for item in result["data"]] == ["75", "75"]


def test_cast__leaves_missing_field_missing():
    data = {"a": {}}

    assert cast_at(data, "a.b", "number") == {"a": {}}


def test_cast__casts_root_value():
    assert cast_at("12", "", "number") == 12


def test_cast__rejects_unknown_type_before_traversal():
    with pytest.raises(InvalidOperationError):
        cast_at({"a": "1"}, "missing.path", "float")


def test_map__maps_value_with_string_coerced_keys(payload):
    payload["info"]["code"] = 6
    table = {2: "ok", 4: "aight", 6: "bad", 8: "worse"}

    result = map_at(payload, "info.code", table)

    assert result["info"]["code"] == "bad"


def test_map__falls_back_to_default_entry(payload):
    table = {"ok": "red", "": "blue"}

    result = map_at(payload, "info.code", table)

    assert result["info"]["code"] == "blue"


def test_map__maps_wildcard_fields_with_default(payload):
    table = {"NH": "New Hampshire", "NJ": "New Jersey", "": "egg"}

    result = map_at(payload, "data.$.state", table)

    assert [item["state"] for item in result["data"]] == ["New Jersey", "egg"]


def test_map__leaves_value_unchanged_without_default():
    assert map_value("x", {"y": 1}) == "x"


def test_map__uses_default_for_unknown_value():
    assert map_value("x", {"y": 1, "": 0}) == 0


def test_map__returns_json_values_as_is():
    assert map_value(200, {"200": {"status": "OK"}}) == {"status": "OK"}


def test_map__does_not_share_table_values():
    table = {"a": {"b": 1}}
    data = {"x": ["a", "a"]}

    result = map_at(data, "x.$", table)
    result["x"][0]["b"] = 2

    assert result["x"][1] == {"b": 1}
    assert table == {"a": {"b": 1}}


def test_map__rejects_non_object_table():
    with pytest.raises(InvalidOperationError):
        map_at({"a": 1}, "a", ["x"])


def test_wrap__wraps_value_in_array(payload):
    result = wrap_at(payload, "info.time", [])

    assert result["info"]["time"] == [1479738679324]


def test_wrap__wraps_wildcard_values_in_object(payload):
    result = wrap_at(payload, "data.$.location", "coordinates")

    assert [item["location"] for item in result["data"]] == [
        {"coordinates": [10, 10]},
        {"coordinates": [10, 10]},
    ]


def test_wrap__wraps_root_value():
    assert wrap_at({"test": True}, ".", "one") == {"one": {"test": True}}
    assert wrap_at("text", "", []) == ["text"]


def test_wrap__wraps_missing_field_as_none():
    assert wrap_at({}, "a", "b") == {"a": {"b": None}}


def test_wrap__rejects_invalid_wrapper():
    with pytest.raises(InvalidOperationError):
        wrap_value(1, 5)
