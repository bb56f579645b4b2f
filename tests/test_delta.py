from __future__ import annotations

import pytest

from cw_rest import deep_equal, get_delta, has_changes, normalize_null_fields

RECORD = {
    "name": "svc",
    "meta": {"updated": "2024-01-01", "owner": "ops"},
    "items": [{"id": 1, "ts": "a"}, {"id": 2, "ts": "b"}],
    "tags": ["x", "y"],
    "@odata.etag": "W/1",
}


@pytest.mark.parametrize(
    "ignore",
    [[], ["name"], ["meta.updated"], ["items[].ts"], ["tags[]"], ["@odata.etag"]],
)
def test_tree_never_differs_from_itself(ignore: list[str]) -> None:
    assert has_changes(RECORD, RECORD, ignore) is False


def test_top_level_and_nested_ignores() -> None:
    actual = {**RECORD, "name": "other", "meta": {"updated": "2025-01-01", "owner": "ops"}}
    assert has_changes(RECORD, actual) is True
    assert has_changes(RECORD, actual, ["name"]) is True
    projected, changed = get_delta(RECORD, actual, ["name", "meta.updated"])
    assert changed is False
    assert "name" not in projected
    assert projected["meta"] == {"owner": "ops"}


def test_list_item_ignore() -> None:
    actual = {**RECORD, "items": [{"id": 1, "ts": "c"}, {"id": 2, "ts": "d"}]}
    projected, changed = get_delta(RECORD, actual, ["items[].ts"])
    assert changed is False
    assert projected["items"] == [{"id": 1}, {"id": 2}]

    actual["items"][1]["id"] = 3
    assert has_changes(RECORD, actual, ["items[].ts"]) is True


def test_list_length_change_is_a_change_even_with_item_ignore() -> None:
    actual = {**RECORD, "items": [{"id": 1, "ts": "a"}]}
    assert has_changes(RECORD, actual, ["items[].ts"]) is True


def test_lists_without_scoping_compare_whole() -> None:
    actual = {**RECORD, "tags": ["y", "x"]}
    assert has_changes(RECORD, actual) is True
    assert has_changes(RECORD, actual, ["tags[]"]) is False
    assert "tags" not in get_delta(RECORD, actual, ["tags[]"])[0]


def test_dotted_literal_key_at_root() -> None:
    actual = {**RECORD, "@odata.etag": "W/2"}
    assert has_changes(RECORD, actual) is True
    assert has_changes(RECORD, actual, ["@odata.etag"]) is False


def test_null_and_missing_are_equal() -> None:
    assert has_changes({"a": 1, "b": None}, {"a": 1}) is False
    assert has_changes({"a": 1}, {"a": 1, "b": None}) is False
    assert has_changes({"a": 1, "b": None}, {"a": 1, "b": 2}) is True


def test_server_additions() -> None:
    recorded = {"a": 1}
    actual = {"a": 1, "created": "now"}
    assert has_changes(recorded, actual) is True
    assert has_changes(recorded, actual, ignore_server_additions=True) is False
    assert has_changes(recorded, actual, ["created"]) is False


def test_mirrored_add_remove_is_symmetric() -> None:
    a = {"x": 1, "sub": {"k": "v"}}
    b = {"x": 1, "sub": {"k": "v", "extra": True}, "y": 2}
    assert has_changes(a, b) is True
    assert has_changes(b, a) is True


def test_deep_equal_json_semantics() -> None:
    assert deep_equal(1, 1.0)
    assert not deep_equal(True, 1)
    assert not deep_equal(0, False)
    assert deep_equal({"a": [1, {"b": None}]}, {"a": [1.0, {"b": None}]})
    assert not deep_equal({"a": 1}, {"a": 1, "b": 2})
    assert not deep_equal("1", 1)


def test_normalize_null_fields() -> None:
    desired = {"a": None, "b": None, "c": {"d": None, "e": 1}}
    server = {"b": 5, "c": {"e": 1}}
    assert normalize_null_fields(desired, server) is True
    assert desired == {"b": None, "c": {"e": 1}}
    assert normalize_null_fields(desired, server) is False
