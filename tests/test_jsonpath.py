from __future__ import annotations

import pytest

from cw_rest._errors import KeyPathError, ShapeMismatchError
from cw_rest._jsonpath import decode_map, flat_string, get_object_at_key, get_string_at_key

DOC = {
    "attrs": {"id": 1234, "name": "svc"},
    "items": [{"name": "a"}, {"name": "b", "tags": ["x", "y"]}],
    "flag": True,
}


def test_get_object_at_key_walks_maps_and_lists() -> None:
    assert get_object_at_key(DOC, "attrs/id") == 1234
    assert get_object_at_key(DOC, "items/1/name") == "b"
    assert get_object_at_key(DOC, "items/1/tags/0") == "x"
    assert get_object_at_key(DOC, "/attrs/name/") == "svc"


def test_get_object_at_key_errors_are_shape_mismatches() -> None:
    with pytest.raises(KeyPathError) as ei:
        get_object_at_key(DOC, "attrs/missing")
    assert isinstance(ei.value, ShapeMismatchError)
    assert "Available" in str(ei.value)
    assert ei.value.path == "attrs/missing"

    with pytest.raises(ShapeMismatchError):
        get_object_at_key(DOC, "attrs/id/deeper")
    with pytest.raises(ShapeMismatchError):
        get_object_at_key(DOC, "items/9")
    with pytest.raises(ShapeMismatchError):
        get_object_at_key(DOC, "items/name")
    with pytest.raises(ShapeMismatchError):
        get_object_at_key(DOC, "")


def test_get_string_at_key_coerces_scalars() -> None:
    assert get_string_at_key(DOC, "attrs/id") == "1234"
    assert get_string_at_key(DOC, "flag") == "true"
    assert get_string_at_key({"v": 3.0}, "v") == "3"
    assert get_string_at_key({"v": 2.5}, "v") == "2.5"
    with pytest.raises(ShapeMismatchError):
        get_string_at_key(DOC, "attrs")


def test_flat_string() -> None:
    assert flat_string(None) == ""
    assert flat_string(False) == "false"
    assert flat_string("text") == "text"
    assert flat_string({"a": [1, 2]}) == '{"a":[1,2]}'


def test_decode_map() -> None:
    assert decode_map(None) is None
    assert decode_map("") is None
    assert decode_map('{"a": 1}') == {"a": 1}
    src = {"a": {"b": 1}}
    out = decode_map(src)
    assert out == src and out is not src and out["a"] is not src["a"]
    with pytest.raises(ShapeMismatchError):
        decode_map("[1, 2]")
    with pytest.raises(ShapeMismatchError):
        decode_map("{nope")
