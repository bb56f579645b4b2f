from __future__ import annotations

import pytest

from cw_rest import ItemDelta, apply_operations, compute_operations, deep_equal
from cw_rest._errors import ShapeMismatchError
from cw_rest._modification import parse_envelope, resolve_wrapper


def test_add_and_delete_without_redundant_replace() -> None:
    current = {"name": "jsmith", "description": "old"}
    desired = {"name": "jsmith", "email": "a@b"}
    ops = compute_operations(current, desired, id_attribute="Id")
    assert ops == [ItemDelta.add("email", "a@b"), ItemDelta.delete("description")]


def test_replace_emitted_for_changed_values() -> None:
    ops = compute_operations({"n": 1, "tags": ["a"]}, {"n": 2, "tags": ["a"]})
    assert ops == [ItemDelta.replace("n", 2)]


def test_id_attribute_is_never_deleted() -> None:
    current = {"Id": "7", "name": "a", "attrs": {"uid": "9"}}
    assert compute_operations(current, {"name": "a"}, id_attribute="Id") == [ItemDelta.delete("attrs")]
    assert compute_operations(current, {"name": "a", "Id": "7"}, id_attribute="attrs/uid") == []


@pytest.mark.parametrize(
    "current,desired",
    [
        ({"name": "jsmith", "description": "old"}, {"name": "jsmith", "email": "a@b"}),
        ({}, {"a": 1, "b": {"c": [1, 2]}}),
        ({"a": 1, "b": 2, "c": 3}, {}),
        ({"a": {"x": 1}, "keep": True}, {"a": {"x": 2}, "keep": True, "new": None}),
    ],
)
def test_applying_ops_reaches_desired(current: dict, desired: dict) -> None:
    ops = compute_operations(current, desired)
    assert deep_equal(apply_operations(current, ops), desired)


def test_applying_ops_keeps_id_attribute() -> None:
    current = {"id": "5", "name": "old"}
    desired = {"name": "new"}
    out = apply_operations(current, compute_operations(current, desired, id_attribute="id"))
    assert out == {"id": "5", "name": "new"}


def test_envelope_shape() -> None:
    assert ItemDelta.add("email", "a@b").envelope() == {
        "objectModification": {"itemDelta": {"modificationType": "add", "path": "email", "value": "a@b"}}
    }
    assert ItemDelta.replace("n", None).envelope()["objectModification"]["itemDelta"]["value"] is None
    delete = ItemDelta.delete("description").envelope()
    assert delete == {"objectModification": {"itemDelta": {"modificationType": "delete", "path": "description"}}}


def test_parse_envelope() -> None:
    op = ItemDelta.replace("n", {"x": 1})
    assert parse_envelope(op.envelope()) == op
    assert parse_envelope(ItemDelta.delete("d").envelope()) == ItemDelta.delete("d")
    with pytest.raises(ShapeMismatchError):
        parse_envelope({"name": "x"})
    with pytest.raises(ShapeMismatchError):
        parse_envelope({"objectModification": {"itemDelta": {"modificationType": "move", "path": "a"}}})


def test_wrapper_modes() -> None:
    current = {"user": {"name": "a", "x": 1}}
    desired = {"user": {"name": "b"}}

    assert compute_operations(current, desired) == [ItemDelta.replace("user", {"name": "b"})]
    expected = [ItemDelta.replace("name", "b"), ItemDelta.delete("x")]
    assert compute_operations(current, desired, wrapper="auto") == expected
    assert compute_operations(current, desired, wrapper="user") == expected


def test_auto_wrapper_only_for_single_map_key() -> None:
    assert resolve_wrapper({"user": {"a": 1}}, "auto") == "user"
    assert resolve_wrapper({"user": {"a": 1}, "b": 2}, "auto") == ""
    assert resolve_wrapper({"user": "flat"}, "auto") == ""
    assert resolve_wrapper({"user": {"a": 1}}, "") == ""


def test_explicit_wrapper_requires_map() -> None:
    with pytest.raises(ShapeMismatchError):
        compute_operations({}, {"user": "flat"}, wrapper="user")
