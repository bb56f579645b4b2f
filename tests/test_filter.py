from __future__ import annotations

import copy
from typing import Any

from cw_rest import filter_keys


def _keys_everywhere(node: Any) -> set[str]:
    out: set[str] = set()
    if isinstance(node, dict):
        for k, v in node.items():
            out.add(k)
            out |= _keys_everywhere(v)
    elif isinstance(node, list):
        for v in node:
            out |= _keys_everywhere(v)
    return out


def test_filter_removes_nested_metadata() -> None:
    tree = {
        "service": {
            "name": "x",
            "@metadata": {"rev": 3},
            "items": [{"@metadata": {"rev": 1}, "value": "v"}],
        }
    }
    assert filter_keys(tree, ["@metadata"]) == {"service": {"name": "x", "items": [{"value": "v"}]}}


def test_filter_is_idempotent_and_leaves_no_filtered_key() -> None:
    tree = {
        "a": 1,
        "etag": "x",
        "children": [
            {"etag": "y", "grand": [[{"etag": "z", "keep": True}]]},
            "scalar",
            None,
        ],
        "nested": {"deep": {"etag": 1, "other": 2}},
    }
    names = ["etag"]
    once = filter_keys(copy.deepcopy(tree), names)
    twice = filter_keys(copy.deepcopy(once), names)
    assert once == twice
    assert "etag" not in _keys_everywhere(once)
    assert len(once["children"]) == 3
    assert once["children"][0]["grand"] == [[{"keep": True}]]


def test_filter_without_names_is_a_no_op() -> None:
    tree = {"a": {"b": 1}}
    assert filter_keys(tree, []) == {"a": {"b": 1}}


def test_filter_matches_exact_key_only() -> None:
    tree = {"meta": 1, "Meta": 2, "metadata": 3}
    assert filter_keys(tree, ["meta"]) == {"Meta": 2, "metadata": 3}
