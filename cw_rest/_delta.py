# /cw_rest/_delta.py
# CrossWatch REST - drift detection between recorded and server trees
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping

# Ignore list syntax:
#   "field"             top-level field
#   "parent.child"      nested field
#   "list[].field"      "field" in every map inside "list"
#   "list[]"            the whole list
#   "@odata.etag"       keys containing dots match as a whole token first


def deep_equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if set(a.keys()) != set(b.keys()):
            return False
        return all(deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(deep_equal(x, y) for x, y in zip(a, b))
    return type(a) is type(b) and a == b


def _is_ignored(key: str, ignore: list[str]) -> bool:
    return key in ignore or f"{key}[]" in ignore


def _descend(key: str, ignore: list[str]) -> list[str]:
    prefix = key + "."
    return [p[len(prefix):] for p in ignore if p.startswith(prefix) and len(p) > len(prefix)]


def _list_ignore(key: str, ignore: list[str]) -> list[str]:
    prefix = key + "[]."
    return [p[len(prefix):] for p in ignore if p.startswith(prefix) and len(p) > len(prefix)]


def _prune(value: Any, ignore: list[str], item_ignore: list[str] | None = None) -> Any:
    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for k, v in value.items():
            if _is_ignored(k, ignore):
                continue
            if isinstance(v, Mapping):
                out[k] = _prune(v, _descend(k, ignore))
            elif isinstance(v, list):
                out[k] = _prune(v, [], _list_ignore(k, ignore))
            else:
                out[k] = copy.deepcopy(v)
        return out
    if isinstance(value, list) and item_ignore:
        return [_prune(x, item_ignore) if isinstance(x, Mapping) else copy.deepcopy(x) for x in value]
    return copy.deepcopy(value)


def _compare_lists(
    recorded: list[Any],
    actual: list[Any],
    item_ignore: list[str],
    ignore_server_additions: bool,
) -> tuple[list[Any], bool]:
    projected = [_prune(x, item_ignore) if isinstance(x, Mapping) else copy.deepcopy(x) for x in recorded]
    if len(recorded) != len(actual):
        return projected, True

    changed = False
    for i, (rec, act) in enumerate(zip(recorded, actual)):
        if isinstance(rec, Mapping) and isinstance(act, Mapping):
            projected[i], item_changed = get_delta(
                rec, act, item_ignore, ignore_server_additions=ignore_server_additions
            )
            changed = changed or item_changed
        elif not deep_equal(rec, act):
            changed = True
    return projected, changed


def get_delta(
    recorded: Mapping[str, Any],
    actual: Mapping[str, Any],
    ignore_list: Iterable[str] | None = None,
    *,
    ignore_server_additions: bool = False,
) -> tuple[dict[str, Any], bool]:
    """Compare the recorded tree against the server tree.

    Returns the recorded tree with ignored branches pruned, and whether any
    non-ignored difference exists. With `ignore_server_additions`, keys only the
    server has are not differences.
    """
    ignore = [str(p) for p in ignore_list or () if p]
    recorded = recorded or {}
    actual = actual or {}
    projected: dict[str, Any] = {}
    changed = False

    for key, rec in recorded.items():
        if _is_ignored(key, ignore):
            continue

        has_actual = key in actual
        act = actual.get(key)

        if rec is None:
            projected[key] = None
            if has_actual and act is not None:
                changed = True
            continue

        if isinstance(rec, Mapping):
            sub_ignore = _descend(key, ignore)
            if isinstance(act, Mapping):
                projected[key], sub_changed = get_delta(
                    rec, act, sub_ignore, ignore_server_additions=ignore_server_additions
                )
                changed = changed or sub_changed
            else:
                projected[key] = _prune(rec, sub_ignore)
                changed = True
        elif isinstance(rec, list):
            item_ignore = _list_ignore(key, ignore)
            if item_ignore and isinstance(act, list):
                projected[key], sub_changed = _compare_lists(rec, act, item_ignore, ignore_server_additions)
                changed = changed or sub_changed
            else:
                projected[key] = _prune(rec, [], item_ignore)
                if not has_actual or not deep_equal(rec, act):
                    changed = True
        else:
            projected[key] = rec
            if not has_actual or not deep_equal(rec, act):
                changed = True

    for key, act in actual.items():
        if key in recorded or _is_ignored(key, ignore):
            continue
        # missing and null are the same thing
        if act is None or ignore_server_additions:
            continue
        changed = True

    return projected, changed


def has_changes(
    recorded: Mapping[str, Any],
    actual: Mapping[str, Any],
    ignore_list: Iterable[str] | None = None,
    *,
    ignore_server_additions: bool = False,
) -> bool:
    return get_delta(recorded, actual, ignore_list, ignore_server_additions=ignore_server_additions)[1]


def normalize_null_fields(desired: dict[str, Any], server: Mapping[str, Any]) -> bool:
    """Drop null desired keys the server omits; recurse through nested maps."""
    modified = False
    for key in list(desired.keys()):
        value = desired[key]
        if value is None and key not in server:
            del desired[key]
            modified = True
            continue
        other = server.get(key)
        if isinstance(value, dict) and isinstance(other, Mapping):
            if normalize_null_fields(value, other):
                modified = True
    return modified


__all__ = ["deep_equal", "get_delta", "has_changes", "normalize_null_fields"]
