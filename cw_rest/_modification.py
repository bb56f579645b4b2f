# /cw_rest/_modification.py
# CrossWatch REST - granular add/replace/delete item deltas
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Mapping

from ._delta import deep_equal
from ._errors import ShapeMismatchError

ADD = "add"
REPLACE = "replace"
DELETE = "delete"
MODIFICATION_TYPES = (ADD, REPLACE, DELETE)

# Update method that switches an object to one request per changed field.
MODIFICATION_METHOD = "PATCH"
AUTO_WRAPPER = "auto"


@dataclass(frozen=True)
class ItemDelta:
    modification_type: str
    path: str
    value: Any = None
    has_value: bool = field(default=True, repr=False)

    @classmethod
    def add(cls, path: str, value: Any) -> "ItemDelta":
        return cls(ADD, path, value)

    @classmethod
    def replace(cls, path: str, value: Any) -> "ItemDelta":
        return cls(REPLACE, path, value)

    @classmethod
    def delete(cls, path: str) -> "ItemDelta":
        return cls(DELETE, path, None, has_value=False)

    def envelope(self) -> dict[str, Any]:
        delta: dict[str, Any] = {"modificationType": self.modification_type, "path": self.path}
        if self.has_value and self.modification_type != DELETE:
            delta["value"] = self.value
        return {"objectModification": {"itemDelta": delta}}


def parse_envelope(body: Mapping[str, Any]) -> ItemDelta:
    mod = body.get("objectModification") if isinstance(body, Mapping) else None
    delta = mod.get("itemDelta") if isinstance(mod, Mapping) else None
    if not isinstance(delta, Mapping):
        raise ShapeMismatchError("body is not an objectModification/itemDelta envelope")
    op = str(delta.get("modificationType") or "")
    path = str(delta.get("path") or "")
    if op not in MODIFICATION_TYPES or not path:
        raise ShapeMismatchError(f"invalid itemDelta: modificationType='{op}' path='{path}'")
    if op == DELETE:
        return ItemDelta.delete(path)
    return ItemDelta(op, path, delta.get("value"))


def resolve_wrapper(desired: Mapping[str, Any], wrapper: str | None) -> str:
    w = str(wrapper or "")
    if w != AUTO_WRAPPER:
        return w
    if len(desired) == 1:
        key, value = next(iter(desired.items()))
        if isinstance(value, Mapping):
            return key
    return ""


def unwrap(
    desired: Mapping[str, Any],
    current: Mapping[str, Any],
    wrapper: str | None,
) -> tuple[Mapping[str, Any], Mapping[str, Any]]:
    key = resolve_wrapper(desired, wrapper)
    if not key:
        return desired, current
    inner = desired.get(key)
    if not isinstance(inner, Mapping):
        raise ShapeMismatchError(f"desired data has no map under wrapper key '{key}'")
    cur = current.get(key)
    return inner, (cur if isinstance(cur, Mapping) else current)


def compute_operations(
    current: Mapping[str, Any],
    desired: Mapping[str, Any],
    *,
    id_attribute: str = "",
    wrapper: str | None = None,
) -> list[ItemDelta]:
    want, have = unwrap(desired or {}, current or {}, wrapper)
    protected = {id_attribute, id_attribute.split("/")[0]} - {""}

    ops: list[ItemDelta] = []
    for key, value in want.items():
        if key not in have:
            ops.append(ItemDelta.add(key, value))
        elif not deep_equal(have[key], value):
            ops.append(ItemDelta.replace(key, value))

    for key in have:
        if key not in want and key not in protected:
            ops.append(ItemDelta.delete(key))
    return ops


def apply_operations(current: Mapping[str, Any], ops: list[ItemDelta]) -> dict[str, Any]:
    out = copy.deepcopy(dict(current or {}))
    for op in ops:
        if op.modification_type == DELETE:
            out.pop(op.path, None)
        else:
            out[op.path] = copy.deepcopy(op.value)
    return out


__all__ = [
    "ADD",
    "REPLACE",
    "DELETE",
    "MODIFICATION_TYPES",
    "MODIFICATION_METHOD",
    "AUTO_WRAPPER",
    "ItemDelta",
    "parse_envelope",
    "resolve_wrapper",
    "unwrap",
    "compute_operations",
    "apply_operations",
]
