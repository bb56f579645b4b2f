# /cw_rest/_jsonpath.py
# CrossWatch REST - slash-delimited paths into decoded JSON
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import copy
import json
import math
from typing import Any, Mapping

from ._errors import KeyPathError, ShapeMismatchError

__all__ = [
    "get_object_at_key",
    "get_string_at_key",
    "get_keys",
    "scalar_to_string",
    "flat_string",
    "decode_map",
]


def get_keys(hash_: Mapping[str, Any]) -> list[str]:
    return [str(k) for k in hash_.keys()]


def _split(path: str) -> list[str]:
    return [p for p in str(path or "").split("/") if p != ""]


def get_object_at_key(data: Any, path: str) -> Any:
    """
    Dig through decoded JSON and return whatever sits at `path`.

    Given {"attrs": {"id": 1234}, "items": [{"name": "a"}]}:
      attrs/id     => 1234
      items/0/name => "a"

    Intermediate lists are indexed numerically. The result is not type checked.
    """
    parts = _split(path)
    if not parts:
        raise KeyPathError("empty path", path=str(path))

    node = data
    seen = ""
    for part in parts:
        if isinstance(node, Mapping):
            if part not in node:
                avail = ",".join(get_keys(node))
                raise KeyPathError(
                    f"'{part}' not found after '{seen or '/'}'. Available: {avail}",
                    path=path,
                )
            node = node[part]
        elif isinstance(node, list):
            if not part.isdigit() or int(part) >= len(node):
                raise KeyPathError(
                    f"'{part}' is not a valid index into the list at '{seen or '/'}' (length {len(node)})",
                    path=path,
                )
            node = node[int(part)]
        else:
            raise KeyPathError(
                f"object at '{seen or '/'}' is a {type(node).__name__}, not a map or list. Is this the right path?",
                path=path,
            )
        seen += "/" + part
    return node


def scalar_to_string(value: Any, path: str = "") -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    raise KeyPathError(
        f"object at path '{path}' is not a JSON string or number, it is a {type(value).__name__}",
        path=path,
    )


def get_string_at_key(data: Any, path: str) -> str:
    return scalar_to_string(get_object_at_key(data, path), path)


def flat_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (Mapping, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return scalar_to_string(value)


def decode_map(raw: Any, what: str = "data") -> dict[str, Any] | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, Mapping):
        return copy.deepcopy(dict(raw))
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ShapeMismatchError(f"{what} is not valid JSON: {e}") from e
    if not isinstance(value, dict):
        raise ShapeMismatchError(f"{what} must be a JSON object, got {type(value).__name__}")
    return value
