# /cw_rest/_paths.py
# CrossWatch REST - path templates
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from ._errors import ConfigError

ID_TOKEN = "{id}"


def substitute(template: str, object_id: str) -> str:
    # ids are not url-encoded; callers pick path-safe ids
    return str(template or "").replace(ID_TOKEN, str(object_id or ""))


def with_query(path: str, query_string: str | None) -> str:
    qs = str(query_string or "").lstrip("?&")
    if not qs:
        return path
    sep = "&" if "?" in path else "?"
    return f"{path}{sep}{qs}"


def merge_query(*parts: str | None) -> str:
    return "&".join(p.strip("?&") for p in parts if p and p.strip("?&"))


def resolve(template: str, object_id: str, query_string: str | None = None) -> str:
    return with_query(substitute(template, object_id), query_string)


def append_id(path: str) -> str:
    if ID_TOKEN in path:
        return path
    if "?" in path:
        base, qs = path.split("?", 1)
        return f"{base.rstrip('/')}/{ID_TOKEN}?{qs}"
    return f"{path.rstrip('/')}/{ID_TOKEN}"


def join_uri(base: str, path: str) -> str:
    return f"{str(base).rstrip('/')}/{str(path or '').lstrip('/')}"


def split_import_path(import_path: str) -> tuple[str, str]:
    raw = str(import_path or "").strip()
    trimmed = raw[:-1] if raw.endswith("/") else raw
    n = trimmed.rfind("/")
    if n <= 0 or n == len(trimmed) - 1:
        raise ConfigError(
            f"invalid path to import api_object '{raw}' - must be /<full path from server root>/<object id>"
        )
    return trimmed[:n], trimmed[n + 1:]


__all__ = [
    "ID_TOKEN",
    "substitute",
    "with_query",
    "merge_query",
    "resolve",
    "append_id",
    "join_uri",
    "split_import_path",
]
