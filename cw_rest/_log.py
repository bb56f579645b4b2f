# /cw_rest/_log.py
# CrossWatch REST - logging utility
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import json
import os
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

_LEVELS: dict[str, int] = {
    "off": 99,
    "error": 40,
    "warn": 30,
    "warning": 30,
    "info": 20,
    "debug": 10,
    "trace": 5,
}

RESET = "\033[0m"
DIM = "\033[90m"
RED = "\033[91m"
GREEN = "\033[92m"
YELLOW = "\033[33m"
BLUE = "\033[94m"

_LEVEL_COLOR: dict[str, str] = {
    "ERROR": RED,
    "WARN": YELLOW,
    "WARNING": YELLOW,
    "INFO": BLUE,
    "DEBUG": YELLOW,
    "TRACE": DIM,
    "SUCCESS": GREEN,
}

_SECRET_FIELDS = frozenset({
    "password",
    "client_secret",
    "authorization",
    "bearer_token",
    "key_string",
    "access_token",
})


def _env_bool(name: str) -> bool:
    v = (os.getenv(name) or "").strip().lower()
    return v in ("1", "true", "yes", "on")


def _use_color(fmt: str) -> bool:
    if fmt == "json":
        return False
    if os.getenv("NO_COLOR") is not None:
        return False

    mode = (os.getenv("CW_REST_LOG_COLOR") or "auto").strip().lower()
    if mode in ("0", "false", "no", "off"):
        return False
    return True


def _c(text: str, color: str, *, on: bool) -> str:
    if not on or not color:
        return text
    return f"{color}{text}{RESET}"


def _level_num(level: str) -> int:
    return _LEVELS.get(str(level or "info").strip().lower(), 20)


def _env_level(component: str) -> int:
    c = str(component).strip().upper()
    v = os.getenv(f"CW_REST_{c}_LOG_LEVEL") or os.getenv("CW_REST_LOG_LEVEL") or ""
    if v.strip():
        return _level_num(v)

    if _env_bool("CW_REST_DEBUG") or _env_bool(f"CW_REST_{c}_DEBUG"):
        return _level_num("debug")
    return _level_num("info")


def _one_line(s: Any) -> str:
    t = str(s if s is not None else "")
    return " ".join(t.replace("\n", " ").replace("\r", " ").split())


def mask(fields: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in fields.items():
        if str(k).lower() in _SECRET_FIELDS and v:
            out[k] = "***"
        elif isinstance(v, Mapping):
            out[k] = mask(v)
        else:
            out[k] = v
    return out


def _kv(fields: Mapping[str, Any]) -> str:
    parts: list[str] = []
    for k in sorted(fields.keys()):
        v = fields[k]
        if v is None:
            continue
        if isinstance(v, (Mapping, list, tuple)):
            vs = json.dumps(v, ensure_ascii=False, default=str, separators=(",", ":"))
        else:
            vs = _one_line(v)
        if vs == "":
            continue

        if any(ch.isspace() for ch in vs) or any(ch in vs for ch in ['"', "=", ":"]):
            vs = json.dumps(vs, ensure_ascii=False)
        parts.append(f"{k}={vs}")
    return " ".join(parts)


def enabled(component: str, level: str, *, debug: bool = False) -> bool:
    threshold = _env_level(component)
    if debug and _LEVELS["debug"] < threshold < _LEVELS["off"]:
        threshold = _LEVELS["debug"]
    return _level_num(level) >= threshold


def log(component: str, feature: str, level: str, msg: str, *, debug: bool = False, **fields: Any) -> None:
    component_s = str(component).strip().upper()
    feature_s = str(feature).strip().lower()
    level_s = str(level).strip().upper()

    if not enabled(component_s, level_s, debug=debug):
        return

    fmt = (os.getenv("CW_REST_LOG_FORMAT") or "kv").strip().lower()
    use_color = _use_color(fmt)
    fields = mask(fields)

    ts = datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")
    base = {
        "ts": ts,
        "component": component_s,
        "feature": feature_s,
        "level": level_s,
        "msg": _one_line(msg),
    }
    payload = {**base, **fields}

    if fmt == "json":
        print(json.dumps(payload, ensure_ascii=False, default=str), flush=True)
        return

    head = _c(f"[{base['component']}:{base['feature']}]", DIM, on=use_color)
    lvl = _c(base["level"], _LEVEL_COLOR.get(base["level"], ""), on=use_color)

    tail = _kv(fields)
    line = f"{head} {lvl} {base['msg']}"
    if tail:
        line = f"{line} {tail}"
    print(line, flush=True)
