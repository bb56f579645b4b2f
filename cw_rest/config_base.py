# /cw_rest/config_base.py
# CrossWatch REST - client configuration defaults, environment and validation
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import copy
import json
import math
import os
from pathlib import Path
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

from ._errors import ConfigError

HTTP_METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "CONNECT"})

DEFAULT_OK_CODES = frozenset(range(200, 300))
LENIENT_OK_CODES = frozenset(range(200, 400))

# Default config structure
DEFAULT_CFG: dict[str, Any] = {
    # --- Endpoint ------------------------------------------------------------
    "uri": "",                                      # Base URL of the API (required). Trailing slash is stripped.
    "insecure": False,                              # Skip TLS verification.
    "timeout": 0,                                   # Per-attempt deadline in seconds (0 = none).
    "test_path": "",                                # Read issued once at startup; failure aborts.
    "debug": False,                                 # Log requests and responses at debug level.

    # --- Auth ----------------------------------------------------------------
    "username": "",                                 # Basic auth user (only used together with password).
    "password": "",                                 # Basic auth password.
    "bearer_token": "",                             # Static "Authorization: Bearer ..." header.
    "headers": {},                                  # Extra headers sent on every request.
    "use_cookies": False,                           # Keep a cookie jar between requests.
    "oauth_client_credentials": {
        "oauth_client_id": "",                      # OAuth2 client id.
        "oauth_client_secret": "",                  # OAuth2 client secret.
        "oauth_token_endpoint": "",                 # Token URL (client_credentials grant).
        "oauth_scopes": [],                         # Requested scopes (space-joined on the wire).
        "endpoint_params": {},                      # Extra form fields for the token request.
    },

    # --- TLS -----------------------------------------------------------------
    "cert_file": "",                                # Client certificate (PEM file).
    "key_file": "",                                 # Client private key (PEM file).
    "cert_string": "",                              # Client certificate (inline PEM).
    "key_string": "",                               # Client private key (inline PEM).
    "root_ca_file": "",                             # Extra trusted root (PEM file).
    "root_ca_string": "",                           # Extra trusted root (inline PEM).

    # --- Objects -------------------------------------------------------------
    "id_attribute": "id",                           # Slash path to the id inside responses, e.g. "attrs/id".
    "create_method": "POST",                        # Default verb for create.
    "read_method": "GET",                           # Default verb for read and search.
    "update_method": "PUT",                         # Default verb for update. PATCH switches to per-field deltas.
    "destroy_method": "DELETE",                     # Default verb for destroy.
    "read_data": None,                              # Default read payload (JSON string or map).
    "update_data": None,                            # Default update payload (JSON string or map).
    "destroy_data": None,                           # Default destroy payload (JSON string or map).
    "copy_keys": [],                                # Top-level keys copied from server data into desired data.
    "write_returns_object": False,                  # Create/update responses carry the whole object.
    "create_returns_object": False,                 # Only create responses carry the whole object.
    "xssi_prefix": "",                              # Prefix stripped from response bodies, e.g. ")]}',".

    # --- Flow control --------------------------------------------------------
    "rate_limit": math.inf,                         # Requests per second across all objects.
    "ok_status_codes": None,                        # None = 200-299, "" = 200-399, or "200,201,204" / "200-299,404".
    "retry_methods": [],                            # Verbs retried on 5xx (up to 5 extra attempts).
    "retry_delay": 0.5,                             # Seconds between 5xx retries.
}

_BOOL = "bool"
_FLOAT = "float"
_STR = "str"
_METHOD = "method"

# key -> (environment variable, kind)
ENV_FALLBACKS: dict[str, tuple[str, str]] = {
    "uri": ("REST_API_URI", _STR),
    "insecure": ("REST_API_INSECURE", _BOOL),
    "username": ("REST_API_USERNAME", _STR),
    "password": ("REST_API_PASSWORD", _STR),
    "bearer_token": ("REST_API_BEARER", _STR),
    "use_cookies": ("REST_API_USE_COOKIES", _BOOL),
    "timeout": ("REST_API_TIMEOUT", _FLOAT),
    "id_attribute": ("REST_API_ID_ATTRIBUTE", _STR),
    "create_method": ("REST_API_CREATE_METHOD", _METHOD),
    "read_method": ("REST_API_READ_METHOD", _METHOD),
    "update_method": ("REST_API_UPDATE_METHOD", _METHOD),
    "destroy_method": ("REST_API_DESTROY_METHOD", _METHOD),
    "write_returns_object": ("REST_API_WRO", _BOOL),
    "create_returns_object": ("REST_API_CRO", _BOOL),
    "xssi_prefix": ("REST_API_XSSI_PREFIX", _STR),
    "rate_limit": ("REST_API_RATE_LIMIT", _FLOAT),
    "test_path": ("REST_API_TEST_PATH", _STR),
    "debug": ("REST_API_DEBUG", _BOOL),
    "cert_file": ("REST_API_CERT_FILE", _STR),
    "key_file": ("REST_API_KEY_FILE", _STR),
    "cert_string": ("REST_API_CERT_STRING", _STR),
    "key_string": ("REST_API_KEY_STRING", _STR),
    "root_ca_file": ("REST_API_ROOT_CA_FILE", _STR),
    "root_ca_string": ("REST_API_ROOT_CA_STRING", _STR),
}

OAUTH_ENV_FALLBACKS: dict[str, str] = {
    "oauth_client_id": "REST_API_OAUTH_CLIENT_ID",
    "oauth_client_secret": "REST_API_OAUTH_CLIENT_SECRET",
    "oauth_token_endpoint": "REST_API_OAUTH_TOKEN_URL",
}


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out


def _read_json(p: Path) -> dict[str, Any]:
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"cannot read config file '{p}': {e}") from e
    except ValueError as e:
        raise ConfigError(f"config file '{p}' is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file '{p}' must contain a JSON object")
    return data


def parse_bool(raw: Any, name: str = "value") -> bool:
    if isinstance(raw, bool):
        return raw
    v = str(raw).strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off", ""):
        return False
    raise ConfigError(f"{name}: '{raw}' is not a boolean")


def _coerce(raw: str, kind: str, name: str) -> Any:
    if kind == _BOOL:
        return parse_bool(raw, name)
    if kind == _FLOAT:
        try:
            return float(raw)
        except ValueError as e:
            raise ConfigError(f"{name}: '{raw}' is not a number") from e
    if kind == _METHOD:
        return raw.strip().upper()
    return raw


def _unset(v: Any) -> bool:
    return v is None or v == ""


def apply_env(cfg: Mapping[str, Any] | None, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Fill keys the caller left unset from REST_API_* variables."""
    env = os.environ if environ is None else environ
    out = dict(cfg or {})
    for key, (var, kind) in ENV_FALLBACKS.items():
        if not _unset(out.get(key)):
            continue
        raw = env.get(var)
        if raw is None:
            continue
        out[key] = _coerce(raw, kind, var)

    oauth = dict(out.get("oauth_client_credentials") or {})
    touched = False
    for key, var in OAUTH_ENV_FALLBACKS.items():
        if _unset(oauth.get(key)) and env.get(var):
            oauth[key] = env[var]
            touched = True
    if touched:
        out["oauth_client_credentials"] = oauth
    return out


def resolve_config(cfg: Mapping[str, Any] | None = None, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Explicit value > environment > DEFAULT_CFG."""
    return _deep_merge(DEFAULT_CFG, apply_env(cfg, environ))


def load_config(path: str | os.PathLike[str] | None = None, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """
    Read a JSON config file (argument, else $CW_REST_CONFIG) and fill the rest
    from the environment and the defaults.
    """
    env = os.environ if environ is None else environ
    raw = path if path is not None else env.get("CW_REST_CONFIG")
    user_cfg: dict[str, Any] = {}
    if raw:
        user_cfg = _read_json(Path(raw).expanduser())
    return resolve_config(user_cfg, env)


def parse_status_codes(value: Any) -> frozenset[int]:
    if value is None:
        return DEFAULT_OK_CODES
    if isinstance(value, str):
        parts = [p.strip() for p in value.split(",") if p.strip()]
    elif isinstance(value, Iterable):
        parts = list(value)
    else:
        raise ConfigError(f"ok_status_codes: unsupported value {value!r}")
    if not parts:
        return LENIENT_OK_CODES

    codes: set[int] = set()
    for part in parts:
        if isinstance(part, bool):
            raise ConfigError(f"ok_status_codes: invalid entry {part!r}")
        if isinstance(part, int):
            lo = hi = part
        else:
            text = str(part).strip()
            try:
                if "-" in text:
                    a, b = text.split("-", 1)
                    lo, hi = int(a), int(b)
                else:
                    lo = hi = int(text)
            except ValueError as e:
                raise ConfigError(f"ok_status_codes: invalid entry '{text}'") from e
        if lo > hi:
            raise ConfigError(f"ok_status_codes: inverted range {lo}-{hi}")
        if lo < 100 or hi > 599:
            raise ConfigError(f"ok_status_codes: {lo}-{hi} is outside 100-599")
        codes.update(range(lo, hi + 1))
    return frozenset(codes)


def check_method(name: str, value: Any) -> str:
    m = str(value or "").strip().upper()
    if m not in HTTP_METHODS:
        raise ConfigError(f"{name}: '{value}' is not an HTTP method")
    return m


def validate_config(cfg: Mapping[str, Any]) -> None:
    uri = str(cfg.get("uri") or "").strip()
    if not uri:
        raise ConfigError("uri must be set")
    u = urlparse(uri)
    if not u.scheme or not u.netloc:
        raise ConfigError(f"uri '{uri}' needs a scheme and a host")

    timeout = cfg.get("timeout") or 0
    try:
        if float(timeout) < 0:
            raise ConfigError("timeout cannot be negative")
    except (TypeError, ValueError) as e:
        raise ConfigError(f"timeout: '{timeout}' is not a number") from e

    rate = cfg.get("rate_limit")
    if rate is not None:
        try:
            r = float(rate)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"rate_limit: '{rate}' is not a number") from e
        if math.isnan(r) or r <= 0:
            raise ConfigError("rate_limit must be greater than zero")

    basic = bool(cfg.get("username")) and bool(cfg.get("password"))
    if basic and cfg.get("bearer_token"):
        raise ConfigError("basic auth (username/password) and bearer_token cannot both be set")
    oauth = cfg.get("oauth_client_credentials") or {}
    if basic and any(str(v or "") for k, v in oauth.items() if k != "oauth_scopes" and k != "endpoint_params"):
        raise ConfigError("basic auth (username/password) and oauth_client_credentials cannot both be set")

    for key in ("create_method", "read_method", "update_method", "destroy_method"):
        if cfg.get(key):
            check_method(key, cfg[key])
    for m in cfg.get("retry_methods") or ():
        check_method("retry_methods", m)


__all__ = [
    "DEFAULT_CFG",
    "DEFAULT_OK_CODES",
    "LENIENT_OK_CODES",
    "ENV_FALLBACKS",
    "HTTP_METHODS",
    "apply_env",
    "check_method",
    "load_config",
    "parse_bool",
    "parse_status_codes",
    "resolve_config",
    "validate_config",
]
