# /cw_rest/__init__.py
# CrossWatch REST - declarative reconciler for JSON REST objects
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from ._delta import deep_equal, get_delta, has_changes, normalize_null_fields
from ._errors import (
    ConfigError,
    IdMissingError,
    IdRequiredError,
    InternalInvariantError,
    KeyPathError,
    NotFoundError,
    RemoteError,
    RestError,
    ShapeMismatchError,
    TransportError,
)
from ._filter import filter_keys
from ._modification import ItemDelta, apply_operations, compute_operations
from ._object import ApiObject, ObjectOptions, ReadSearch
from ._transport import Transport, TransportConfig
from .config_base import DEFAULT_CFG, load_config, parse_status_codes

__version__ = "0.1.0"

__all__ = [
    "ApiObject",
    "ObjectOptions",
    "ReadSearch",
    "Transport",
    "TransportConfig",
    "DEFAULT_CFG",
    "load_config",
    "parse_status_codes",
    "filter_keys",
    "deep_equal",
    "get_delta",
    "has_changes",
    "normalize_null_fields",
    "ItemDelta",
    "compute_operations",
    "apply_operations",
    "RestError",
    "ConfigError",
    "IdRequiredError",
    "IdMissingError",
    "KeyPathError",
    "RemoteError",
    "ShapeMismatchError",
    "NotFoundError",
    "TransportError",
    "InternalInvariantError",
]
