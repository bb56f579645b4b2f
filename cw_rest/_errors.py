# /cw_rest/_errors.py
# CrossWatch REST - error kinds
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any


class RestError(RuntimeError): ...
class ConfigError(RestError): ...
class IdRequiredError(RestError): ...
class IdMissingError(RestError): ...
class ShapeMismatchError(RestError): ...
class NotFoundError(RestError): ...
class TransportError(RestError): ...
class InternalInvariantError(RestError): ...


class KeyPathError(ShapeMismatchError):
    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class RemoteError(RestError):
    def __init__(self, code: int, body: str, *, method: str = "", url: str = "") -> None:
        self.code = int(code)
        self.body = body
        self.method = method
        self.url = url
        super().__init__(f"unexpected response code '{self.code}': {body}")

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "body": self.body, "method": self.method, "url": self.url}


__all__ = [
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
