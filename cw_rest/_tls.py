# /cw_rest/_tls.py
# CrossWatch REST - client certificates and trusted roots
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import os
import tempfile
import weakref
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from requests.certs import where as ca_bundle_path

from ._errors import ConfigError
from ._log import log


def _as_bytes(pem: str | bytes) -> bytes:
    return pem.encode("utf-8") if isinstance(pem, str) else bytes(pem)


def _read(path: str, what: str) -> bytes:
    p = Path(path).expanduser()
    try:
        return p.read_bytes()
    except OSError as e:
        raise ConfigError(f"cannot read {what} '{p}': {e}") from e


def load_certificates(pem: str | bytes, what: str = "certificate") -> list[x509.Certificate]:
    try:
        certs = x509.load_pem_x509_certificates(_as_bytes(pem))
    except ValueError as e:
        raise ConfigError(f"invalid {what} PEM: {e}") from e
    if not certs:
        raise ConfigError(f"invalid {what} PEM: no certificate found")
    return certs


def load_private_key(pem: str | bytes) -> Any:
    try:
        return serialization.load_pem_private_key(_as_bytes(pem), password=None)
    except (ValueError, TypeError) as e:
        raise ConfigError(f"invalid private key PEM: {e}") from e


def _remove_files(names: list[str]) -> None:
    # also runs from the finalizer, so it must not reference the owner
    while names:
        name = names.pop()
        try:
            os.unlink(name)
        except FileNotFoundError:
            continue


@dataclass
class TlsMaterial:
    """What requests needs: `verify` (bool or bundle path) and `cert` (pair or None).

    Inline PEM is written to private temp files that live until close(),
    or until the material is garbage collected or the process exits.
    """

    verify: bool | str = True
    cert: tuple[str, str] | None = None
    _temp: list[str] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        self._finalizer = weakref.finalize(self, _remove_files, self._temp)

    def _write_temp(self, data: bytes, suffix: str) -> str:
        fd, name = tempfile.mkstemp(prefix="cw_rest_", suffix=suffix)
        try:
            os.write(fd, data)
        finally:
            os.close(fd)
        os.chmod(name, 0o600)
        self._temp.append(name)
        return name

    def close(self) -> None:
        _remove_files(self._temp)


def _pick(cfg: Mapping[str, Any], file_key: str, string_key: str) -> tuple[str, str]:
    f = str(cfg.get(file_key) or "").strip()
    s = str(cfg.get(string_key) or "")
    if not s.strip():
        s = ""
    if f and s:
        raise ConfigError(f"'{file_key}' and '{string_key}' cannot both be set")
    return f, s


def build_tls(cfg: Mapping[str, Any]) -> TlsMaterial:
    cert_file, cert_string = _pick(cfg, "cert_file", "cert_string")
    key_file, key_string = _pick(cfg, "key_file", "key_string")
    ca_file, ca_string = _pick(cfg, "root_ca_file", "root_ca_string")

    has_cert = bool(cert_file or cert_string)
    has_key = bool(key_file or key_string)
    if has_cert != has_key:
        raise ConfigError("client certificate and private key must be configured together")

    tls = TlsMaterial(verify=not bool(cfg.get("insecure")))
    try:
        if has_cert:
            cert_pem = _read(cert_file, "cert_file") if cert_file else _as_bytes(cert_string)
            key_pem = _read(key_file, "key_file") if key_file else _as_bytes(key_string)
            load_certificates(cert_pem, "client certificate")
            load_private_key(key_pem)
            cert_path = cert_file or tls._write_temp(cert_pem, ".crt")
            key_path = key_file or tls._write_temp(key_pem, ".key")
            tls.cert = (cert_path, key_path)
            log("TLS", "client", "debug", "client certificate loaded", cert=cert_path)

        if ca_file or ca_string:
            ca_pem = _read(ca_file, "root_ca_file") if ca_file else _as_bytes(ca_string)
            n = len(load_certificates(ca_pem, "root CA"))
            if tls.verify:
                system = Path(ca_bundle_path()).read_bytes()
                tls.verify = tls._write_temp(system.rstrip(b"\n") + b"\n" + ca_pem, ".pem")
            log("TLS", "roots", "debug", "extra root CA appended", certificates=n)
    except ConfigError:
        tls.close()
        raise
    return tls


__all__ = ["TlsMaterial", "build_tls", "load_certificates", "load_private_key"]
