# CrossWatch REST test scripts
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from cw_rest import Transport  # noqa: E402
from cw_rest.config_base import ENV_FALLBACKS, OAUTH_ENV_FALLBACKS  # noqa: E402

BASE = "http://api.example.test"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CW_REST_LOG_LEVEL", "off")
    monkeypatch.delenv("CW_REST_CONFIG", raising=False)
    for var, _ in ENV_FALLBACKS.values():
        monkeypatch.delenv(var, raising=False)
    for var in OAUTH_ENV_FALLBACKS.values():
        monkeypatch.delenv(var, raising=False)


@pytest.fixture()
def make_transport() -> Iterator[Callable[..., Transport]]:
    made: list[Transport] = []

    def _make(**cfg: Any) -> Transport:
        cfg.setdefault("uri", BASE)
        cfg.setdefault("retry_delay", 0)
        t = Transport(cfg)
        made.append(t)
        return t

    yield _make
    for t in made:
        t.close()


@pytest.fixture(scope="session")
def pem_pair() -> tuple[str, str]:
    from cryptography import x509
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import ec
    from cryptography.x509.oid import NameOID

    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "cw-rest-test")])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")
    return cert_pem, key_pem
