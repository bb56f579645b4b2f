# /cw_rest/_oauth.py
# CrossWatch REST - OAuth2 client-credentials token source
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import requests

from ._errors import ConfigError, TransportError
from ._log import log

EXPIRY_DELTA = 10.0


@dataclass(frozen=True)
class OAuthConfig:
    client_id: str
    client_secret: str
    token_url: str
    scopes: tuple[str, ...] = ()
    endpoint_params: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any] | None) -> "OAuthConfig | None":
        if not cfg:
            return None
        client_id = str(cfg.get("oauth_client_id") or cfg.get("client_id") or "").strip()
        secret = str(cfg.get("oauth_client_secret") or cfg.get("client_secret") or "").strip()
        token_url = str(
            cfg.get("oauth_token_endpoint") or cfg.get("oauth_token_url") or cfg.get("token_url") or ""
        ).strip()
        if not (client_id or secret or token_url):
            return None
        missing = [n for n, v in (("client id", client_id), ("client secret", secret), ("token url", token_url)) if not v]
        if missing:
            raise ConfigError(f"oauth_client_credentials is incomplete: missing {', '.join(missing)}")

        scopes = cfg.get("oauth_scopes") or cfg.get("scopes") or ()
        if isinstance(scopes, str):
            scopes = [s for s in scopes.replace(",", " ").split() if s]
        params = cfg.get("endpoint_params") or {}
        if not isinstance(params, Mapping):
            raise ConfigError("oauth endpoint_params must be a map of strings")
        return cls(
            client_id=client_id,
            client_secret=secret,
            token_url=token_url,
            scopes=tuple(str(s) for s in scopes),
            endpoint_params={str(k): str(v) for k, v in params.items()},
        )


@dataclass
class Token:
    access_token: str
    token_type: str = "Bearer"
    expires_at: float | None = None

    def valid(self, now: float) -> bool:
        if not self.access_token:
            return False
        return self.expires_at is None or now < self.expires_at - EXPIRY_DELTA


class TokenSource:
    """Cached client-credentials token; at most one fetch in flight."""

    def __init__(
        self,
        cfg: OAuthConfig,
        session: requests.Session,
        *,
        timeout: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cfg = cfg
        self._session = session
        self._timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Token | None = None

    def invalidate(self) -> None:
        with self._lock:
            self._token = None

    def token(self) -> Token:
        with self._lock:
            now = self._clock()
            if self._token is not None and self._token.valid(now):
                return self._token
            self._token = self._fetch(now)
            return self._token

    def _fetch(self, now: float) -> Token:
        form: dict[str, str] = {"grant_type": "client_credentials"}
        if self.cfg.scopes:
            form["scope"] = " ".join(self.cfg.scopes)
        form.update(self.cfg.endpoint_params)

        log("OAUTH", "token", "debug", "fetching token", url=self.cfg.token_url, scopes=list(self.cfg.scopes))
        try:
            r = self._session.post(
                self.cfg.token_url,
                data=form,
                auth=(self.cfg.client_id, self.cfg.client_secret),
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"oauth2: token request to {self.cfg.token_url} failed: {e}") from e

        if not r.ok:
            raise TransportError(f"oauth2: cannot fetch token: {r.status_code} {r.text[:500]}")
        try:
            data = r.json()
        except ValueError as e:
            raise TransportError(f"oauth2: token response is not JSON: {r.text[:500]}") from e

        access = str((data or {}).get("access_token") or "")
        if not access:
            raise TransportError("oauth2: server response missing access_token")

        expires_at: float | None = None
        try:
            expires_in = float(data.get("expires_in") or 0)
            if expires_in > 0:
                expires_at = now + expires_in
        except (TypeError, ValueError):
            expires_at = None

        log("OAUTH", "token", "debug", "token acquired", expires_at=expires_at)
        return Token(access_token=access, token_type=str(data.get("token_type") or "Bearer"), expires_at=expires_at)


__all__ = ["OAuthConfig", "Token", "TokenSource", "EXPIRY_DELTA"]
