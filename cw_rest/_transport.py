# /cw_rest/_transport.py
# CrossWatch REST - HTTP transport shared by every object
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from http.cookiejar import DefaultCookiePolicy
from typing import Any, Callable, Mapping
from urllib.parse import urljoin, urlparse

import requests
from requests.auth import HTTPBasicAuth
from requests.structures import CaseInsensitiveDict

from . import config_base
from ._errors import ConfigError, RemoteError, RestError, ShapeMismatchError, TransportError
from ._jsonpath import decode_map
from ._log import log
from ._oauth import OAuthConfig, TokenSource
from ._paths import join_uri
from ._ratelimit import RateLimiter
from ._tls import TlsMaterial, build_tls

MAX_RETRIES = 5
MAX_REDIRECTS = 10
REDIRECT_CODES = frozenset({301, 302, 303, 307, 308})

_TLS_KEYS = ("insecure", "cert_file", "key_file", "cert_string", "key_string", "root_ca_file", "root_ca_string")


@dataclass(frozen=True)
class TransportConfig:
    uri: str
    insecure: bool = False
    username: str = ""
    password: str = ""
    bearer_token: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    use_cookies: bool = False
    timeout: float = 0.0
    id_attribute: str = "id"
    create_method: str = "POST"
    read_method: str = "GET"
    update_method: str = "PUT"
    destroy_method: str = "DELETE"
    read_data: Mapping[str, Any] | None = None
    update_data: Mapping[str, Any] | None = None
    destroy_data: Mapping[str, Any] | None = None
    copy_keys: tuple[str, ...] = ()
    write_returns_object: bool = False
    create_returns_object: bool = False
    xssi_prefix: str = ""
    rate_limit: float = math.inf
    ok_status_codes: frozenset[int] = config_base.DEFAULT_OK_CODES
    retry_methods: frozenset[str] = frozenset()
    retry_delay: float = 0.5
    test_path: str = ""
    debug: bool = False
    cert_file: str = ""
    key_file: str = ""
    cert_string: str = field(default="", repr=False)
    key_string: str = field(default="", repr=False)
    root_ca_file: str = ""
    root_ca_string: str = field(default="", repr=False)
    oauth: OAuthConfig | None = field(default=None, repr=False)

    @classmethod
    def from_mapping(
        cls,
        cfg: Mapping[str, Any] | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> "TransportConfig":
        c = config_base.resolve_config(cfg, environ)
        config_base.validate_config(c)

        payloads: dict[str, Any] = {}
        for key in ("read_data", "update_data", "destroy_data"):
            try:
                payloads[key] = decode_map(c.get(key), key)
            except ShapeMismatchError as e:
                raise ConfigError(str(e)) from e

        headers = c.get("headers") or {}
        if not isinstance(headers, Mapping):
            raise ConfigError("headers must be a map of strings")

        return cls(
            uri=str(c["uri"]).strip().rstrip("/"),
            insecure=config_base.parse_bool(c.get("insecure"), "insecure"),
            username=str(c.get("username") or ""),
            password=str(c.get("password") or ""),
            bearer_token=str(c.get("bearer_token") or ""),
            headers={str(k): str(v) for k, v in headers.items()},
            use_cookies=config_base.parse_bool(c.get("use_cookies"), "use_cookies"),
            timeout=float(c.get("timeout") or 0),
            id_attribute=str(c.get("id_attribute") or "id"),
            create_method=config_base.check_method("create_method", c.get("create_method") or "POST"),
            read_method=config_base.check_method("read_method", c.get("read_method") or "GET"),
            update_method=config_base.check_method("update_method", c.get("update_method") or "PUT"),
            destroy_method=config_base.check_method("destroy_method", c.get("destroy_method") or "DELETE"),
            copy_keys=tuple(str(k) for k in c.get("copy_keys") or ()),
            write_returns_object=config_base.parse_bool(c.get("write_returns_object"), "write_returns_object"),
            create_returns_object=config_base.parse_bool(c.get("create_returns_object"), "create_returns_object"),
            xssi_prefix=str(c.get("xssi_prefix") or ""),
            rate_limit=float(c["rate_limit"]) if c.get("rate_limit") is not None else math.inf,
            ok_status_codes=config_base.parse_status_codes(c.get("ok_status_codes")),
            retry_methods=frozenset(config_base.check_method("retry_methods", m) for m in c.get("retry_methods") or ()),
            retry_delay=max(0.0, float(c.get("retry_delay") if c.get("retry_delay") is not None else 0.5)),
            test_path=str(c.get("test_path") or ""),
            debug=config_base.parse_bool(c.get("debug"), "debug"),
            cert_file=str(c.get("cert_file") or ""),
            key_file=str(c.get("key_file") or ""),
            cert_string=str(c.get("cert_string") or ""),
            key_string=str(c.get("key_string") or ""),
            root_ca_file=str(c.get("root_ca_file") or ""),
            root_ca_string=str(c.get("root_ca_string") or ""),
            oauth=OAuthConfig.from_mapping(c.get("oauth_client_credentials")),
            **payloads,
        )

    @property
    def basic_auth(self) -> bool:
        return bool(self.username and self.password)

    def tls_options(self) -> dict[str, Any]:
        return {k: getattr(self, k) for k in _TLS_KEYS}


class Transport:
    """
    One per process. Every object sends through here, so the rate limiter,
    the connection pool, the cookie jar and the OAuth token are shared.

    send() returns the response body as text, or raises:
      RemoteError     status not in ok_status_codes (after 5xx retries)
      TransportError  network, TLS or token failure
    """

    def __init__(
        self,
        cfg: TransportConfig | Mapping[str, Any],
        *,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        limiter: RateLimiter | None = None,
    ):
        self.cfg = cfg if isinstance(cfg, TransportConfig) else TransportConfig.from_mapping(cfg)
        self.session = session or requests.Session()
        self._sleep = sleep
        self.limiter = limiter or RateLimiter(self.cfg.rate_limit)

        if not self.cfg.use_cookies:
            self.session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))

        self._tls: TlsMaterial = build_tls(self.cfg.tls_options())
        self.session.verify = self._tls.verify
        if self._tls.cert:
            self.session.cert = self._tls.cert

        self._auth = HTTPBasicAuth(self.cfg.username, self.cfg.password) if self.cfg.basic_auth else None
        self.tokens: TokenSource | None = None
        if self.cfg.oauth is not None:
            self.tokens = TokenSource(self.cfg.oauth, self.session, timeout=self.cfg.timeout or None)

        log(
            "HTTP", "init", "debug", "transport ready",
            debug=self.cfg.debug,
            uri=self.cfg.uri,
            insecure=self.cfg.insecure,
            rate_limit=self.cfg.rate_limit,
            retry_methods=sorted(self.cfg.retry_methods),
            oauth=self.tokens is not None,
            mtls=self._tls.cert is not None,
        )

        if self.cfg.test_path:
            try:
                self.probe()
            except RestError as e:
                self.close()
                raise ConfigError(f"a test request to {self.cfg.test_path} after setting up the provider did not return an OK response: {e}") from e

    # context management

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._tls.close()
        self.session.close()

    # requests

    def probe(self) -> str:
        return self.send(self.cfg.read_method, self.cfg.test_path)

    def url_for(self, path: str) -> str:
        return join_uri(self.cfg.uri, path)

    def _headers(self, body: str) -> CaseInsensitiveDict:
        headers: CaseInsensitiveDict = CaseInsensitiveDict()
        if body:
            headers["Content-Type"] = "application/json"
        if self.cfg.bearer_token:
            headers["Authorization"] = f"Bearer {self.cfg.bearer_token}"
        headers.update(self.cfg.headers)
        if self.tokens is not None:
            tok = self.tokens.token()
            headers["Authorization"] = f"Bearer {tok.access_token}"
        return headers

    def send(self, method: str, path: str, body: str = "") -> str:
        method = str(method or "").upper()
        url = self.url_for(path)
        headers = self._headers(body)
        retries = MAX_RETRIES if method in self.cfg.retry_methods else 0
        debug = self.cfg.debug

        log("HTTP", "request", "debug", f"{method} {url}", debug=debug, body=body or None)

        attempt = 0
        while True:
            resp = self._dispatch(method, url, body, headers)
            if 500 <= resp.status_code <= 599 and attempt < retries:
                attempt += 1
                log(
                    "HTTP", "retry", "warn", f"{method} {url} returned {resp.status_code}",
                    debug=debug, attempt=attempt, max_retries=retries,
                )
                if self.cfg.retry_delay > 0:
                    self._sleep(self.cfg.retry_delay)
                continue
            break

        text = resp.content.decode("utf-8", errors="replace")
        if self.cfg.xssi_prefix and text.startswith(self.cfg.xssi_prefix):
            text = text[len(self.cfg.xssi_prefix):]

        log("HTTP", "response", "debug", f"{method} {url} -> {resp.status_code}", debug=debug, body=text or None)

        if resp.status_code == 401 and self.tokens is not None:
            self.tokens.invalidate()
        if resp.status_code not in self.cfg.ok_status_codes:
            raise RemoteError(resp.status_code, text, method=method, url=url)
        return text if text else "{}"

    def _dispatch(
        self,
        method: str,
        url: str,
        body: str,
        headers: CaseInsensitiveDict,
    ) -> requests.Response:
        # follows redirects itself; hops are not retries
        home = urlparse(self.cfg.uri).netloc
        hops = 0
        while True:
            self.limiter.wait()
            foreign = urlparse(url).netloc != home
            send_headers = CaseInsensitiveDict(headers)
            if foreign:
                send_headers.pop("Authorization", None)
            try:
                resp = self.session.request(
                    method,
                    url,
                    data=body.encode("utf-8") if body else None,
                    headers=send_headers,
                    auth=None if foreign else self._auth,
                    timeout=self.cfg.timeout or None,
                    allow_redirects=False,
                )
            except requests.RequestException as e:
                raise TransportError(f"{method} {url}: {e}") from e

            location = resp.headers.get("Location")
            if resp.status_code not in REDIRECT_CODES or not location:
                return resp
            if hops >= MAX_REDIRECTS:
                raise TransportError(f"{method} {url}: stopped after {MAX_REDIRECTS} redirects")

            hops += 1
            target = urljoin(url, location)
            if resp.status_code == 303:
                method = self.cfg.read_method
                body = ""
                headers = CaseInsensitiveDict(headers)
                headers.pop("Content-Type", None)
            log("HTTP", "redirect", "debug", f"{resp.status_code} -> {target}", debug=self.cfg.debug, hop=hops)
            resp.close()
            url = target


__all__ = ["Transport", "TransportConfig", "MAX_RETRIES", "MAX_REDIRECTS"]
