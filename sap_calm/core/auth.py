"""
sap_calm.core.auth - Credential providers
=========================================

Two ways to authenticate against SAP Cloud ALM:

- OAuth2ClientCredentials: client id/secret exchanged for a bearer token,
  cached until shortly before expiry, refreshed single-flight
- ApiKeyProvider: static sandbox key sent in the ``APIKey`` header
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

import requests

from sap_calm.core.config import CalmSettings
from sap_calm.core.errors import AuthError, TokenExchangeFailed
from sap_calm.core.trace import NULL_TRACE, TraceSink


@dataclass(frozen=True)
class OAuth2Token:
    """
    Bearer token with its absolute expiry (epoch seconds).

    ``refresh_at`` is when the token stops being handed out. It defaults
    to ``expires_at`` minus the provider's refresh margin.
    """

    access_token: str
    expires_at: float
    refresh_at: Optional[float] = None


@dataclass(frozen=True)
class ApiKey:
    """Static sandbox API key."""

    key: str


Credential = Union[OAuth2Token, ApiKey]


class AuthProvider:
    """Produces credentials for outbound requests."""

    def acquire_credential(self, *, force: bool = False, stale: Optional[Credential] = None) -> Credential:
        raise NotImplementedError

    def is_valid(self, credential: Optional[Credential]) -> bool:
        raise NotImplementedError

    def auth_headers(self, credential: Credential) -> Dict[str, str]:
        raise NotImplementedError

    def close(self) -> None:
        pass


class ApiKeyProvider(AuthProvider):
    """Sandbox provider; the key never expires."""

    def __init__(self, api_key: str) -> None:
        if not api_key:
            raise AuthError("No API key configured")
        self._credential = ApiKey(api_key)

    def acquire_credential(self, *, force: bool = False, stale: Optional[Credential] = None) -> Credential:
        return self._credential

    def is_valid(self, credential: Optional[Credential]) -> bool:
        return isinstance(credential, ApiKey)

    def auth_headers(self, credential: Credential) -> Dict[str, str]:
        return {"APIKey": credential.key}  # type: ignore[union-attr]

    def __repr__(self) -> str:
        return "ApiKeyProvider(mode='sandbox')"


class OAuth2ClientCredentials(AuthProvider):
    """
    OAuth2 client-credentials provider with lazy, single-flight refresh.

    The token is only fetched on first use or once it is inside the
    refresh margin. Concurrent callers that find it invalid queue on one
    lock; the first refreshes, the rest reuse its result.

    Parameters
    ----------
    token_url : str
        OAuth2 token endpoint
    client_id, client_secret : str
        Client credentials
    refresh_margin : float
        Seconds before expiry at which a token counts as invalid
    timeout : float
        Timeout for the token exchange
    http : requests.Session, optional
        Session used for the exchange (default: a private session)
    clock : callable, optional
        Time source returning epoch seconds (default: ``time.time``)
    trace : TraceSink, optional
        Debug sink for ``auth refreshed`` events

    Examples
    --------
    >>> provider = OAuth2ClientCredentials.from_settings(cfg)
    >>> cred = provider.acquire_credential()
    >>> provider.auth_headers(cred)
    {'Authorization': 'Bearer eyJ...'}
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        *,
        refresh_margin: float = 60.0,
        timeout: float = 30.0,
        http: Optional[requests.Session] = None,
        clock: Optional[Callable[[], float]] = None,
        trace: Optional[TraceSink] = None,
    ) -> None:
        self.token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self.refresh_margin = float(refresh_margin)
        self.timeout = float(timeout)
        self.http = http or requests.Session()
        self._owns_http = http is None
        self.clock = clock or time.time
        self.trace = trace or NULL_TRACE
        self.logger = logging.getLogger("sap_calm.auth")

        self._token: Optional[OAuth2Token] = None
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        cfg: CalmSettings,
        *,
        http: Optional[requests.Session] = None,
        trace: Optional[TraceSink] = None,
    ) -> "OAuth2ClientCredentials":
        if not cfg.token_url or not cfg.client_id or not cfg.client_secret:
            raise AuthError("OAuth2 mode requires tenant, region, client_id and client_secret")
        return cls(
            cfg.token_url,
            cfg.client_id,
            cfg.client_secret,
            refresh_margin=cfg.token_refresh_buffer_seconds,
            timeout=cfg.timeout_seconds,
            http=http,
            trace=trace,
        )

    # ---------------- contract ----------------

    def is_valid(self, credential: Optional[Credential]) -> bool:
        if not isinstance(credential, OAuth2Token):
            return False
        refresh_at = credential.refresh_at
        if refresh_at is None:
            refresh_at = credential.expires_at - self.refresh_margin
        return self.clock() < refresh_at

    def acquire_credential(self, *, force: bool = False, stale: Optional[Credential] = None) -> Credential:
        """
        Return a valid token, exchanging credentials if needed.

        Parameters
        ----------
        force : bool
            Refresh even if the cached token still looks valid (after a 401)
        stale : Credential, optional
            The token the server rejected. A forced refresh is skipped when
            another caller has already replaced it.
        """
        seen = self._token
        if not force and self.is_valid(seen):
            return seen  # type: ignore[return-value]

        with self._lock:
            token = self._token
            if force:
                if token is not None and stale is not None and token != stale and self.is_valid(token):
                    return token
            elif self.is_valid(token):
                return token  # type: ignore[return-value]
            elif token is not None and token is not seen:
                # Exchanged by another caller while this one waited.
                return token

            token = self._exchange()
            self._token = token
            return token

    def auth_headers(self, credential: Credential) -> Dict[str, str]:
        return {"Authorization": f"Bearer {credential.access_token}"}  # type: ignore[union-attr]

    def invalidate(self) -> None:
        """Drop the cached token; the next call exchanges again."""
        with self._lock:
            self._token = None

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    # ---------------- exchange ----------------

    def _exchange(self) -> OAuth2Token:
        self.logger.debug("Fetching token from %s", self.token_url)
        try:
            r = self.http.post(
                self.token_url,
                data={"grant_type": "client_credentials"},
                auth=(self._client_id, self._client_secret),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TokenExchangeFailed(f"Token request to {self.token_url} failed: {e}") from e

        if not 200 <= r.status_code < 300:
            self.logger.warning("Token request failed: %s", r.status_code)
            raise TokenExchangeFailed(
                f"Token request failed with status {r.status_code}",
                status=r.status_code,
                body=r.text,
            )

        try:
            data = r.json()
            access_token = data["access_token"]
            expires_in = float(data["expires_in"])
        except (ValueError, KeyError, TypeError) as e:
            raise TokenExchangeFailed(
                f"Malformed token response: {e}",
                status=r.status_code,
                body=r.text,
            ) from e
        if not isinstance(access_token, str) or not access_token:
            raise TokenExchangeFailed("Token response has no access_token", status=r.status_code, body=r.text)

        now = self.clock()
        expires_at = now + expires_in
        # Short-lived tokens keep at least half their lifetime usable.
        margin = min(self.refresh_margin, max(expires_in, 0.0) / 2)
        self.trace.auth_refreshed(expires_at)
        self.logger.info("Token acquired, valid for %ss", int(expires_in))
        return OAuth2Token(access_token, expires_at, refresh_at=expires_at - margin)

    def __repr__(self) -> str:
        return f"OAuth2ClientCredentials(token_url={self.token_url!r})"


def provider_from_settings(
    cfg: CalmSettings,
    *,
    http: Optional[requests.Session] = None,
    trace: Optional[TraceSink] = None,
) -> AuthProvider:
    """Pick the provider matching the configured mode."""
    if cfg.sandbox:
        return ApiKeyProvider(cfg.api_key or "")
    return OAuth2ClientCredentials.from_settings(cfg, http=http, trace=trace)
