"""
sap_calm.core.session - SAP Cloud ALM HTTP gateway
==================================================

Low-level HTTP session for the SAP Cloud ALM REST and OData APIs with:
- Credential attachment (OAuth2 bearer or sandbox API key)
- One forced token refresh and retry on 401
- One retry of GET requests on connection failure
- Timeouts mapped to typed errors, never retried
- Proper error extraction from SAP responses
- Optional request/response tracing
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional

import requests
from requests import Response, Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from sap_calm.core.auth import AuthProvider, provider_from_settings
from sap_calm.core.config import CalmSettings
from sap_calm.core.errors import ApiError, GatewayConnectionError, GatewayError, GatewayTimeout
from sap_calm.core.models import IDEMPOTENT_METHODS, EndpointDescriptor, RawResponse, RequestContext
from sap_calm.core.trace import NULL_TRACE, TraceSink


def extract_sap_error(body: str) -> Optional[str]:
    """
    Summarize an OData/SAP error envelope.

    Returns None when the body is not such an envelope.

    Examples
    --------
    >>> extract_sap_error('{"error": {"code": "404", "message": "Not found"}}')
    'code=404 | message=Not found'
    """
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    err = data.get("error")
    if not isinstance(err, dict):
        return None

    code = err.get("code")
    message = None
    if isinstance(err.get("message"), dict):
        message = err["message"].get("value")
    elif isinstance(err.get("message"), str):
        message = err.get("message")

    inner = err.get("innererror") or err.get("innerError")
    txid = inner.get("transactionid") if isinstance(inner, dict) else None

    parts = []
    if code:
        parts.append(f"code={code}")
    if message:
        parts.append(f"message={message}")
    if txid:
        parts.append(f"txid={txid}")
    return " | ".join(parts) or None


class CalmSession:
    """
    Authenticated HTTP session for SAP Cloud ALM.

    Thread-safe: one session serves all concurrent tool calls. The only
    shared mutable state is the provider's credential and the connection
    pool.

    Parameters
    ----------
    cfg : CalmSettings
        Validated settings
    auth : AuthProvider, optional
        Credential provider (default: derived from ``cfg``)
    trace : TraceSink, optional
        Debug sink for request/response events

    Examples
    --------
    >>> with CalmSession(cfg) as sess:
    ...     url = sess.url_for(EndpointDescriptor(ApiPath.FEATURES, "Features"), query="$top=5")
    ...     raw = sess.execute("GET", url)
    """

    user_agent = "sap-calm-mcp/0.1"

    def __init__(
        self,
        cfg: CalmSettings,
        auth: Optional[AuthProvider] = None,
        trace: Optional[TraceSink] = None,
    ) -> None:
        self.cfg = cfg
        self.timeout = float(cfg.timeout_seconds)
        self.trace = trace or NULL_TRACE
        self.logger = logging.getLogger("sap_calm.http")

        self.session = self._build_session()
        self.auth = auth or provider_from_settings(cfg, trace=self.trace)

    def close(self) -> None:
        """Close the underlying HTTP session and release pooled connections."""
        try:
            self.session.close()
        finally:
            self.auth.close()

    def __enter__(self) -> "CalmSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------------- session ----------------

    def _build_session(self) -> Session:
        sess = requests.Session()
        sess.headers.update({
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        })

        # Retry policy lives in execute(); the pool itself never retries.
        retry = Retry(total=0, connect=0, read=0, redirect=0, status=0, raise_on_status=False)
        adapter = HTTPAdapter(max_retries=retry, pool_connections=20, pool_maxsize=50)
        sess.mount("https://", adapter)
        sess.mount("http://", adapter)
        return sess

    # ---------------- helpers ----------------

    def url_for(self, endpoint: EndpointDescriptor, path: str = "", query: str = "") -> str:
        """
        Build the full URL for an endpoint.

        Parameters
        ----------
        endpoint : EndpointDescriptor
            Target API and entity segment (already formatted)
        path : str
            Extra path below the entity segment, e.g. an encoded key
        query : str
            Query string without the leading ``?``
        """
        url = self.cfg.api_url(endpoint.api)
        segment = endpoint.entity_segment.strip("/")
        if segment:
            url = f"{url}/{segment}"
        if path:
            url = f"{url}/{path.lstrip('/')}"
        if query:
            url = f"{url}?{query}"
        return url

    def _raise_for_error(self, r: Response, url: str) -> None:
        if r.status_code >= 400:
            raise ApiError(r.status_code, r.text, url, dict(r.headers), summary=extract_sap_error(r.text))

    def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        data: Optional[bytes],
        timeout: float,
    ) -> Response:
        """One HTTP attempt, with GET retried once on connection failure."""
        attempts = 2 if method in IDEMPOTENT_METHODS else 1
        for attempt in range(1, attempts + 1):
            try:
                return self.session.request(
                    method=method,
                    url=url,
                    headers=headers,
                    data=data,
                    timeout=timeout,
                )
            except requests.Timeout as e:
                raise GatewayTimeout(
                    f"{method} {url} timed out after {timeout}s",
                    url=url,
                    method=method,
                ) from e
            except requests.ConnectionError as e:
                if attempt < attempts:
                    self.logger.warning("Connection failure on %s %s, retrying: %s", method, url, e)
                    continue
                raise GatewayConnectionError(f"{method} {url} failed: {e}", url=url) from e
            except requests.RequestException as e:
                raise GatewayError(f"{method} {url} failed: {e}", url=url) from e
        raise AssertionError("unreachable")

    # ---------------- public ops ----------------

    def execute(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        timeout: Optional[float] = None,
        context: Optional[RequestContext] = None,
    ) -> RawResponse:
        """
        Execute an authenticated request.

        Parameters
        ----------
        method : str
            HTTP method
        url : str
            Full URL (see ``url_for``)
        headers : dict, optional
            Additional HTTP headers
        body : any, optional
            JSON-serializable request body
        timeout : float, optional
            Override the configured timeout
        context : RequestContext, optional
            Per-call timeout, debug flag and correlation id

        Returns
        -------
        RawResponse
            The 2xx response

        Raises
        ------
        GatewayTimeout, GatewayConnectionError, GatewayError, ApiError, AuthError
        """
        method = method.upper()
        if timeout is None and context is not None:
            timeout = context.timeout
        timeout = float(timeout if timeout is not None else self.timeout)
        correlation_id = context.correlation_id if context is not None else ""
        traced = context is None or context.traced

        base_headers: Dict[str, str] = dict(headers or {})
        data: Optional[bytes] = None
        if body is not None:
            data = json.dumps(body, separators=(",", ":")).encode("utf-8")
            base_headers.setdefault("Content-Type", "application/json")
        if correlation_id:
            base_headers.setdefault("X-Correlation-ID", correlation_id)

        credential = self.auth.acquire_credential()
        refreshed = False
        while True:
            req_headers = dict(base_headers)
            req_headers.update(self.auth.auth_headers(credential))

            if traced:
                self.trace.request_sent(method, url, body, correlation_id)
            t0 = time.perf_counter()
            r = self._send(method, url, req_headers, data, timeout)
            dt = (time.perf_counter() - t0) * 1000.0
            self.logger.debug("%s %s %s %sms", method, url, r.status_code, round(dt, 1))
            if traced:
                self.trace.response_received(r.status_code, url, r.content, correlation_id)

            if r.status_code == 401 and not refreshed:
                refreshed = True
                self.logger.info("401 from %s, refreshing credential and retrying", url)
                credential = self.auth.acquire_credential(force=True, stale=credential)
                continue

            self._raise_for_error(r, url)
            return RawResponse(
                status=r.status_code,
                headers=dict(r.headers),
                body=r.content or b"",
                url=url,
                elapsed_ms=round(dt, 1),
            )

    def __repr__(self) -> str:
        return f"CalmSession(base_url={self.cfg.base_url!r}, auth={self.auth!r})"
