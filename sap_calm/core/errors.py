"""
sap_calm.core.errors - Error taxonomy
=====================================

Typed errors raised by the auth provider, HTTP gateway, query builder,
normalizer and tool dispatcher. Every error can render itself as a
structured detail dict so callers never see a raw exception.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional


class CalmError(RuntimeError):
    """
    Base class for all SAP Cloud ALM bridge errors.

    Attributes
    ----------
    kind : str
        Stable machine-readable error kind
    message : str
        Human-readable message
    """

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict[str, Any]:
        """Structured error object returned to tool callers."""
        return {"kind": self.kind, "message": self.message}


class ConfigError(CalmError):
    """Raised when settings are missing or invalid."""

    kind = "config"


# ---------------- auth ----------------

class AuthError(CalmError):
    """Credential could not be produced."""

    kind = "auth"


class TokenExchangeFailed(AuthError):
    """
    The OAuth2 client-credentials exchange failed.

    Attributes
    ----------
    status : int, optional
        HTTP status of the token endpoint, if it answered
    body : str
        Response body of the token endpoint
    """

    kind = "token_exchange_failed"

    def __init__(self, message: str, status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body or ""

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        if self.status is not None:
            detail["status"] = self.status
            detail["body"] = self.body
        return detail


# ---------------- gateway ----------------

class GatewayError(CalmError):
    """Outbound HTTP call failed."""

    kind = "gateway"

    def __init__(self, message: str, url: str = "") -> None:
        super().__init__(message)
        self.url = url

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        if self.url:
            detail["url"] = self.url
        return detail


class GatewayTimeout(GatewayError):
    """
    The request exceeded the configured timeout.

    For non-idempotent methods the server may already have applied the
    write; ``outcome_unknown`` is set so the caller can tell.
    """

    kind = "timeout"

    def __init__(self, message: str, url: str = "", method: str = "GET") -> None:
        super().__init__(message, url)
        self.method = method.upper()
        self.outcome_unknown = self.method != "GET"

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["outcome_unknown"] = self.outcome_unknown
        return detail


class GatewayConnectionError(GatewayError):
    """Connection-level failure (DNS, refused, reset)."""

    kind = "connection"


class ApiError(GatewayError):
    """
    SAP Cloud ALM answered with a status code >= 400.

    Attributes
    ----------
    status : int
        HTTP status code from SAP
    body : str
        Response body, verbatim
    url : str
        The URL that was called
    headers : dict
        Response headers
    summary : str
        Short description extracted from an OData error envelope
    """

    kind = "api_error"

    def __init__(
        self,
        status: int,
        body: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        summary: Optional[str] = None,
    ) -> None:
        snippet = summary or (body or "")[:1200]
        super().__init__(f"SAP Cloud ALM error {status} for {url}: {snippet}", url)
        self.status = status
        self.body = body or ""
        self.headers = headers or {}
        self.summary = summary

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["status"] = self.status
        detail["body"] = self.body
        return detail


# ---------------- pipeline ----------------

class NormalizeError(CalmError):
    """A success response carried a body that is not valid for its API."""

    kind = "invalid_body"

    def __init__(self, message: str, body: str = "") -> None:
        super().__init__(message)
        self.body = body

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["body"] = self.body[:500]
        return detail


class QueryError(CalmError):
    """Paging bounds or query clauses that cannot be sent."""

    kind = "query"


class UnknownToolError(CalmError):
    """No tool is registered under the requested name."""

    kind = "unknown_tool"

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class InvalidArgumentsError(CalmError):
    """Tool arguments failed schema validation."""

    kind = "invalid_arguments"

    def __init__(self, tool: str, errors: List[Dict[str, Any]]) -> None:
        fields = ", ".join(".".join(str(p) for p in e.get("loc", ())) or "?" for e in errors)
        super().__init__(f"Invalid arguments for {tool}: {fields}")
        self.tool = tool
        self.errors = errors

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["errors"] = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
            for e in self.errors
        ]
        return detail


def error_json(error: CalmError) -> str:
    """Serialize an error detail for text transports."""
    return json.dumps(error.to_detail(), indent=2, default=str)
