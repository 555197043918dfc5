"""
sap_calm.core.models - Pipeline records
=======================================

Plain records passed between the query builder, HTTP gateway, normalizer
and tool dispatcher.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from sap_calm.core.config import ApiPath
from sap_calm.core.errors import CalmError


IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


@dataclass(frozen=True)
class EndpointDescriptor:
    """
    Where a tool's request goes.

    Parameters
    ----------
    api : ApiPath
        One of the nine API base paths
    entity_segment : str
        Path below the base, e.g. "Features" or "tasks/{task_id}/comments"
    method : str
        HTTP method
    is_odata : bool
        Whether the response uses the OData v4 envelope
    """

    api: ApiPath
    entity_segment: str
    method: str = "GET"
    is_odata: bool = True


@dataclass
class RequestContext:
    """
    Per-call settings; owned by one invocation and discarded afterwards.

    ``debug`` of None follows the trace sink; False silences tracing for
    this call only.
    """

    timeout: Optional[float] = None
    debug: Optional[bool] = None
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def traced(self) -> bool:
        return self.debug is not False


@dataclass
class RawResponse:
    """A successful HTTP response, detached from the transport."""

    status: int
    headers: Dict[str, str]
    body: bytes
    url: str = ""
    elapsed_ms: float = 0.0

    @property
    def content_type(self) -> str:
        for k, v in self.headers.items():
            if k.lower() == "content-type":
                return (v or "").lower()
        return ""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class ToolStatus(str, enum.Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class ToolResult:
    """
    Uniform result of a tool invocation.

    ``error_detail`` is present exactly when ``status`` is ERROR.
    """

    status: ToolStatus
    payload: Any = None
    count: Optional[int] = None
    next_link: Optional[str] = None
    error_detail: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        if self.status is ToolStatus.SUCCESS and self.error_detail is not None:
            raise ValueError("A successful ToolResult cannot carry error_detail")
        if self.status is ToolStatus.ERROR and self.error_detail is None:
            raise ValueError("An error ToolResult requires error_detail")

    @classmethod
    def success(cls, payload: Any = None, count: Optional[int] = None, next_link: Optional[str] = None) -> "ToolResult":
        return cls(ToolStatus.SUCCESS, payload=payload, count=count, next_link=next_link)

    @classmethod
    def failure(cls, error: CalmError) -> "ToolResult":
        return cls(ToolStatus.ERROR, error_detail=error.to_detail())

    @property
    def ok(self) -> bool:
        return self.status is ToolStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        if not self.ok:
            return {"status": self.status.value, "error": self.error_detail}
        out: Dict[str, Any] = {"status": self.status.value, "payload": self.payload}
        if self.count is not None:
            out["count"] = self.count
        if self.next_link:
            out["next_link"] = self.next_link
        return out
