"""
sap_calm.odata.normalize - Response normalization
=================================================

Turns raw SAP Cloud ALM responses into ToolResult records. OData
collections are unwrapped from their ``value`` envelope; REST bodies are
passed through as-is.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from sap_calm.core.errors import NormalizeError
from sap_calm.core.models import RawResponse, ToolResult


def _looks_like_json(text: str) -> bool:
    return text[:1] in ("{", "[")


def _parse_body(raw: RawResponse) -> Optional[Any]:
    """Decode the body, or return None when there is nothing to decode."""
    if raw.status == 204:
        return None
    text = raw.text.strip()
    if not text:
        return None

    ctype = raw.content_type
    if "json" not in ctype and (ctype or not _looks_like_json(text)):
        return None

    try:
        return json.loads(text)
    except ValueError as e:
        raise NormalizeError(
            f"Response from {raw.url or 'server'} is not valid JSON: {e}",
            body=text,
        ) from e


def normalize(raw: RawResponse, is_odata: bool) -> ToolResult:
    """
    Normalize a successful response.

    Parameters
    ----------
    raw : RawResponse
        Response with a 2xx status
    is_odata : bool
        Unwrap the OData v4 envelope (``value``, ``@odata.count``)

    Returns
    -------
    ToolResult
        Success result; empty and non-JSON bodies give ``payload=None``

    Raises
    ------
    NormalizeError
        The body claims to be JSON but does not parse, or an OData body is
        not a JSON object
    """
    data = _parse_body(raw)
    if data is None:
        return ToolResult.success()

    if not is_odata:
        return ToolResult.success(data)

    if not isinstance(data, dict):
        raise NormalizeError(
            f"OData response from {raw.url or 'server'} is not a JSON object",
            body=raw.text,
        )

    if "value" not in data:
        return ToolResult.success(data)

    count = data.get("@odata.count")
    if count is not None:
        try:
            count = int(count)
        except (TypeError, ValueError) as e:
            raise NormalizeError(f"Invalid @odata.count: {count!r}", body=raw.text) from e

    return ToolResult.success(
        data["value"],
        count=count,
        next_link=data.get("@odata.nextLink"),
    )
