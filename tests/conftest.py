"""
Pytest configuration and shared fixtures.
"""

import json
import logging

import pytest
from unittest.mock import Mock, MagicMock
from typing import Any, Dict, Optional

from sap_calm.core.auth import ApiKeyProvider
from sap_calm.core.config import CalmSettings
from sap_calm.core.models import RawResponse
from sap_calm.core.session import CalmSession


def make_response(
    status: int = 200,
    body: Any = None,
    headers: Optional[Dict[str, str]] = None,
    text: Optional[str] = None,
):
    """Build a mock ``requests.Response``."""
    if text is None:
        text = "" if body is None else json.dumps(body)
    resp = Mock()
    resp.status_code = status
    resp.text = text
    resp.content = text.encode("utf-8")
    resp.headers = headers if headers is not None else (
        {"Content-Type": "application/json"} if text else {}
    )
    if body is None:
        resp.json.side_effect = ValueError("No JSON")
    else:
        resp.json.return_value = body
    return resp


class BrokenHandler(logging.Handler):
    """Logging handler that fails on every record."""

    def emit(self, record):
        raise RuntimeError("disk full")


def make_raw(status: int = 200, body: Any = None, content_type: str = "application/json", text: Optional[str] = None):
    """Build a RawResponse as the gateway returns it."""
    if text is None:
        text = "" if body is None else json.dumps(body)
    headers = {"Content-Type": content_type} if content_type else {}
    return RawResponse(status=status, headers=headers, body=text.encode("utf-8"), url="https://test/x")


@pytest.fixture
def oauth_settings():
    """Production-mode settings."""
    return CalmSettings(
        tenant="acme",
        region="eu10",
        client_id="client",
        client_secret="secret",
    )


@pytest.fixture
def sandbox_settings():
    """Sandbox-mode settings."""
    return CalmSettings(sandbox=True, api_key="sandbox-key", max_page_size=100)


@pytest.fixture
def sandbox_session(sandbox_settings):
    """CalmSession in sandbox mode with the underlying requests session mocked."""
    sess = CalmSession(sandbox_settings, auth=ApiKeyProvider("sandbox-key"))
    sess.session = MagicMock()
    return sess


@pytest.fixture
def mock_session(sandbox_settings):
    """A mock CalmSession that builds real URLs and returns an empty 200."""
    session = Mock()
    session.cfg = sandbox_settings
    session.trace = None
    real = CalmSession.__new__(CalmSession)
    real.cfg = sandbox_settings
    session.url_for.side_effect = real.url_for
    session.execute.return_value = make_raw(200, {"value": []})
    return session


@pytest.fixture
def sample_collection():
    """Sample OData v4 collection."""
    return {
        "@odata.context": "$metadata#Features",
        "@odata.count": 2,
        "value": [
            {"uuid": "f-1", "title": "Feature 1", "statusCode": "CIPREPARE"},
            {"uuid": "f-2", "title": "Feature 2", "statusCode": "CIDONE"},
        ],
    }
