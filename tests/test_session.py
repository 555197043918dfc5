"""
Tests for sap_calm.core.session module.
"""

import json

import pytest
import requests
from unittest.mock import MagicMock, Mock

from conftest import make_response
from sap_calm.core.auth import OAuth2Token
from sap_calm.core.config import ApiPath
from sap_calm.core.errors import ApiError, GatewayConnectionError, GatewayError, GatewayTimeout
from sap_calm.core.models import EndpointDescriptor, RequestContext
from sap_calm.core.session import CalmSession, extract_sap_error


URL = "https://sandbox.api.sap.com/SAPCALM/calm-features/v1/Features"


def oauth_session(oauth_settings, tokens):
    """CalmSession with a mock provider handing out the given tokens in order."""
    auth = Mock()
    auth.acquire_credential.side_effect = tokens
    auth.auth_headers.side_effect = lambda cred: {"Authorization": f"Bearer {cred.access_token}"}
    sess = CalmSession(oauth_settings, auth=auth)
    sess.session = MagicMock()
    return sess


class TestExtractSapError:
    """Tests for OData error envelope parsing."""

    def test_v4_envelope(self):
        body = json.dumps({"error": {"code": "404", "message": "Not found", "innererror": {"transactionid": "T1"}}})
        assert extract_sap_error(body) == "code=404 | message=Not found | txid=T1"

    def test_v2_message_object(self):
        body = json.dumps({"error": {"code": "X", "message": {"lang": "en", "value": "Bad"}}})
        assert extract_sap_error(body) == "code=X | message=Bad"

    def test_not_an_envelope(self):
        assert extract_sap_error("plain text") is None
        assert extract_sap_error("[]") is None


class TestUrlFor:
    def test_sandbox_url(self, sandbox_session):
        url = sandbox_session.url_for(EndpointDescriptor(ApiPath.FEATURES, "Features"), path="f-1", query="$expand=toStatus")
        assert url == "https://sandbox.api.sap.com/SAPCALM/calm-features/v1/Features/f-1?$expand=toStatus"

    def test_production_url(self, oauth_settings):
        sess = CalmSession(oauth_settings, auth=Mock())
        url = sess.url_for(EndpointDescriptor(ApiPath.TASKS, "tasks", is_odata=False))
        assert url == "https://acme.eu10.alm.cloud.sap/api/calm-tasks/v1/tasks"


class TestExecute:
    """Tests for CalmSession.execute."""

    def test_api_key_header_and_body(self, sandbox_session):
        sandbox_session.session.request.return_value = make_response(201, {"uuid": "f-1"})

        raw = sandbox_session.execute("POST", URL, body={"title": "x"}, context=RequestContext(correlation_id="cid"))

        assert raw.status == 201
        kwargs = sandbox_session.session.request.call_args.kwargs
        assert kwargs["headers"]["APIKey"] == "sandbox-key"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["headers"]["X-Correlation-ID"] == "cid"
        assert json.loads(kwargs["data"]) == {"title": "x"}

    def test_timeout_from_context(self, sandbox_session):
        sandbox_session.session.request.return_value = make_response(200, {})
        sandbox_session.execute("GET", URL, context=RequestContext(timeout=4.0))
        assert sandbox_session.session.request.call_args.kwargs["timeout"] == 4.0

    def test_default_timeout(self, sandbox_session):
        sandbox_session.session.request.return_value = make_response(200, {})
        sandbox_session.execute("GET", URL)
        assert sandbox_session.session.request.call_args.kwargs["timeout"] == 30.0

    def test_401_refreshes_once_and_retries(self, oauth_settings):
        old, new = OAuth2Token("old", 9e9), OAuth2Token("new", 9e9)
        sess = oauth_session(oauth_settings, [old, new])
        sess.session.request.side_effect = [make_response(401, text="expired"), make_response(200, {"value": []})]

        raw = sess.execute("GET", URL)

        assert raw.status == 200
        assert sess.session.request.call_count == 2
        sess.auth.acquire_credential.assert_called_with(force=True, stale=old)
        second = sess.session.request.call_args_list[1].kwargs
        assert second["headers"]["Authorization"] == "Bearer new"

    def test_second_401_is_an_error(self, oauth_settings):
        tok = OAuth2Token("t", 9e9)
        sess = oauth_session(oauth_settings, [tok, tok])
        sess.session.request.side_effect = [make_response(401, text="no"), make_response(401, text="still no")]

        with pytest.raises(ApiError) as exc:
            sess.execute("GET", URL)
        assert exc.value.status == 401
        assert exc.value.body == "still no"
        assert sess.session.request.call_count == 2

    def test_api_error_carries_body(self, sandbox_session):
        body = {"error": {"code": "400", "message": "Invalid filter"}}
        sandbox_session.session.request.return_value = make_response(400, body)

        with pytest.raises(ApiError) as exc:
            sandbox_session.execute("GET", URL)

        err = exc.value
        assert err.status == 400
        assert json.loads(err.body) == body
        assert err.url == URL
        assert "Invalid filter" in str(err)
        assert err.to_detail()["status"] == 400

    def test_get_retried_once_on_connection_error(self, sandbox_session):
        sandbox_session.session.request.side_effect = [
            requests.ConnectionError("reset"),
            make_response(200, {"value": []}),
        ]
        assert sandbox_session.execute("GET", URL).status == 200
        assert sandbox_session.session.request.call_count == 2

    def test_get_connection_error_after_retry(self, sandbox_session):
        sandbox_session.session.request.side_effect = requests.ConnectionError("refused")
        with pytest.raises(GatewayConnectionError):
            sandbox_session.execute("GET", URL)
        assert sandbox_session.session.request.call_count == 2

    def test_post_not_retried_on_connection_error(self, sandbox_session):
        sandbox_session.session.request.side_effect = requests.ConnectionError("reset")
        with pytest.raises(GatewayConnectionError):
            sandbox_session.execute("POST", URL, body={"title": "x"})
        assert sandbox_session.session.request.call_count == 1

    def test_post_timeout_not_retried(self, sandbox_session):
        sandbox_session.session.request.side_effect = requests.ReadTimeout("slow")
        with pytest.raises(GatewayTimeout) as exc:
            sandbox_session.execute("POST", URL, body={"title": "x"})
        assert sandbox_session.session.request.call_count == 1
        assert exc.value.outcome_unknown is True
        assert exc.value.to_detail()["kind"] == "timeout"

    def test_get_timeout_not_retried(self, sandbox_session):
        sandbox_session.session.request.side_effect = requests.ConnectTimeout("slow")
        with pytest.raises(GatewayTimeout) as exc:
            sandbox_session.execute("GET", URL)
        assert sandbox_session.session.request.call_count == 1
        assert exc.value.outcome_unknown is False

    @pytest.mark.parametrize("exc", [
        requests.exceptions.ChunkedEncodingError("broken chunk"),
        requests.exceptions.ContentDecodingError("bad gzip"),
        requests.exceptions.TooManyRedirects("loop"),
        requests.exceptions.InvalidURL("bad host"),
    ])
    def test_other_transport_errors_typed(self, sandbox_session, exc):
        sandbox_session.session.request.side_effect = exc
        with pytest.raises(GatewayError) as err:
            sandbox_session.execute("GET", URL)
        assert err.value.to_detail()["kind"] == "gateway"
        assert err.value.url == URL
        assert sandbox_session.session.request.call_count == 1

    def test_trace_events(self, sandbox_session):
        sandbox_session.trace = Mock()
        sandbox_session.session.request.return_value = make_response(200, {"value": []})
        sandbox_session.execute("GET", URL)
        sandbox_session.trace.request_sent.assert_called_once()
        sandbox_session.trace.response_received.assert_called_once()

    def test_trace_silenced_per_call(self, sandbox_session):
        sandbox_session.trace = Mock()
        sandbox_session.session.request.return_value = make_response(200, {"value": []})
        sandbox_session.execute("GET", URL, context=RequestContext(debug=False))
        sandbox_session.trace.request_sent.assert_not_called()
        sandbox_session.trace.response_received.assert_not_called()

    def test_close_releases_pool(self, sandbox_session):
        pool = sandbox_session.session
        with sandbox_session:
            pass
        pool.close.assert_called_once()
