"""
Tests for sap_calm.core.auth module.
"""

import threading
import time

import pytest
import requests
from unittest.mock import MagicMock

from conftest import make_response
from sap_calm.core.auth import (
    ApiKey,
    ApiKeyProvider,
    OAuth2ClientCredentials,
    OAuth2Token,
    provider_from_settings,
)
from sap_calm.core.errors import AuthError, TokenExchangeFailed


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


def make_provider(http, clock=None, margin=60.0):
    return OAuth2ClientCredentials(
        "https://acme.authentication.eu10.hana.ondemand.com/oauth/token",
        "client",
        "secret",
        refresh_margin=margin,
        http=http,
        clock=clock or FakeClock(),
    )


def token_response(token="tok-1", expires_in=3600):
    return make_response(200, {"access_token": token, "token_type": "bearer", "expires_in": expires_in})


class TestApiKeyProvider:
    """Tests for the sandbox provider."""

    def test_header(self):
        provider = ApiKeyProvider("abc")
        cred = provider.acquire_credential()
        assert cred == ApiKey("abc")
        assert provider.auth_headers(cred) == {"APIKey": "abc"}
        assert provider.is_valid(cred)

    def test_empty_key_rejected(self):
        with pytest.raises(AuthError):
            ApiKeyProvider("")

    def test_selected_for_sandbox(self, sandbox_settings):
        assert isinstance(provider_from_settings(sandbox_settings), ApiKeyProvider)


class TestOAuth2ClientCredentials:
    """Tests for token exchange and caching."""

    def test_exchange_request(self):
        http = MagicMock()
        http.post.return_value = token_response()
        provider = make_provider(http)

        cred = provider.acquire_credential()

        assert cred.access_token == "tok-1"
        args, kwargs = http.post.call_args
        assert args[0].endswith("/oauth/token")
        assert kwargs["data"] == {"grant_type": "client_credentials"}
        assert kwargs["auth"] == ("client", "secret")
        assert provider.auth_headers(cred) == {"Authorization": "Bearer tok-1"}

    def test_token_cached_until_margin(self):
        http = MagicMock()
        http.post.side_effect = [token_response("tok-1", 3600), token_response("tok-2", 3600)]
        clock = FakeClock()
        provider = make_provider(http, clock)

        first = provider.acquire_credential()
        clock.now += 3600 - 61
        assert provider.acquire_credential() is first
        assert http.post.call_count == 1

        # inside the refresh margin
        clock.now += 2
        assert provider.acquire_credential().access_token == "tok-2"
        assert http.post.call_count == 2

    def test_validity_window(self):
        clock = FakeClock(100.0)
        provider = make_provider(MagicMock(), clock, margin=60.0)
        assert provider.is_valid(OAuth2Token("t", 161.0))
        assert not provider.is_valid(OAuth2Token("t", 160.0))
        assert not provider.is_valid(None)

    def test_http_error_status(self):
        http = MagicMock()
        http.post.return_value = make_response(401, text="invalid_client")
        provider = make_provider(http)

        with pytest.raises(TokenExchangeFailed) as exc:
            provider.acquire_credential()
        assert exc.value.status == 401
        assert exc.value.body == "invalid_client"
        assert exc.value.to_detail()["kind"] == "token_exchange_failed"

    def test_transport_error(self):
        http = MagicMock()
        http.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(TokenExchangeFailed, match="refused"):
            make_provider(http).acquire_credential()

    @pytest.mark.parametrize("body", [{"token_type": "bearer"}, {"access_token": "x"}, {"access_token": "", "expires_in": 5}])
    def test_malformed_body(self, body):
        http = MagicMock()
        http.post.return_value = make_response(200, body)
        with pytest.raises(TokenExchangeFailed):
            make_provider(http).acquire_credential()

    def test_forced_refresh_replaces_stale_token(self):
        http = MagicMock()
        http.post.side_effect = [token_response("tok-1"), token_response("tok-2")]
        provider = make_provider(http)

        stale = provider.acquire_credential()
        fresh = provider.acquire_credential(force=True, stale=stale)

        assert fresh.access_token == "tok-2"
        assert http.post.call_count == 2

    def test_forced_refresh_reuses_already_refreshed_token(self):
        http = MagicMock()
        http.post.side_effect = [token_response("tok-1"), token_response("tok-2")]
        provider = make_provider(http)

        stale = provider.acquire_credential()
        first = provider.acquire_credential(force=True, stale=stale)
        second = provider.acquire_credential(force=True, stale=stale)

        assert first is second
        assert http.post.call_count == 2

    def test_invalidate(self):
        http = MagicMock()
        http.post.side_effect = [token_response("tok-1"), token_response("tok-2")]
        provider = make_provider(http)
        provider.acquire_credential()
        provider.invalidate()
        assert provider.acquire_credential().access_token == "tok-2"

    def test_concurrent_callers_share_one_exchange(self):
        """A burst of callers with no valid token triggers exactly one exchange."""
        calls = []

        def slow_post(*args, **kwargs):
            calls.append(1)
            time.sleep(0.05)
            return token_response("tok-shared")

        http = MagicMock()
        http.post.side_effect = slow_post
        provider = make_provider(http, clock=time.time)

        workers = 10
        barrier = threading.Barrier(workers)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            cred = provider.acquire_credential()
            with lock:
                results.append(cred)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert len(results) == workers
        assert all(r.access_token == "tok-shared" for r in results)

    def test_short_lived_token_reused(self):
        """A token shorter than the refresh margin is still cached for half its lifetime."""
        http = MagicMock()
        http.post.side_effect = [token_response("tok-1", 30), token_response("tok-2", 30)]
        clock = FakeClock()
        provider = make_provider(http, clock, margin=60.0)

        first = provider.acquire_credential()
        assert provider.is_valid(first)
        clock.now += 14
        assert provider.acquire_credential() is first
        assert http.post.call_count == 1

        clock.now += 2
        assert provider.acquire_credential().access_token == "tok-2"
        assert http.post.call_count == 2

    def test_concurrent_callers_share_short_lived_token(self):
        calls = []

        def slow_post(*args, **kwargs):
            calls.append(1)
            time.sleep(0.05)
            return token_response("tok-short", 30)

        http = MagicMock()
        http.post.side_effect = slow_post
        provider = make_provider(http, clock=time.time, margin=60.0)

        workers = 5
        barrier = threading.Barrier(workers)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            cred = provider.acquire_credential()
            with lock:
                results.append(cred)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert [r.access_token for r in results] == ["tok-short"] * workers

    def test_waiters_reuse_token_exchanged_meanwhile(self):
        """Even a token that is already inside its margin is not exchanged twice by queued callers."""
        calls = []

        def slow_post(*args, **kwargs):
            calls.append(1)
            time.sleep(0.1)
            return token_response("tok-zero", 0)

        http = MagicMock()
        http.post.side_effect = slow_post
        provider = make_provider(http, clock=time.time)

        workers = 4
        barrier = threading.Barrier(workers)

        def worker():
            barrier.wait()
            provider.acquire_credential()

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1

    def test_failed_exchange_not_cached(self):
        http = MagicMock()
        http.post.side_effect = [make_response(500, text="boom"), token_response("tok-1")]
        provider = make_provider(http)

        with pytest.raises(TokenExchangeFailed):
            provider.acquire_credential()
        assert provider.acquire_credential().access_token == "tok-1"

    def test_selected_for_oauth(self, oauth_settings):
        provider = provider_from_settings(oauth_settings, http=MagicMock())
        assert isinstance(provider, OAuth2ClientCredentials)
        assert provider.refresh_margin == 60.0
