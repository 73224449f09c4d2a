"""
Directory Token Tests

Expiry decoding, provider selection, refresh providers and the
refresh-once policy.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from jose import jwt

from agreement_engine.config import DirectorySettings
from agreement_engine.exceptions import TokenRefreshError
from agreement_engine.services.directory import (
    CommandTokenProvider,
    Credentials,
    OAuthTokenProvider,
    RefreshPolicy,
    StaticTokenProvider,
    build_token_provider,
    decode_token_expiry,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


def signed(exp: datetime) -> str:
    return jwt.encode({"sub": "svc", "exp": int(exp.timestamp())}, "anything", algorithm="HS256")


# =============================================================================
# EXPIRY
# =============================================================================

class TestExpiry:

    def test_decode_reads_exp_without_verifying(self):
        assert decode_token_expiry(signed(NOW)) == NOW

    @pytest.mark.parametrize("token", ["", "not-a-jwt", jwt.encode({"sub": "x"}, "k", algorithm="HS256")])
    def test_decode_without_exp(self, token):
        assert decode_token_expiry(token) is None

    def test_expires_within(self):
        provider = StaticTokenProvider(Credentials(access_token="t", subscription_keys=["k"]))
        # static credentials are never considered stale
        assert not provider.expires_within(180, now=NOW)

        oauth = OAuthTokenProvider(DirectorySettings(access_token=signed(NOW + timedelta(minutes=2))))
        assert oauth.expires_within(180, now=NOW)
        assert not oauth.expires_within(60, now=NOW)

    def test_unknown_expiry_counts_as_stale(self):
        oauth = OAuthTokenProvider(DirectorySettings(access_token="opaque"))
        assert oauth.expires_within(180, now=NOW)

    def test_configured_expiry_wins(self):
        settings = DirectorySettings(access_token="opaque", token_expires_at="2025-06-15T13:00:00Z")
        assert not OAuthTokenProvider(settings).expires_within(180, now=NOW)


class TestBuildTokenProvider:

    def test_command_preferred(self):
        settings = DirectorySettings(refresh_command="refresh-sky", client_id="c", client_secret="s", refresh_token="r")
        assert isinstance(build_token_provider(settings), CommandTokenProvider)

    def test_oauth_when_client_credentials_present(self):
        settings = DirectorySettings(client_id="c", client_secret="s", refresh_token="r")
        assert isinstance(build_token_provider(settings), OAuthTokenProvider)

    def test_static_otherwise(self):
        provider = build_token_provider(DirectorySettings(access_token="t", subscription_keys=["k"]))
        assert isinstance(provider, StaticTokenProvider)
        assert provider.current().complete


# =============================================================================
# PROVIDERS
# =============================================================================

class TestCommandTokenProvider:

    def test_refresh_reads_json(self):
        settings = DirectorySettings(subscription_keys=["k"])
        provider = CommandTokenProvider(settings, command="echo '{\"access_token\": \"fresh-token\"}'")
        creds = asyncio.run(provider.refresh())
        assert creds.access_token == "fresh-token"
        assert creds.subscription_keys == ["k"]
        assert provider.current() is creds

    def test_failing_command(self):
        provider = CommandTokenProvider(DirectorySettings(), command="false")
        with pytest.raises(TokenRefreshError):
            asyncio.run(provider.refresh())

    def test_command_required(self):
        with pytest.raises(ValueError):
            CommandTokenProvider(DirectorySettings())


class CountingProvider(StaticTokenProvider):

    def __init__(self):
        super().__init__(Credentials(access_token="old", subscription_keys=["k"]))
        self.refreshes = 0

    async def _do_refresh(self):
        self.refreshes += 1
        await asyncio.sleep(0)
        return Credentials(access_token=f"fresh-{self.refreshes}", subscription_keys=["k"])


class TestConcurrentRefresh:

    def test_queued_callers_reuse_one_refresh(self):
        provider = CountingProvider()

        async def both():
            return await asyncio.gather(provider.refresh(), provider.refresh())

        first, second = asyncio.run(both())
        assert provider.refreshes == 1
        assert first is second
        assert first.access_token == "fresh-1"

    def test_sequential_callers_refresh_again(self):
        provider = CountingProvider()
        asyncio.run(provider.refresh())
        assert asyncio.run(provider.refresh()).access_token == "fresh-2"


class FakeResponse:

    def __init__(self, status, body):
        self.status = status
        self._body = body

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:

    def __init__(self, response):
        self.response = response
        self.posts = []

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        return self.response

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class TestOAuthTokenProvider:

    def settings(self, **kw):
        fields = dict(client_id="client", client_secret="secret", refresh_token="r1", subscription_keys=["k"])
        fields.update(kw)
        return DirectorySettings(**fields)

    def test_rolling_refresh_token(self):
        access = signed(NOW + timedelta(hours=1))
        session = FakeSession(FakeResponse(200, f'{{"access_token": "{access}", "refresh_token": "r2"}}'))
        provider = OAuthTokenProvider(self.settings(), session_factory=lambda: session)
        creds = asyncio.run(provider.refresh())

        assert creds.access_token == access
        assert creds.expires_at == NOW + timedelta(hours=1)
        assert provider.refresh_token == "r2"
        url, kwargs = session.posts[0]
        assert url == "https://oauth2.sky.blackbaud.com/token"
        assert kwargs["data"] == {"grant_type": "refresh_token", "refresh_token": "r1"}

    def test_endpoint_error(self):
        session = FakeSession(FakeResponse(400, '{"error": "invalid_grant"}'))
        provider = OAuthTokenProvider(self.settings(), session_factory=lambda: session)
        with pytest.raises(TokenRefreshError):
            asyncio.run(provider.refresh())

    def test_missing_client_secret(self):
        provider = OAuthTokenProvider(self.settings(client_secret=""), session_factory=MagicMock())
        with pytest.raises(TokenRefreshError):
            asyncio.run(provider.refresh())


# =============================================================================
# REFRESH POLICY
# =============================================================================

class TestRefreshPolicy:

    def run(self, results, provider=None, max_refreshes=1):
        provider = provider or MagicMock(refresh=AsyncMock())
        attempt = AsyncMock(side_effect=results)
        outcome = asyncio.run(RefreshPolicy(max_refreshes).run(provider, attempt, lambda r: r == "unauthorized"))
        return outcome, attempt, provider

    def test_success_never_refreshes(self):
        outcome, attempt, provider = self.run(["ok"])
        assert outcome == "ok"
        provider.refresh.assert_not_awaited()

    def test_one_refresh_then_retry(self):
        outcome, attempt, provider = self.run(["unauthorized", "ok"])
        assert outcome == "ok"
        assert attempt.await_count == 2
        assert provider.refresh.await_count == 1

    def test_second_failure_is_returned(self):
        outcome, attempt, provider = self.run(["unauthorized", "unauthorized", "ok"])
        assert outcome == "unauthorized"
        assert attempt.await_count == 2

    def test_refresh_failure_returns_first_result(self, failing_refresh):
        outcome, attempt, _ = self.run(["unauthorized"], provider=MagicMock(refresh=failing_refresh))
        assert outcome == "unauthorized"
        assert attempt.await_count == 1

    def test_zero_refreshes(self):
        outcome, attempt, provider = self.run(["unauthorized"], max_refreshes=0)
        assert outcome == "unauthorized"
        provider.refresh.assert_not_awaited()
