"""
Directory Client Tests

Transport is replaced by patching DirectoryClient._send, so no network
access is needed.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from agreement_engine.config import DirectorySettings
from agreement_engine.exceptions import UpstreamError
from agreement_engine.services.directory import (
    Credentials,
    DirectoryClient,
    DirectoryResponse,
    StaticTokenProvider,
)


def client(keys=("key-a", "key-b"), token="tok", responses=None):
    provider = StaticTokenProvider(Credentials(access_token=token, subscription_keys=list(keys)))
    c = DirectoryClient(DirectorySettings(base_url="https://directory.test/"), provider)
    c._send = AsyncMock(side_effect=responses or [DirectoryResponse(status=200, json={"value": []})])
    return c


def sent_keys(c):
    return [call.args[2]["Bb-Api-Subscription-Key"] for call in c._send.await_args_list]


class TestRequests:

    def test_search_params_and_headers(self):
        c = client()
        asyncio.run(c.search("12345678"))
        url, params, headers = c._send.await_args.args
        assert url == "https://directory.test/constituent/v1/constituents/search"
        assert params == {
            "search_text": "12345678",
            "strict_search": "true",
            "include_non_constituents": "false",
        }
        assert headers["Authorization"] == "Bearer tok"

    def test_record_ids_are_quoted(self):
        c = client()
        asyncio.run(c.get_codes("a/b"))
        assert c._send.await_args.args[0].endswith("/constituents/a%2Fb/constituentcodes")

    def test_values(self):
        assert DirectoryResponse(status=200, json={"value": [{"id": "1"}]}).values == [{"id": "1"}]
        assert DirectoryResponse(status=200, json=None).values == []


class TestKeyRotation:

    def test_first_key_success_stops(self):
        c = client()
        response = asyncio.run(c.get_record("1"))
        assert response.ok
        assert sent_keys(c) == ["key-a"]

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_failure_tries_next_key(self, status):
        c = client(responses=[DirectoryResponse(status=status), DirectoryResponse(status=200, json={})])
        response = asyncio.run(c.get_record("1"))
        assert response.ok
        assert sent_keys(c) == ["key-a", "key-b"]

    def test_all_keys_rejected_returns_last(self):
        c = client(responses=[DirectoryResponse(status=403), DirectoryResponse(status=401, text="denied")])
        response = asyncio.run(c.get_record("1"))
        assert response.status == 401

    def test_other_errors_do_not_rotate(self):
        c = client(responses=[DirectoryResponse(status=500)])
        response = asyncio.run(c.get_record("1"))
        assert response.status == 500
        assert sent_keys(c) == ["key-a"]

    @pytest.mark.parametrize("token,keys", [("", ("key-a",)), ("tok", ())])
    def test_incomplete_credentials(self, token, keys):
        c = client(keys=keys, token=token)
        with pytest.raises(UpstreamError):
            asyncio.run(c.search("12345678"))
        c._send.assert_not_awaited()


class TestTokenHandling:

    def test_static_credentials_never_refresh(self):
        c = client()
        assert asyncio.run(c.ensure_fresh()) is True

    def test_call_with_refresh_gives_up_when_refresh_fails(self):
        c = client()
        attempt = AsyncMock(return_value=DirectoryResponse(status=401))
        result = asyncio.run(c.call_with_refresh(attempt, lambda r: r.status == 401))
        assert result.status == 401
        assert attempt.await_count == 1
