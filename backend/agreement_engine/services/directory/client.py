"""
Directory Client

Thin async wrapper over the constituent directory REST API. Attaches the
bearer token and subscription key to every request; on 401/403 it rotates
through the configured subscription keys before giving up. Token refresh is
exposed through call_with_refresh(), which applies the injected
RefreshPolicy around a caller-supplied outer call.
"""
from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote

import aiohttp

from ...config import DirectorySettings
from ...exceptions import TokenRefreshError, UpstreamError
from .tokens import RefreshPolicy, TokenProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

AUTH_FAILURE_STATUSES = (401, 403)


@dataclass
class DirectoryResponse:
    status: int
    json: Any = None
    text: str = ""

    @property
    def ok(self) -> bool:
        return self.status == 200

    @property
    def values(self) -> List[Dict[str, Any]]:
        """The `value` array of a collection response (empty when absent)."""
        if isinstance(self.json, dict) and isinstance(self.json.get("value"), list):
            return self.json["value"]
        return []


class DirectoryClient:
    """Search and lookup calls against the external identity directory."""

    def __init__(
        self,
        settings: DirectorySettings,
        token_provider: TokenProvider,
        refresh_policy: Optional[RefreshPolicy] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.settings = settings
        self.tokens = token_provider
        self.refresh_policy = refresh_policy or RefreshPolicy(max_refreshes=1)
        self._session = session

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def _send(self, url: str, params: Optional[Dict[str, str]], headers: Dict[str, str]) -> DirectoryResponse:
        session = await self._get_session()
        try:
            async with session.get(url, params=params, headers=headers) as resp:
                text = await resp.text()
                try:
                    body = json.loads(text) if text else {}
                except ValueError:
                    body = None
                return DirectoryResponse(status=resp.status, json=body, text=text)
        except aiohttp.ClientError as e:
            raise UpstreamError(None, f"directory request failed: {e}") from e

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> DirectoryResponse:
        creds = self.tokens.current()
        if not creds.complete:
            raise UpstreamError(None, "missing directory access token or subscription key")

        url = self.settings.base_url + path
        last: Optional[DirectoryResponse] = None
        # Try keys in order; fall through on 401/403 to cover key rotation
        for key in creds.subscription_keys:
            headers = {
                "Authorization": f"Bearer {creds.access_token}",
                "Bb-Api-Subscription-Key": key,
                "Content-Type": "application/json",
            }
            last = await self._send(url, params, headers)
            if last.status not in AUTH_FAILURE_STATUSES:
                break
        if last is not None and not last.ok:
            logger.info(f"Directory GET {path} -> {last.status}")
            logger.debug(f"Directory body: {last.text[:500]}")
        return last

    # =========================================================================
    # API CALLS
    # =========================================================================

    async def search(self, search_text: str, strict: bool = True, include_non_constituents: bool = False) -> DirectoryResponse:
        params = {"search_text": search_text}
        if strict:
            params["strict_search"] = "true"
        if not include_non_constituents:
            params["include_non_constituents"] = "false"
        return await self._get("/constituent/v1/constituents/search", params)

    async def get_codes(self, record_id: str) -> DirectoryResponse:
        return await self._get(f"/constituent/v1/constituents/{quote(str(record_id), safe='')}/constituentcodes")

    async def get_record(self, record_id: str) -> DirectoryResponse:
        return await self._get(f"/constituent/v1/constituents/{quote(str(record_id), safe='')}")

    # =========================================================================
    # TOKEN HANDLING
    # =========================================================================

    async def ensure_fresh(self) -> bool:
        """Refresh ahead of time when the token is missing or about to expire."""
        if not self.tokens.expires_within(self.settings.refresh_leeway_seconds):
            return True
        try:
            await self.tokens.refresh()
            return True
        except TokenRefreshError as e:
            logger.warning(f"Proactive directory token refresh failed: {e}")
            return False

    async def call_with_refresh(
        self,
        attempt: Callable[[], Awaitable[T]],
        is_unauthorized: Callable[[T], bool],
    ) -> T:
        """Run an outer call, refreshing and retrying once on authorization failure."""
        return await self.refresh_policy.run(self.tokens, attempt, is_unauthorized)
