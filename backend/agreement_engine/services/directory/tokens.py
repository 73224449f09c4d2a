"""
Directory Access Tokens

TokenProvider owns the directory credentials and knows how to refresh them.
RefreshPolicy bounds how many refreshes one outer call may trigger (one).

Implementations:
- OAuthTokenProvider: refresh_token grant against the OAuth token endpoint
- CommandTokenProvider: runs an external refresh command that prints JSON
- StaticTokenProvider: fixed credentials, refresh always fails
"""
from __future__ import annotations
import asyncio
import json
import logging
import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, List, Optional, TypeVar

import aiohttp
from jose import jwt, JWTError

from ...config import DirectorySettings
from ...exceptions import TokenRefreshError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Credentials:
    access_token: str = ""
    subscription_keys: List[str] = field(default_factory=list)
    expires_at: Optional[datetime] = None

    @property
    def complete(self) -> bool:
        return bool(self.access_token and self.subscription_keys)


def decode_token_expiry(token: str) -> Optional[datetime]:
    """Read the exp claim without verifying the signature."""
    if not token:
        return None
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    exp = claims.get("exp")
    if not exp:
        return None
    return datetime.fromtimestamp(int(exp), tz=timezone.utc)


def _parse_expiry(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    try:
        dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# =============================================================================
# PROVIDERS
# =============================================================================

class TokenProvider(ABC):
    """Source of directory credentials."""

    def __init__(self, credentials: Credentials):
        self._credentials = credentials
        self._lock = asyncio.Lock()

    def current(self) -> Credentials:
        return self._credentials

    def expires_within(self, seconds: int, now: Optional[datetime] = None) -> bool:
        """True when expiry is unknown or closer than `seconds`."""
        creds = self._credentials
        exp = creds.expires_at or decode_token_expiry(creds.access_token)
        if exp is None:
            return True
        now = now or datetime.now(timezone.utc)
        return exp - now < timedelta(seconds=seconds)

    async def refresh(self) -> Credentials:
        """Refresh credentials; callers that queued behind a refresh reuse its result."""
        stale = self._credentials
        async with self._lock:
            if self._credentials is not stale:
                return self._credentials
            self._credentials = await self._do_refresh()
            logger.info(
                "Directory token refreshed"
                + (f", expires {self._credentials.expires_at.isoformat()}" if self._credentials.expires_at else "")
            )
            return self._credentials

    @abstractmethod
    async def _do_refresh(self) -> Credentials:
        ...


class StaticTokenProvider(TokenProvider):
    """Fixed credentials with no way to refresh them."""

    def expires_within(self, seconds: int, now: Optional[datetime] = None) -> bool:
        return False

    async def _do_refresh(self) -> Credentials:
        raise TokenRefreshError("static credentials cannot be refreshed")


class OAuthTokenProvider(TokenProvider):
    """Refresh via the OAuth refresh_token grant (rolling refresh tokens)."""

    def __init__(
        self,
        settings: DirectorySettings,
        session_factory: Optional[Callable[[], aiohttp.ClientSession]] = None,
    ):
        super().__init__(Credentials(
            access_token=settings.access_token,
            subscription_keys=list(settings.subscription_keys),
            expires_at=_parse_expiry(settings.token_expires_at),
        ))
        self.settings = settings
        self.refresh_token = settings.refresh_token
        self._session_factory = session_factory or aiohttp.ClientSession

    async def _do_refresh(self) -> Credentials:
        if not self.settings.client_id or not self.settings.client_secret:
            raise TokenRefreshError("missing OAuth client id or secret")
        if not self.refresh_token:
            raise TokenRefreshError("missing refresh token")

        auth = aiohttp.BasicAuth(self.settings.client_id, self.settings.client_secret)
        form = {"grant_type": "refresh_token", "refresh_token": self.refresh_token}
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout_seconds)
        try:
            async with self._session_factory() as session:
                async with session.post(self.settings.token_url, data=form, auth=auth, timeout=timeout) as resp:
                    body = await resp.text()
                    if resp.status != 200:
                        logger.debug(f"Token endpoint body: {body[:500]}")
                        raise TokenRefreshError(f"token endpoint returned {resp.status}")
                    tokens = json.loads(body or "{}")
        except aiohttp.ClientError as e:
            raise TokenRefreshError(f"token endpoint unreachable: {e}") from e
        except ValueError as e:
            raise TokenRefreshError("token endpoint returned invalid JSON") from e

        access = tokens.get("access_token") or ""
        if not access:
            raise TokenRefreshError("no access_token in refresh response")
        self.refresh_token = tokens.get("refresh_token") or self.refresh_token
        return Credentials(
            access_token=access,
            subscription_keys=self._credentials.subscription_keys,
            expires_at=decode_token_expiry(access),
        )


class CommandTokenProvider(TokenProvider):
    """Refresh by running an external command.

    The command must exit 0 and print a JSON object with at least
    "access_token" on stdout ("expires_at" optional, ISO 8601).
    """

    def __init__(self, settings: DirectorySettings, command: Optional[str] = None):
        super().__init__(Credentials(
            access_token=settings.access_token,
            subscription_keys=list(settings.subscription_keys),
            expires_at=_parse_expiry(settings.token_expires_at),
        ))
        self.command = command or settings.refresh_command
        if not self.command:
            raise ValueError("CommandTokenProvider requires a refresh command")

    async def _do_refresh(self) -> Credentials:
        args = shlex.split(self.command)
        proc = await asyncio.create_subprocess_exec(
            *args, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE,
        )
        out, err = await proc.communicate()
        if proc.returncode != 0:
            logger.warning(f"Token refresh command exited {proc.returncode}: {err.decode(errors='replace')[:200]}")
            raise TokenRefreshError(f"refresh command exited {proc.returncode}")
        try:
            tokens = json.loads(out.decode() or "{}")
        except ValueError as e:
            raise TokenRefreshError("refresh command printed invalid JSON") from e
        access = tokens.get("access_token") or ""
        if not access:
            raise TokenRefreshError("refresh command returned no access_token")
        return Credentials(
            access_token=access,
            subscription_keys=self._credentials.subscription_keys,
            expires_at=_parse_expiry(tokens.get("expires_at")) or decode_token_expiry(access),
        )


def build_token_provider(settings: DirectorySettings) -> TokenProvider:
    """Pick the provider the configuration supports."""
    if settings.refresh_command:
        return CommandTokenProvider(settings)
    if settings.client_id and settings.client_secret and settings.refresh_token:
        return OAuthTokenProvider(settings)
    return StaticTokenProvider(Credentials(
        access_token=settings.access_token,
        subscription_keys=list(settings.subscription_keys),
        expires_at=_parse_expiry(settings.token_expires_at),
    ))


# =============================================================================
# REFRESH POLICY
# =============================================================================

class RefreshPolicy:
    """At most `max_refreshes` refresh-and-retry cycles per outer call."""

    def __init__(self, max_refreshes: int = 1):
        self.max_refreshes = max_refreshes

    async def run(
        self,
        provider: TokenProvider,
        attempt: Callable[[], Awaitable[T]],
        is_unauthorized: Callable[[T], bool],
    ) -> T:
        result = await attempt()
        refreshes = 0
        while is_unauthorized(result) and refreshes < self.max_refreshes:
            refreshes += 1
            try:
                await provider.refresh()
            except TokenRefreshError as e:
                logger.warning(f"Directory token refresh failed: {e}")
                return result
            result = await attempt()
        return result
