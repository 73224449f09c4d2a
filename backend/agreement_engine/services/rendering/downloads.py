"""
Download Tokens

Short-lived, single-use links to generated documents. Each token maps to a
temp file; the entry is removed on first successful download or once expired.
Consumed and expired tokens are remembered for another TTL so a repeat
request reads as expired rather than unknown.
"""
import logging
import os
import secrets
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from ...exceptions import DownloadExpired, DownloadNotFound

logger = logging.getLogger(__name__)

MIN_TTL_SECONDS = 30
MAX_RETIRED_TOKENS = 10000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DownloadEntry:
    token: str
    path: str
    filename: str
    media_type: str
    expires_at: datetime

    def expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class DownloadTokenStore:
    """In-process token table backed by files in a temp directory."""

    def __init__(
        self,
        ttl_seconds: int = 3600,
        directory: Optional[str] = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.ttl_seconds = max(MIN_TTL_SECONDS, int(ttl_seconds))
        self.directory = directory or tempfile.mkdtemp(prefix="agreement_downloads_")
        os.makedirs(self.directory, exist_ok=True)
        self._now = now
        self._entries: Dict[str, DownloadEntry] = {}
        # token -> forget-after time, insertion ordered
        self._retired: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def issue(
        self,
        content: bytes,
        filename: str,
        media_type: str = "application/pdf",
        ttl_seconds: Optional[int] = None,
    ) -> DownloadEntry:
        token = secrets.token_hex(18)
        path = os.path.join(self.directory, token)
        with open(path, "wb") as f:
            f.write(content)

        ttl = max(MIN_TTL_SECONDS, int(ttl_seconds or self.ttl_seconds))
        entry = DownloadEntry(
            token=token,
            path=path,
            filename=filename,
            media_type=media_type,
            expires_at=self._now() + timedelta(seconds=ttl),
        )
        with self._lock:
            self._entries[token] = entry
        logger.info(f"Download issued for {filename!r}, ttl {ttl}s")
        return entry

    def consume(self, token: str) -> Tuple[bytes, DownloadEntry]:
        """
        Return the document once.

        Raises DownloadExpired for expired or already consumed tokens and
        DownloadNotFound for tokens this store never issued (or has forgotten).
        """
        with self._lock:
            entry = self._entries.pop(token, None)
            if entry is None:
                retired = token in self._retired
            else:
                self._retire(entry)
        if entry is None:
            if retired:
                raise DownloadExpired(token)
            raise DownloadNotFound(token)
        try:
            if entry.expired(self._now()):
                logger.warning(f"Download expired: {entry.filename!r}")
                raise DownloadExpired(token)
            try:
                with open(entry.path, "rb") as f:
                    content = f.read()
            except FileNotFoundError as e:
                raise DownloadNotFound(token) from e
        finally:
            self._remove_file(entry.path)
        logger.info(f"Download completed: {entry.filename!r}")
        return content, entry

    def purge_expired(self) -> int:
        """Drop expired entries (remembering their tokens) and forget old retired tokens."""
        now = self._now()
        with self._lock:
            expired = [t for t, e in self._entries.items() if e.expired(now)]
            entries = [self._entries.pop(t) for t in expired]
            for entry in entries:
                self._retire(entry)
            for token in [t for t, forget_at in self._retired.items() if now >= forget_at]:
                del self._retired[token]
        for entry in entries:
            self._remove_file(entry.path)
        if entries:
            logger.info(f"Purged {len(entries)} expired downloads")
        return len(entries)

    def _retire(self, entry: DownloadEntry) -> None:
        # caller holds the lock
        self._retired[entry.token] = entry.expires_at + timedelta(seconds=self.ttl_seconds)
        while len(self._retired) > MAX_RETIRED_TOKENS:
            del self._retired[next(iter(self._retired))]

    @staticmethod
    def _remove_file(path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
