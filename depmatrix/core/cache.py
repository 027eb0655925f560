"""Remote metadata cache for depmatrix.

Two layers make repeated reads of the same GitHub resource cheap:

* A **persistent conditional-GET cache**. Every successful response that
  carries an ``ETag`` is stored as a :class:`CacheEntry` keyed by its URL.
  The next fetch of that URL sends ``If-None-Match``; a ``304`` answer
  returns the stored body without a new transfer.
* An **in-flight de-duplication map**. Concurrent fetches of one URL share
  a single :class:`asyncio.Task`, so a burst of identical requests costs
  one transfer. Callers await the task through :func:`asyncio.shield`;
  abandoning a caller never cancels the transfer, whose result still lands
  in the persistent cache.

Persisted entries that cannot be read or decoded are cache misses, never
errors. Unsuccessful responses are not cached and propagate as
:class:`~depmatrix.exceptions.RemoteError` so that callers can tell quota
and auth failures apart from absent resources.

Typical usage::

    async with HTTPClient() as http:
        cache = RemoteCache(http, FileCacheStore("~/.cache/depmatrix"))
        body = await cache.fetch("https://api.github.com/repos/o/r/tags")
"""

from __future__ import annotations

import json
import time
import asyncio
import hashlib
from abc import ABC, abstractmethod
from pathlib import Path
from dataclasses import dataclass
from typing import Dict, Optional

from depmatrix.utils.http import HTTPClient
from depmatrix.utils.logger import get_logger
from depmatrix.constants import CACHE_KEY_PREFIX
from depmatrix.exceptions import FileOperationError, RemoteError
from depmatrix.utils.filesystem import (
    PathLike,
    atomic_write_bytes,
    clear_directory,
    expand_path,
    read_bytes_if_exists,
)

logger = get_logger("cache")

__all__ = [
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "FileCacheStore",
    "MemoryCacheStore",
    "RemoteCache",
]


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheEntry:
    """Last known state of one remote resource.

    Attributes:
        etag: Validator returned by the server.
        body: Response body exactly as received.
        timestamp: Retrieval time (seconds since the epoch).
    """

    etag: str
    body: str
    timestamp: float

    def to_bytes(self) -> bytes:
        payload = {"etag": self.etag, "body": self.body, "timestamp": self.timestamp}
        return json.dumps(payload).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: Optional[bytes]) -> Optional["CacheEntry"]:
        """Decode a persisted entry; any problem yields ``None`` (a miss)."""
        if raw is None:
            return None
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            return None

        if not isinstance(data, dict):
            return None
        etag, body, timestamp = data.get("etag"), data.get("body"), data.get("timestamp")
        if not isinstance(etag, str) or not isinstance(body, str):
            return None
        if not isinstance(timestamp, (int, float)):
            timestamp = 0.0
        return cls(etag=etag, body=body, timestamp=float(timestamp))


@dataclass
class CacheStats:
    """Counters describing how fetches were served."""

    transfers: int = 0
    not_modified: int = 0
    shared: int = 0


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class CacheStore(ABC):
    """Durable key-value byte store backing :class:`RemoteCache`."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the stored bytes for ``key`` or ``None``."""

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""


class MemoryCacheStore(CacheStore):
    """Process-local store; used by tests and ``--no-cache`` runs."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = value

    def clear(self) -> int:
        count = len(self._data)
        self._data.clear()
        return count

    def __len__(self) -> int:
        return len(self._data)


class FileCacheStore(CacheStore):
    """One file per key, named by the SHA-256 of the key.

    Args:
        directory: Cache directory; ``~`` and environment variables are
            expanded and the directory is created on first write.
    """

    SUFFIX = ".json"

    def __init__(self, directory: PathLike) -> None:
        self.directory: Path = expand_path(directory)

    def path_for(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}{self.SUFFIX}"

    def get(self, key: str) -> Optional[bytes]:
        return read_bytes_if_exists(self.path_for(key))

    def set(self, key: str, value: bytes) -> None:
        atomic_write_bytes(self.path_for(key), value)

    def clear(self) -> int:
        return clear_directory(self.directory, f"*{self.SUFFIX}")


# ---------------------------------------------------------------------------
# Conditional-GET cache with in-flight de-duplication
# ---------------------------------------------------------------------------


class RemoteCache:
    """Conditional-GET cache in front of :class:`HTTPClient`.

    Args:
        http_client: Client used for the actual transfers.
        store: Persistence for cache entries.
    """

    def __init__(self, http_client: HTTPClient, store: CacheStore) -> None:
        self.http_client = http_client
        self.store = store
        self.stats = CacheStats()
        self.generation: int = 0
        self._inflight: Dict[str, "asyncio.Task[str]"] = {}

    @staticmethod
    def cache_key(url: str) -> str:
        return CACHE_KEY_PREFIX + url

    async def fetch(self, url: str) -> str:
        """Return the body of ``url``, revalidating any cached copy.

        Raises:
            RemoteError: The server answered with an unsuccessful status
                (including :class:`~depmatrix.exceptions.NotFoundError`).
            NetworkError: The transfer failed at transport level.
        """
        key = self.cache_key(url)

        # No await between lookup and insert, so one task per key.
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(url, key))
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        else:
            self.stats.shared += 1
            logger.debug("Joining in-flight fetch: %s", url)

        return await asyncio.shield(task)

    def reset(self) -> int:
        """Drop every persisted entry and start a new cache generation.

        In-flight transfers are left to finish, but later fetches no longer
        join them.
        """
        removed = self.store.clear()
        self.generation += 1
        self._inflight = {}
        logger.info("Metadata cache reset (%d entries removed)", removed)
        return removed

    def _forget(self, key: str, task: "asyncio.Task[str]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the outcome as retrieved even when every waiter went away.
        if not task.cancelled():
            task.exception()

    async def _fetch(self, url: str, key: str) -> str:
        entry = CacheEntry.from_bytes(self.store.get(key))
        headers = {"If-None-Match": entry.etag} if entry else None

        response = await self.http_client.get(url, headers=headers)

        if response.status_code == 304:
            if entry is not None:
                self.stats.not_modified += 1
                logger.debug("Not modified: %s", url)
                return entry.body
            # A 304 without a local copy; fetch the body unconditionally.
            response = await self.http_client.get(url)

        if not 200 <= response.status_code < 300:
            raise RemoteError(
                f"Unexpected status {response.status_code} for {url}",
                url=url,
                status_code=response.status_code,
                response_body=response.text,
            )

        self.stats.transfers += 1
        body = response.text
        etag = response.headers.get("ETag")
        if etag:
            self._save(key, CacheEntry(etag=etag, body=body, timestamp=time.time()))
        return body

    def _save(self, key: str, entry: CacheEntry) -> None:
        try:
            self.store.set(key, entry.to_bytes())
        except FileOperationError as exc:
            logger.warning("Could not persist cache entry: %s", exc)
