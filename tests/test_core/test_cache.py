"""Unit tests for depmatrix.core.cache.

Covers entry serialization, both persistence backends, conditional GETs
(one transfer then one 304 with identical bodies), in-flight sharing and
reset.
"""

from __future__ import annotations

import httpx
import pytest
import asyncio
from pathlib import Path
from typing import Dict, Optional
from unittest.mock import AsyncMock, MagicMock

from depmatrix.utils.http import HTTPClient
from depmatrix.exceptions import FileOperationError, NotFoundError, RemoteError
from depmatrix.core.cache import (
    CacheEntry,
    FileCacheStore,
    MemoryCacheStore,
    RemoteCache,
)

URL = "https://api.github.com/repos/geostyler/geostyler/tags?per_page=100&page=1"
BODY = '[{"name": "v1.0.0"}]'


def _response(status: int, text: str = "", etag: Optional[str] = None) -> MagicMock:
    response = MagicMock(spec=httpx.Response)
    response.status_code = status
    response.text = text
    headers: Dict[str, str] = {"ETag": etag} if etag else {}
    response.headers = headers
    return response


@pytest.fixture
def http() -> MagicMock:
    client = MagicMock(spec=HTTPClient)
    client.get = AsyncMock()
    return client


@pytest.fixture
def store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def cache(http: MagicMock, store: MemoryCacheStore) -> RemoteCache:
    return RemoteCache(http, store)


# ============================================================================
# CacheEntry
# ============================================================================


@pytest.mark.unit
class TestCacheEntry:
    def test_round_trip(self) -> None:
        entry = CacheEntry(etag='W/"abc"', body=BODY, timestamp=1700000000.5)

        assert CacheEntry.from_bytes(entry.to_bytes()) == entry

    @pytest.mark.parametrize(
        "raw",
        [
            None,
            b"",
            b"\xff\xfe",
            b"not json",
            b"[1, 2]",
            b'{"etag": 1, "body": "x"}',
            b'{"etag": "e"}',
        ],
    )
    def test_unusable_bytes_are_a_miss(self, raw: Optional[bytes]) -> None:
        assert CacheEntry.from_bytes(raw) is None

    def test_missing_timestamp_defaults(self) -> None:
        entry = CacheEntry.from_bytes(b'{"etag": "e", "body": "b"}')
        assert entry == CacheEntry("e", "b", 0.0)


# ============================================================================
# Persistence backends
# ============================================================================


@pytest.mark.unit
class TestFileCacheStore:
    def test_set_get_clear(self, tmp_path: Path) -> None:
        store = FileCacheStore(tmp_path / "cache")

        assert store.get("k") is None
        store.set("k", b"v")
        store.set("other", b"w")

        assert store.get("k") == b"v"
        assert store.path_for("k").parent == tmp_path / "cache"
        assert store.path_for("k").suffix == ".json"
        assert store.path_for("k") != store.path_for("other")

        assert store.clear() == 2
        assert store.get("k") is None

    def test_clear_leaves_foreign_files(self, tmp_path: Path) -> None:
        (tmp_path / "notes.txt").write_text("keep")
        store = FileCacheStore(tmp_path)
        store.set("k", b"v")

        store.clear()

        assert (tmp_path / "notes.txt").exists()

    def test_clear_missing_directory(self, tmp_path: Path) -> None:
        assert FileCacheStore(tmp_path / "never-created").clear() == 0


@pytest.mark.unit
class TestMemoryCacheStore:
    def test_basic(self) -> None:
        store = MemoryCacheStore()
        store.set("a", b"1")

        assert store.get("a") == b"1"
        assert len(store) == 1
        assert store.clear() == 1
        assert len(store) == 0


# ============================================================================
# Conditional GET
# ============================================================================


@pytest.mark.unit
class TestRemoteCacheFetch:
    @pytest.mark.asyncio
    async def test_second_fetch_is_not_modified(
        self, cache: RemoteCache, http: MagicMock
    ) -> None:
        http.get.side_effect = [_response(200, BODY, etag='"abc"'), _response(304)]

        first = await cache.fetch(URL)
        second = await cache.fetch(URL)

        assert first == second == BODY
        assert cache.stats.transfers == 1
        assert cache.stats.not_modified == 1
        assert http.get.await_args_list[0].kwargs["headers"] is None
        assert http.get.await_args_list[1].kwargs["headers"] == {"If-None-Match": '"abc"'}

    @pytest.mark.asyncio
    async def test_changed_content_refreshes_entry(
        self, cache: RemoteCache, http: MagicMock, store: MemoryCacheStore
    ) -> None:
        http.get.side_effect = [
            _response(200, BODY, etag='"v1"'),
            _response(200, "[]", etag='"v2"'),
        ]

        await cache.fetch(URL)
        assert await cache.fetch(URL) == "[]"

        entry = CacheEntry.from_bytes(store.get(cache.cache_key(URL)))
        assert entry.etag == '"v2"'
        assert entry.body == "[]"

    @pytest.mark.asyncio
    async def test_without_etag_nothing_is_stored(
        self, cache: RemoteCache, http: MagicMock, store: MemoryCacheStore
    ) -> None:
        http.get.side_effect = [_response(200, BODY), _response(200, BODY)]

        await cache.fetch(URL)
        await cache.fetch(URL)

        assert len(store) == 0
        assert http.get.await_args_list[1].kwargs["headers"] is None

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(
        self, cache: RemoteCache, http: MagicMock, store: MemoryCacheStore
    ) -> None:
        store.set(cache.cache_key(URL), b"{broken")
        http.get.return_value = _response(200, BODY, etag='"abc"')

        assert await cache.fetch(URL) == BODY
        assert http.get.await_args.kwargs["headers"] is None

    @pytest.mark.asyncio
    async def test_304_without_entry_refetches(
        self, cache: RemoteCache, http: MagicMock
    ) -> None:
        http.get.side_effect = [_response(304), _response(200, BODY, etag='"abc"')]

        assert await cache.fetch(URL) == BODY
        assert http.get.await_count == 2

    @pytest.mark.asyncio
    async def test_unsuccessful_status_raises(self, cache: RemoteCache, http: MagicMock) -> None:
        http.get.return_value = _response(302, "moved")

        with pytest.raises(RemoteError) as exc_info:
            await cache.fetch(URL)

        assert exc_info.value.status_code == 302

    @pytest.mark.asyncio
    async def test_errors_propagate_and_are_not_cached(
        self, cache: RemoteCache, http: MagicMock, store: MemoryCacheStore
    ) -> None:
        http.get.side_effect = [
            NotFoundError("missing", url=URL, status_code=404),
            _response(200, BODY, etag='"abc"'),
        ]

        with pytest.raises(NotFoundError):
            await cache.fetch(URL)

        assert await cache.fetch(URL) == BODY
        assert http.get.await_count == 2

    @pytest.mark.asyncio
    async def test_store_write_failure_still_returns_body(self, http: MagicMock) -> None:
        store = MagicMock(spec=MemoryCacheStore)
        store.get.return_value = None
        store.set.side_effect = FileOperationError("read-only", operation="write")
        http.get.return_value = _response(200, BODY, etag='"abc"')

        assert await RemoteCache(http, store).fetch(URL) == BODY

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path: Path, http: MagicMock) -> None:
        http.get.side_effect = [_response(200, BODY, etag='"abc"'), _response(304)]

        await RemoteCache(http, FileCacheStore(tmp_path)).fetch(URL)
        restarted = RemoteCache(http, FileCacheStore(tmp_path))

        assert await restarted.fetch(URL) == BODY
        assert restarted.stats.not_modified == 1


# ============================================================================
# In-flight sharing
# ============================================================================


@pytest.mark.unit
class TestRemoteCacheInflight:
    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_transfer(
        self, cache: RemoteCache, http: MagicMock
    ) -> None:
        gate = asyncio.Event()

        async def slow_get(url: str, headers=None):
            await gate.wait()
            return _response(200, BODY, etag='"abc"')

        http.get.side_effect = slow_get

        waiters = [asyncio.ensure_future(cache.fetch(URL)) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*waiters)

        assert results == [BODY] * 5
        assert http.get.await_count == 1
        assert cache.stats.shared == 4
        assert cache._inflight == {}

    @pytest.mark.asyncio
    async def test_abandoned_caller_does_not_cancel_transfer(
        self, cache: RemoteCache, http: MagicMock, store: MemoryCacheStore
    ) -> None:
        gate = asyncio.Event()

        async def slow_get(url: str, headers=None):
            await gate.wait()
            return _response(200, BODY, etag='"abc"')

        http.get.side_effect = slow_get

        caller = asyncio.ensure_future(cache.fetch(URL))
        await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        gate.set()
        assert await cache.fetch(URL) == BODY
        assert http.get.await_count == 1
        assert store.get(cache.cache_key(URL)) is not None

    @pytest.mark.asyncio
    async def test_different_urls_are_independent(
        self, cache: RemoteCache, http: MagicMock
    ) -> None:
        http.get.side_effect = lambda url, headers=None: _response(200, url, etag='"e"')

        results = await asyncio.gather(cache.fetch(URL), cache.fetch(URL + "&x=1"))

        assert results == [URL, URL + "&x=1"]
        assert http.get.await_count == 2


@pytest.mark.unit
class TestRemoteCacheReset:
    @pytest.mark.asyncio
    async def test_reset_clears_entries_and_bumps_generation(
        self, cache: RemoteCache, http: MagicMock, store: MemoryCacheStore
    ) -> None:
        http.get.return_value = _response(200, BODY, etag='"abc"')
        await cache.fetch(URL)

        assert cache.reset() == 1
        assert cache.generation == 1
        assert len(store) == 0

        await cache.fetch(URL)
        assert http.get.await_args.kwargs["headers"] is None

    @pytest.mark.asyncio
    async def test_fetch_after_reset_does_not_join_older_transfer(
        self, cache: RemoteCache, http: MagicMock
    ) -> None:
        gate = asyncio.Event()

        async def slow_get(url: str, headers=None):
            await gate.wait()
            return _response(200, BODY, etag='"abc"')

        http.get.side_effect = slow_get

        before = asyncio.ensure_future(cache.fetch(URL))
        await asyncio.sleep(0)
        cache.reset()
        after = asyncio.ensure_future(cache.fetch(URL))
        await asyncio.sleep(0)
        gate.set()

        assert await asyncio.gather(before, after) == [BODY, BODY]
        assert http.get.await_count == 2
        assert cache.stats.shared == 0
        assert cache._inflight == {}
