"""Runtime wiring for depmatrix commands.

A :class:`Session` owns one HTTP client and the cache, metadata store,
resolver and matrix builder built on it. All of them share the same
memoization, so a single lookup and a full matrix in one session never
fetch overlapping data twice.

Token changes made through the session's :class:`TokenStore` reset the
persisted cache and invalidate every memoized result.

Typical usage::

    async with Session(config) as session:
        matrix = await session.builder.build(config.majors_per_repo)
"""

from __future__ import annotations

from typing import Any, Optional

from depmatrix.config import DepMatrixConfig
from depmatrix.core.credentials import TokenStore
from depmatrix.core.data_store import MetadataStore
from depmatrix.core.matrix import MatrixBuilder
from depmatrix.core.resolver import CompatibilityResolver
from depmatrix.utils.http import HTTPClient
from depmatrix.utils.logger import get_logger
from depmatrix.core.cache import (
    CacheStore,
    FileCacheStore,
    MemoryCacheStore,
    RemoteCache,
)

logger = get_logger("session")


class Session:
    """Async context manager bundling the resolution services.

    Args:
        config: Validated configuration.
        tokens: Token store; defaults to one backed by ``config.token_file``.
        store: Cache persistence; defaults to a :class:`FileCacheStore` in
            ``config.cache_dir``, or memory when ``use_cache`` is False.
        use_cache: Persist cache entries across runs.
    """

    def __init__(
        self,
        config: DepMatrixConfig,
        *,
        tokens: Optional[TokenStore] = None,
        store: Optional[CacheStore] = None,
        use_cache: bool = True,
    ) -> None:
        self.config = config
        self.tokens = tokens if tokens is not None else TokenStore(config.token_file)
        if store is None:
            store = FileCacheStore(config.cache_dir) if use_cache else MemoryCacheStore()

        catalog = config.catalog
        self.http = HTTPClient(
            max_concurrency=config.max_concurrency,
            token_provider=self.tokens.get,
        )
        self.cache = RemoteCache(self.http, store)
        self.store = MetadataStore(
            self.cache,
            tag_pages=config.tag_pages,
            concurrent_limit=config.max_concurrency,
        )
        self.resolver = CompatibilityResolver(
            self.store,
            catalog,
            core_packages=config.core_repositories,
            scan_limit=config.scan_limit,
        )
        self.builder = MatrixBuilder(self.store, self.resolver, catalog)
        self._unsubscribe = self.tokens.subscribe(self._on_token_change)

    async def __aenter__(self) -> "Session":
        await self.http.__aenter__()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self._unsubscribe()
        await self.http.close()

    def _on_token_change(self, token: Optional[str]) -> None:
        logger.info("Credentials changed; discarding cached metadata")
        self.cache.reset()
        self.store.invalidate()
