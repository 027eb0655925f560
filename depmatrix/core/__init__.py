"""
Core functionality exports for depmatrix.

This module provides convenient access to the resolution subsystems.
Importing from here keeps user-facing imports clean and stable:

    from depmatrix.core import CompatibilityResolver, MetadataStore
"""

from __future__ import annotations

from depmatrix.core.credentials import TokenStore
from depmatrix.core.data_store import MetadataStore
from depmatrix.core.matrix import CellCallback, MatrixBuilder
from depmatrix.core.resolver import CompatibilityResolver, selected_version
from depmatrix.core.cache import (
    CacheEntry,
    CacheStats,
    CacheStore,
    FileCacheStore,
    MemoryCacheStore,
    RemoteCache,
)

__all__ = [
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "FileCacheStore",
    "MemoryCacheStore",
    "RemoteCache",
    "MetadataStore",
    "CompatibilityResolver",
    "selected_version",
    "MatrixBuilder",
    "CellCallback",
    "TokenStore",
]
