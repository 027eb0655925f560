"""Compatibility matrix builder for depmatrix.

Applies the pairwise strategy chain of
:class:`~depmatrix.core.resolver.CompatibilityResolver` to every catalog
repository (rows) against the newest tag of each of the most recent
majors of every repository (columns).

Building happens in three phases:

1. tag lists of every repository are loaded concurrently;
2. manifest and lockfile of every column are loaded concurrently;
3. cells are resolved. Fallback scans fetch further manifests lazily and
   memoize them in the shared :class:`MetadataStore`.

A row and column of the same repository yield a ``same`` cell whose
version is the column tag; no resolution is performed for it.
"""

from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Sequence

from depmatrix.core.data_store import MetadataStore
from depmatrix.core.resolver import CompatibilityResolver
from depmatrix.models.repository import Repository
from depmatrix.utils.logger import get_logger, log_duration
from depmatrix.utils.version_utils import latest_per_major, sort_descending
from depmatrix.models.compat import (
    ColumnKey,
    CompatibilityMatrix,
    MatrixCell,
    Method,
)

logger = get_logger("matrix")

__all__ = ["CellCallback", "MatrixBuilder"]

#: Progress hook called as ``on_cell(row, column, cell)`` for every cell.
CellCallback = Callable[[Repository, ColumnKey, MatrixCell], None]


class MatrixBuilder:
    """Build a :class:`CompatibilityMatrix` over a repository catalog.

    Args:
        store: Metadata store shared with ``resolver``.
        resolver: Strategy chain applied to every non-``same`` cell.
        catalog: Ordered repositories; the order of rows and columns.
    """

    def __init__(
        self,
        store: MetadataStore,
        resolver: CompatibilityResolver,
        catalog: Sequence[Repository],
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.catalog: List[Repository] = list(catalog)

    async def columns(self, majors_per_repo: int) -> List[ColumnKey]:
        """Newest tag of the ``majors_per_repo`` latest majors, per repository."""
        if majors_per_repo <= 0:
            return []

        columns: List[ColumnKey] = []
        for repo in self.catalog:
            tags = sort_descending(await self.store.get_tags(repo))
            columns.extend(ColumnKey(repo, tag) for tag in latest_per_major(tags, majors_per_repo))
        return columns

    async def build(
        self,
        majors_per_repo: int,
        on_cell: Optional[CellCallback] = None,
    ) -> CompatibilityMatrix:
        """Resolve every (row, column) cell.

        Args:
            majors_per_repo: Majors shown per repository; ``<= 0`` yields a
                matrix without columns.
            on_cell: Optional progress hook, called once per finished cell.

        Raises:
            RemoteError: A remote read failed for a reason other than a
                missing file.
        """
        if not self.catalog or majors_per_repo <= 0:
            return CompatibilityMatrix.empty(self.catalog, [])

        with log_duration(logger, "Tag prefetch"):
            await self.store.prefetch(repos=self.catalog)

        columns = await self.columns(majors_per_repo)
        matrix = CompatibilityMatrix.empty(self.catalog, columns)
        logger.info(
            "Building matrix: %d row(s) x %d column(s)", len(self.catalog), len(columns)
        )

        with log_duration(logger, "Column prefetch"):
            await self.store.prefetch(refs=[(col.repo, col.tag) for col in columns])

        with log_duration(logger, "Matrix resolution"):
            await asyncio.gather(
                *(self._fill_column(matrix, column, on_cell) for column in columns)
            )

        return matrix

    async def _fill_column(
        self,
        matrix: CompatibilityMatrix,
        column: ColumnKey,
        on_cell: Optional[CellCallback],
    ) -> None:
        manifest = await self.store.find_manifest(column.repo, column.tag)
        lock = await self.store.get_lock_entries(column.repo, column.tag)

        for row in self.catalog:
            if row == column.repo:
                cell = MatrixCell(version=column.tag, method=Method.SAME)
            else:
                result = await self.resolver.resolve(
                    column.repo, column.tag, manifest, lock, row
                )
                cell = MatrixCell.from_result(result)

            matrix.set(row, column, cell)
            if on_cell is not None:
                on_cell(row, column, cell)
