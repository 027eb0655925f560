"""
Compatibility result models for depmatrix.

A :class:`CompatibilityResult` answers "which version of *target* goes
with *selected* at this tag" and records the strategy that produced the
answer. Results are always recomputed; only their inputs are cached.

Every result and matrix cell exposes a tri-state :class:`CellStatus` so
that a cell still being computed is never confused with one that
resolved to ``none``.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from depmatrix.models.repository import Repository


class Method(str, Enum):
    """Strategy that produced a compatible version."""

    CORE = "core"
    SELECTED_TO_TARGET = "selected->target"
    LOCKFILE = "lockfile"
    TARGET_TO_SELECTED = "target->selected"
    NONE = "none"
    SAME = "same"

    def __str__(self) -> str:
        return self.value


class CellStatus(str, Enum):
    """Lifecycle of a result as seen by a caller."""

    PENDING = "pending"
    RESOLVED = "resolved"
    NONE = "none"


def _status(method: Optional[Method]) -> CellStatus:
    if method is None:
        return CellStatus.PENDING
    if method is Method.NONE:
        return CellStatus.NONE
    return CellStatus.RESOLVED


@dataclass
class CompatibilityResult:
    """Outcome of resolving one (selected repo, tag, target repo) triple.

    Attributes:
        target: Repository the version belongs to.
        version: Compatible tag or exact version, ``None`` for ``none``.
        method: Strategy that fired, ``None`` while still pending.
        details: Free-text evidence such as the matched range.
    """

    target: Repository
    version: Optional[str] = None
    method: Optional[Method] = None
    details: Optional[str] = None

    def __post_init__(self) -> None:
        if self.method is Method.NONE and self.version is not None:
            raise ValueError("A 'none' result cannot carry a version")
        if self.method not in (None, Method.NONE) and self.version is None:
            raise ValueError(f"A '{self.method}' result requires a version")

    @classmethod
    def unresolved(cls, target: Repository) -> "CompatibilityResult":
        return cls(target=target, version=None, method=Method.NONE)

    @property
    def status(self) -> CellStatus:
        return _status(self.method)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target.slug,
            "version": self.version,
            "method": self.method.value if self.method else None,
            "details": self.details,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class ColumnKey:
    """A matrix column: one repository at one tag."""

    repo: Repository
    tag: str

    @property
    def key(self) -> str:
        return f"{self.repo.slug}@{self.tag}"

    def __str__(self) -> str:
        return self.key


@dataclass
class MatrixCell:
    """One matrix cell: the row repository's version for a column."""

    version: Optional[str] = None
    method: Optional[Method] = None

    @classmethod
    def from_result(cls, result: CompatibilityResult) -> "MatrixCell":
        return cls(version=result.version, method=result.method)

    @property
    def status(self) -> CellStatus:
        return _status(self.method)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "method": self.method.value if self.method else None,
        }


@dataclass
class CompatibilityMatrix:
    """Grid of cells indexed by row repository and column key.

    Rows and columns keep catalog order. A freshly created matrix holds
    a pending cell for every (row, column) pair.
    """

    rows: List[Repository] = field(default_factory=list)
    columns: List[ColumnKey] = field(default_factory=list)
    cells: Dict[Repository, Dict[str, MatrixCell]] = field(default_factory=dict)

    @classmethod
    def empty(cls, rows: List[Repository], columns: List[ColumnKey]) -> "CompatibilityMatrix":
        cells = {row: {col.key: MatrixCell() for col in columns} for row in rows}
        return cls(rows=list(rows), columns=list(columns), cells=cells)

    def set(self, row: Repository, column: ColumnKey, cell: MatrixCell) -> None:
        self.cells.setdefault(row, {})[column.key] = cell

    def cell(self, row: Repository, repo: Repository, tag: str) -> MatrixCell:
        """Return the cell of ``row`` in column ``repo@tag``.

        Raises:
            KeyError: No such row or column.
        """
        return self.cells[row][ColumnKey(repo, tag).key]

    def row(self, row: Repository) -> Dict[str, MatrixCell]:
        return self.cells.get(row, {})

    def __iter__(self) -> Iterator[Tuple[Repository, Dict[str, MatrixCell]]]:
        for row in self.rows:
            yield row, self.row(row)

    @property
    def is_complete(self) -> bool:
        return all(
            cell.status is not CellStatus.PENDING
            for _, row in self
            for cell in row.values()
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": [col.key for col in self.columns],
            "rows": [
                {
                    "repo": row.slug,
                    "versions": {key: cell.to_dict() for key, cell in cells.items()},
                }
                for row, cells in self
            ],
        }
