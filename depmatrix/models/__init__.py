"""
Unified data model exports for depmatrix.

Example:
    >>> from depmatrix.models import Repository, Manifest, CompatibilityResult
"""

from __future__ import annotations

from depmatrix.models.repository import Repository
from depmatrix.models.manifest import Manifest
from depmatrix.models.lockfile import LockEntries
from depmatrix.models.compat import (
    CellStatus,
    ColumnKey,
    CompatibilityMatrix,
    CompatibilityResult,
    MatrixCell,
    Method,
)

__all__ = [
    "Repository",
    "Manifest",
    "LockEntries",
    "Method",
    "CellStatus",
    "CompatibilityResult",
    "ColumnKey",
    "MatrixCell",
    "CompatibilityMatrix",
]
