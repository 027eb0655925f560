"""
depmatrix — version compatibility matrices for tagged library families.

Given a catalog of related libraries published as tagged GitHub
repositories, depmatrix works out which released version of every other
library goes with a chosen version of one library, using only metadata
from version-control history:

    • tag lists, coerced to semantic versions
    • ``package.json`` dependency ranges (runtime, peer, dev)
    • ``package-lock.json`` resolved versions

Remote reads go through a persistent conditional-GET cache and an
in-process de-duplication layer, so single lookups and full matrices
never repeat network work for overlapping data.
"""

from __future__ import annotations

from depmatrix.__version__ import __version__

__author__ = "depmatrix Contributors"
__license__ = "Apache-2.0"
__description__ = "Version compatibility matrices for tagged library families."

__all__ = [
    "__version__",
]
