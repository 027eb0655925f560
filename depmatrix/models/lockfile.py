"""
Lockfile data model for depmatrix.

``package-lock.json`` records exact resolved versions in one of two
shapes: the legacy flat ``dependencies`` mapping (lockfile v1) and the
nested ``packages`` mapping keyed by install path
(``"node_modules/<name>"``, lockfile v2/v3). Both are kept as fetched and
only combined at lookup time, where the nested form wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from depmatrix.constants import LOCK_PACKAGE_PREFIX


def _versions(raw: Any) -> Dict[str, str]:
    """Map each key to its ``version`` string, skipping malformed entries."""
    if not isinstance(raw, Mapping):
        return {}
    result: Dict[str, str] = {}
    for key, info in raw.items():
        if isinstance(info, Mapping) and isinstance(info.get("version"), str):
            result[key] = info["version"]
    return result


@dataclass
class LockEntries:
    """Resolved dependency versions recorded at one ref.

    Attributes:
        packages: Path-keyed versions from the nested ``packages`` form.
        dependencies: Name-keyed versions from the legacy flat form.
    """

    packages: Dict[str, str] = field(default_factory=dict)
    dependencies: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LockEntries":
        return cls(
            packages=_versions(data.get("packages")),
            dependencies=_versions(data.get("dependencies")),
        )

    def version_for(self, dependency: str) -> Optional[str]:
        """Return the resolved version of ``dependency``, if recorded."""
        nested = self.packages.get(LOCK_PACKAGE_PREFIX + dependency)
        if nested:
            return nested
        return self.dependencies.get(dependency) or None

    def source_for(self, dependency: str) -> Optional[str]:
        """Return the lockfile key that recorded ``dependency``."""
        key = LOCK_PACKAGE_PREFIX + dependency
        if self.packages.get(key):
            return f"packages[{key}]"
        if self.dependencies.get(dependency):
            return f"dependencies[{dependency}]"
        return None
