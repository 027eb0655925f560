"""
Manifest data model for depmatrix.

A manifest is the ``package.json`` of a repository at one ref: the
declared package name and version plus three independent dependency-range
mappings. Lookups by dependency name consult them in a fixed priority
order (runtime, then peer, then dev).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple


def _ranges(raw: Any) -> Dict[str, str]:
    """Keep only string-to-string entries of a dependency mapping."""
    if not isinstance(raw, Mapping):
        return {}
    return {
        name: spec
        for name, spec in raw.items()
        if isinstance(name, str) and isinstance(spec, str)
    }


@dataclass
class Manifest:
    """Declared name, version and dependency ranges at one ref.

    Attributes:
        name: Declared package name, if any.
        version: Declared package version, if any.
        dependencies: Runtime dependency ranges.
        peer_dependencies: Peer dependency ranges.
        dev_dependencies: Development dependency ranges.
    """

    name: Optional[str] = None
    version: Optional[str] = None
    dependencies: Dict[str, str] = field(default_factory=dict)
    peer_dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Manifest":
        """Build a manifest from decoded ``package.json`` content.

        Missing or wrongly typed fields become ``None`` / empty mappings.
        """
        name = data.get("name")
        version = data.get("version")
        return cls(
            name=name if isinstance(name, str) else None,
            version=version if isinstance(version, str) else None,
            dependencies=_ranges(data.get("dependencies")),
            peer_dependencies=_ranges(data.get("peerDependencies")),
            dev_dependencies=_ranges(data.get("devDependencies")),
        )

    @property
    def sources(self) -> Tuple[Dict[str, str], ...]:
        """Dependency mappings in lookup priority order."""
        return (self.dependencies, self.peer_dependencies, self.dev_dependencies)

    def range_for(self, dependency: str) -> Optional[str]:
        """Return the first declared range for ``dependency``.

        Example::

            >>> m = Manifest(peer_dependencies={"geostyler-style": "^10.0.0"})
            >>> m.range_for("geostyler-style")
            '^10.0.0'
        """
        for source in self.sources:
            spec = source.get(dependency)
            if spec:
                return spec
        return None

    def declares(self, dependency: str) -> bool:
        return self.range_for(dependency) is not None
