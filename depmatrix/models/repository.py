"""
Repository identity for depmatrix.

A repository is an ``owner/name`` pair on the hosting service. Across the
catalog the published package name equals the repository name, which is
how strategies look a repository up inside manifests and lockfiles.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Repository:
    """A hosted repository identified by owner and name.

    Attributes:
        owner: Hosting account (user or organisation).
        name: Repository name, also the package name.
    """

    owner: str
    name: str

    @classmethod
    def parse(cls, slug: str) -> "Repository":
        """Build a repository from an ``owner/name`` slug.

        Raises:
            ValueError: The slug does not have exactly two non-empty parts.

        Example::

            >>> Repository.parse("geostyler/geostyler-style").package_name
            'geostyler-style'
        """
        parts = slug.strip().split("/")
        if len(parts) != 2 or not all(part.strip() for part in parts):
            raise ValueError(f"Invalid repository slug: {slug!r} (expected 'owner/name')")
        return cls(parts[0].strip(), parts[1].strip())

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def package_name(self) -> str:
        return self.name

    @property
    def link(self) -> str:
        return f"https://github.com/{self.slug}"

    def __str__(self) -> str:
        return self.slug
