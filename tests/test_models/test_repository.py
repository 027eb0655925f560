from __future__ import annotations

import pytest

from depmatrix.models.repository import Repository


@pytest.mark.unit
class TestRepository:
    def test_parse(self) -> None:
        repo = Repository.parse("geostyler/geostyler-style")

        assert repo.owner == "geostyler"
        assert repo.name == "geostyler-style"
        assert repo.slug == "geostyler/geostyler-style"
        assert repo.package_name == "geostyler-style"
        assert repo.link == "https://github.com/geostyler/geostyler-style"
        assert str(repo) == "geostyler/geostyler-style"

    def test_parse_strips_whitespace(self) -> None:
        assert Repository.parse(" o / r ") == Repository("o", "r")

    @pytest.mark.parametrize("slug", ["", "geostyler", "a/b/c", "/name", "owner/"])
    def test_parse_rejects_malformed(self, slug: str) -> None:
        with pytest.raises(ValueError):
            Repository.parse(slug)

    def test_hashable_and_comparable(self) -> None:
        a = Repository("o", "r")
        assert {a: 1}[Repository.parse("o/r")] == 1
        assert a != Repository("o", "other")
