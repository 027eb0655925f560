"""Unit tests for depmatrix.utils.version_utils.

Covers tag coercion, ordering, per-major bucketing and loose,
pre-release inclusive npm range matching.
"""

from __future__ import annotations

import pytest
from semantic_version import Version

from depmatrix.utils.version_utils import (
    TaggedVersion,
    coerce,
    latest_per_major,
    max_satisfying,
    max_satisfying_tag,
    parse_range,
    satisfies,
    sort_descending,
    tagged_versions,
)


@pytest.mark.unit
class TestCoerce:
    """Tests for coerce()."""

    @pytest.mark.parametrize(
        "tag,expected",
        [
            ("1.2.3", "1.2.3"),
            ("v1.2.3", "1.2.3"),
            ("V1.2.3", "1.2.3"),
            ("=1.2.3", "1.2.3"),
            ("v1.2", "1.2.0"),
            ("v7", "7.0.0"),
            ("v2.0.0-beta.1", "2.0.0-beta.1"),
            ("1.2.3+build.5", "1.2.3"),
            ("release-1.2.3", "1.2.3"),
            ("geostyler-style@4.1.0", "4.1.0"),
            ("  v3.4.5  ", "3.4.5"),
        ],
    )
    def test_coercible_tags(self, tag: str, expected: str) -> None:
        assert str(coerce(tag)) == expected

    @pytest.mark.parametrize("tag", [None, "", "latest", "gh-pages", "v", "next-release"])
    def test_non_version_tags_yield_none(self, tag) -> None:
        assert coerce(tag) is None

    def test_idempotent_on_valid_semver(self) -> None:
        for text in ("0.0.1", "1.2.3", "10.20.30", "2.0.0-rc.1"):
            once = coerce(text)
            assert once is not None
            assert coerce(str(once)) == once
            assert str(once) == text

    def test_malformed_prerelease_keeps_release(self) -> None:
        # Leading zeros are not valid numeric pre-release identifiers.
        assert coerce("v1.2.3-01") == Version("1.2.3")


@pytest.mark.unit
class TestTaggedVersions:
    def test_keeps_tag_and_version_together(self) -> None:
        pairs = tagged_versions(["v1.0.0", "junk", "2.0"])

        assert pairs == [
            TaggedVersion("v1.0.0", Version("1.0.0")),
            TaggedVersion("2.0", Version("2.0.0")),
        ]
        assert str(pairs[0]) == "v1.0.0"


@pytest.mark.unit
class TestSortDescending:
    """Tests for sort_descending()."""

    def test_orders_newest_first_and_drops_invalid(self) -> None:
        tags = ["v1.0.0", "latest", "v2.0.0", "v1.10.0", "v1.2.0"]

        assert sort_descending(tags) == ["v2.0.0", "v1.10.0", "v1.2.0", "v1.0.0"]

    def test_prerelease_sorts_below_release(self) -> None:
        assert sort_descending(["v2.0.0-beta.1", "v2.0.0", "v1.9.9"]) == [
            "v2.0.0",
            "v2.0.0-beta.1",
            "v1.9.9",
        ]

    def test_equal_versions_keep_input_order(self) -> None:
        assert sort_descending(["1.0.0", "v1.0.0"]) == ["1.0.0", "v1.0.0"]
        assert sort_descending(["v1.0.0", "1.0.0"]) == ["v1.0.0", "1.0.0"]

    def test_empty(self) -> None:
        assert sort_descending([]) == []


@pytest.mark.unit
class TestLatestPerMajor:
    """Tests for latest_per_major()."""

    TAGS = ["v1.0.0", "v1.2.0", "v2.0.0", "v2.1.0", "v3.0.0-beta.1", "nightly"]

    def test_newest_of_each_major(self) -> None:
        assert latest_per_major(self.TAGS, 2) == ["v3.0.0-beta.1", "v2.1.0"]

    def test_limit_larger_than_available(self) -> None:
        assert latest_per_major(self.TAGS, 10) == ["v3.0.0-beta.1", "v2.1.0", "v1.2.0"]

    @pytest.mark.parametrize("limit", [0, -1])
    def test_non_positive_limit(self, limit: int) -> None:
        assert latest_per_major(self.TAGS, limit) == []

    def test_entries_are_distinct_majors(self) -> None:
        result = latest_per_major(self.TAGS, 3)
        majors = [coerce(tag).major for tag in result]
        assert len(set(majors)) == len(majors)

    def test_first_seen_wins_on_ties(self) -> None:
        assert latest_per_major(["2.0.0", "v2.0.0"], 1) == ["2.0.0"]


@pytest.mark.unit
class TestParseRange:
    """Tests for parse_range()."""

    @pytest.mark.parametrize("expr", ["", "*", "x", "X", "latest"])
    def test_any_version(self, expr: str) -> None:
        spec = parse_range(expr)
        assert spec is not None
        assert spec.match(Version("0.0.1"))
        assert spec.match(Version("99.0.0"))

    def test_loose_forms(self) -> None:
        assert parse_range("^v2.0.0").match(Version("2.5.0"))
        assert parse_range(">= 1.2.0  < 2.0.0").match(Version("1.5.0"))
        assert not parse_range(">= 1.2.0 < 2.0.0").match(Version("2.0.0"))

    def test_npm_grammar(self) -> None:
        assert parse_range("~1.2.0").match(Version("1.2.9"))
        assert not parse_range("~1.2.0").match(Version("1.3.0"))
        assert parse_range("1.x").match(Version("1.9.0"))
        assert parse_range("^1.0.0 || ^3.0.0").match(Version("3.1.0"))
        assert parse_range("1.0.0 - 2.0.0").match(Version("1.5.0"))

    @pytest.mark.parametrize(
        "expr",
        ["git+https://github.com/geostyler/geostyler.git", "file:../geostyler", "not a range"],
    )
    def test_unparseable_returns_none(self, expr: str) -> None:
        assert parse_range(expr) is None

    def test_none(self) -> None:
        assert parse_range(None) is None


@pytest.mark.unit
class TestSatisfies:
    def test_release(self) -> None:
        assert satisfies(Version("2.1.0"), "^2.0.0")
        assert not satisfies(Version("3.0.0"), "^2.0.0")

    def test_prerelease_judged_by_release(self) -> None:
        assert satisfies(Version("2.1.0-beta.1"), "^2.0.0")

    def test_missing_inputs(self) -> None:
        assert not satisfies(None, "^1.0.0")
        assert not satisfies(Version("1.0.0"), None)
        assert not satisfies(Version("1.0.0"), "file:../x")


@pytest.mark.unit
class TestMaxSatisfying:
    """Tests for max_satisfying() and max_satisfying_tag()."""

    def test_picks_greatest_match(self) -> None:
        tags = ["v1.9.0", "v2.0.0", "v2.1.0", "v3.0.0"]

        assert max_satisfying_tag(tags, "^2.0.0") == "v2.1.0"

    def test_versions_variant(self) -> None:
        versions = [Version("1.0.0"), Version("1.4.0"), Version("2.0.0")]

        assert max_satisfying(versions, "^1.0.0") == Version("1.4.0")
        assert max_satisfying(versions, "^5.0.0") is None

    def test_prerelease_only_candidates_are_included(self) -> None:
        tags = ["v1.0.0", "v2.0.0-beta.1", "v2.0.0-beta.2"]

        assert max_satisfying_tag(tags, "^2.0.0") == "v2.0.0-beta.2"

    def test_never_returns_uncoercible_tags(self) -> None:
        assert max_satisfying_tag(["latest", "main", "gh-pages"], "*") is None

    def test_no_match_or_bad_range(self) -> None:
        assert max_satisfying_tag(["v1.0.0"], "^2.0.0") is None
        assert max_satisfying_tag(["v1.0.0"], "workspace:*") is None
