"""
Version normalization utilities for depmatrix.

Repository tags are free-form labels. This module coerces them into
comparable semantic versions, orders them, and evaluates npm-style
ranges against them. Tags that cannot be coerced are dropped from every
ordered operation; nothing here raises on bad input.

Only the tag string is a valid ref for later fetches, so ordered results
are always tags (or :class:`TaggedVersion` pairs), never bare versions.

Examples:
    >>> str(coerce("v1.2"))
    '1.2.0'
    >>> sort_descending(["v1.0.0", "latest", "v2.0.0"])
    ['v2.0.0', 'v1.0.0']
    >>> max_satisfying_tag(["v1.9.0", "v2.0.0", "v2.1.0", "v3.0.0"], "^2.0.0")
    'v2.1.0'
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from semantic_version import NpmSpec, Version

# Optional free-form prefix (``release-``, ``pkg@``), optional ``v``/``=``,
# then major[.minor[.patch]][-prerelease][+build].
_TAG_PATTERN = re.compile(
    r"^(?:.*?[-_/@])??[vV=]?\s*"
    r"(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z.-]+))?"
    r"(?:\+[0-9A-Za-z.-]+)?$"
)

_RANGE_V_PREFIX = re.compile(r"(?<![\w.])[vV](?=\d)")
_RANGE_OPERATOR_GAP = re.compile(r"(<=|>=|<|>|=|\^|~)\s+")
_WHITESPACE = re.compile(r"\s+")
_ANY_VERSION = ("", "*", "x", "X", "latest")


@dataclass(frozen=True)
class TaggedVersion:
    """A tag together with the version it coerces to."""

    tag: str
    version: Version

    def __str__(self) -> str:
        return self.tag


def coerce(tag: Optional[str]) -> Optional[Version]:
    """Best-effort parse of a tag into a semantic version.

    Accepts ``1.2.3``, ``v1.2.3``, ``1.2`` (patch filled with 0),
    ``v2.0.0-beta.1`` (pre-release kept) and prefixed forms like
    ``release-1.2.3``. Build metadata is dropped.

    Returns:
        The coerced :class:`Version`, or ``None`` when the tag carries no
        usable version.
    """
    if not tag:
        return None

    match = _TAG_PATTERN.match(tag.strip())
    if match is None:
        return None

    release = "{}.{}.{}".format(
        int(match.group("major")),
        int(match.group("minor") or 0),
        int(match.group("patch") or 0),
    )
    prerelease = match.group("prerelease")

    if prerelease:
        try:
            return Version(f"{release}-{prerelease}")
        except ValueError:
            # Malformed pre-release identifiers; keep the release part.
            pass

    try:
        return Version(release)
    except ValueError:
        return None


def tagged_versions(tags: Iterable[str]) -> List[TaggedVersion]:
    """Pair every coercible tag with its version, preserving input order."""
    result: List[TaggedVersion] = []
    for tag in tags:
        version = coerce(tag)
        if version is not None:
            result.append(TaggedVersion(tag, version))
    return result


def sort_descending(tags: Iterable[str]) -> List[str]:
    """Drop uncoercible tags and order the rest newest first.

    The sort is stable: tags coercing to the same version keep their
    input order.
    """
    pairs = tagged_versions(tags)
    pairs.sort(key=lambda pair: pair.version, reverse=True)
    return [pair.tag for pair in pairs]


def latest_per_major(tags: Iterable[str], limit: int) -> List[str]:
    """Return the newest tag of each major, for the ``limit`` newest majors.

    Args:
        tags: Tags in any order.
        limit: Maximum number of majors to return; ``<= 0`` yields ``[]``.

    Returns:
        At most ``limit`` tags, one per major, newest first.
    """
    if limit <= 0:
        return []

    per_major: Dict[int, TaggedVersion] = {}
    for pair in tagged_versions(tags):
        best = per_major.get(pair.version.major)
        if best is None or pair.version > best.version:
            per_major[pair.version.major] = pair

    ordered = sorted(per_major.values(), key=lambda pair: pair.version, reverse=True)
    return [pair.tag for pair in ordered[:limit]]


def parse_range(expression: Optional[str]) -> Optional[NpmSpec]:
    """Parse an npm range loosely.

    Leading ``v`` before versions and spaces after operators are
    tolerated; ``*``, ``x``, ``latest`` and the empty range mean any
    version. Specifiers that are not ranges at all (git URLs, ``file:``,
    ``workspace:``) return ``None``.
    """
    if expression is None:
        return None

    text = expression.strip()
    if text in _ANY_VERSION:
        text = ">=0.0.0"
    else:
        text = _RANGE_V_PREFIX.sub("", text)
        text = _WHITESPACE.sub(" ", text)
        text = _RANGE_OPERATOR_GAP.sub(r"\1", text)

    try:
        return NpmSpec(text)
    except ValueError:
        return None


def _matches(spec: NpmSpec, version: Version) -> bool:
    if spec.match(version):
        return True
    if version.prerelease:
        # Tags that only exist as pre-releases are judged by their release.
        release = Version(f"{version.major}.{version.minor}.{version.patch}")
        return spec.match(release)
    return False


def satisfies(version: Optional[Version], expression: Optional[str]) -> bool:
    """Check a single version against an npm range."""
    if version is None:
        return False
    spec = parse_range(expression)
    return spec is not None and _matches(spec, version)


def max_satisfying(versions: Iterable[Version], expression: Optional[str]) -> Optional[Version]:
    """Return the greatest version satisfying ``expression``.

    Matching is pre-release inclusive: a candidate is never excluded only
    because it is a pre-release.
    """
    spec = parse_range(expression)
    if spec is None:
        return None

    best: Optional[Version] = None
    for version in versions:
        if (best is None or version > best) and _matches(spec, version):
            best = version
    return best


def max_satisfying_tag(tags: Iterable[str], expression: Optional[str]) -> Optional[str]:
    """Tag-preserving variant of :func:`max_satisfying`.

    Among tags coercing to the same greatest version, the first one seen
    wins.
    """
    spec = parse_range(expression)
    if spec is None:
        return None

    best: Optional[TaggedVersion] = None
    for pair in tagged_versions(tags):
        if (best is None or pair.version > best.version) and _matches(spec, pair.version):
            best = pair
    return best.tag if best else None
