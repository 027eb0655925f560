"""Compatibility resolution engine for depmatrix.

Given a selected repository at one tag (with its manifest and lockfile)
and a target repository, :class:`CompatibilityResolver` picks one target
version through an ordered strategy chain. The first strategy that
produces a version wins:

1. ``core`` — both sides declare ranges for the same core packages and a
   core release satisfies every pair of ranges;
2. ``selected->target`` — the selected manifest declares a range for the
   target and a target tag satisfies it;
3. ``lockfile`` — the selected lockfile pins the target;
4. ``target->selected`` — a recent target tag declares a range that the
   selected version satisfies;
5. ``none`` — no evidence connects the two.

Tags are always visited newest first, so the first hit under that order
is authoritative. Missing manifests only remove evidence; any other
remote failure propagates to the caller.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from semantic_version import Version

from depmatrix.core.data_store import MetadataStore
from depmatrix.models.compat import CompatibilityResult, Method
from depmatrix.models.lockfile import LockEntries
from depmatrix.models.manifest import Manifest
from depmatrix.models.repository import Repository
from depmatrix.utils.logger import get_logger
from depmatrix.constants import DEFAULT_CORE_PACKAGES, DEFAULT_SCAN_LIMIT
from depmatrix.utils.version_utils import (
    coerce,
    max_satisfying_tag,
    satisfies,
    sort_descending,
)

logger = get_logger("resolver")

__all__ = ["CompatibilityResolver", "selected_version"]


def selected_version(tag: str, manifest: Optional[Manifest]) -> Optional[Version]:
    """Version the selected side is judged by.

    The coerced tag, or the manifest's declared ``version`` when the tag
    carries none.
    """
    version = coerce(tag)
    if version is None and manifest is not None:
        version = coerce(manifest.version)
    return version


class CompatibilityResolver:
    """Resolve one compatible target version per (selected, tag, target).

    Args:
        store: Metadata accessors shared with every other resolution.
        catalog: Ordered repositories considered by :meth:`resolve_all`.
        core_packages: Core package name mapped to the repository whose
            tags hold that package's release history.
        scan_limit: Number of most recent target tags visited by the
            fallback scans.
    """

    def __init__(
        self,
        store: MetadataStore,
        catalog: Sequence[Repository],
        core_packages: Optional[Mapping[str, Repository]] = None,
        scan_limit: int = DEFAULT_SCAN_LIMIT,
    ) -> None:
        self.store = store
        self.catalog: List[Repository] = list(catalog)
        if core_packages is None:
            core_packages = {
                name: Repository.parse(slug) for name, slug in DEFAULT_CORE_PACKAGES.items()
            }
        self.core_packages: Dict[str, Repository] = dict(core_packages)
        self.scan_limit = scan_limit
        self._core_memo: Dict[Tuple[int, str, str, str], Optional[str]] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve(
        self,
        selected: Repository,
        tag: str,
        manifest: Optional[Manifest],
        lock: Optional[LockEntries],
        target: Repository,
    ) -> CompatibilityResult:
        """Run the strategy chain for one target.

        ``manifest`` and ``lock`` describe ``selected`` at ``tag``; either
        may be ``None`` when the file does not exist there.

        Raises:
            ValueError: ``target`` is the selected repository.
            RemoteError: A remote read failed for a reason other than a
                missing file.
        """
        if target == selected:
            raise ValueError(f"Cannot resolve {selected} against itself")

        version = selected_version(tag, manifest)

        result = await self._by_core(manifest, target)
        if result is None:
            result = await self._by_selected_range(manifest, target)
        if result is None:
            result = self._by_lockfile(lock, target)
        if result is None:
            result = await self._by_target_range(selected, version, target)
        if result is None:
            result = CompatibilityResult.unresolved(target)

        logger.debug(
            "%s@%s -> %s: %s (%s)",
            selected.slug,
            tag,
            target.slug,
            result.version,
            result.method,
        )
        return result

    async def resolve_all(self, selected: Repository, tag: str) -> List[CompatibilityResult]:
        """Resolve every other catalog repository against ``selected`` at ``tag``."""
        manifest = await self.store.find_manifest(selected, tag)
        lock = await self.store.get_lock_entries(selected, tag)
        if manifest is None:
            logger.info("No manifest for %s@%s; only reverse evidence applies", selected, tag)

        results = []
        for target in self.catalog:
            if target == selected:
                continue
            results.append(await self.resolve(selected, tag, manifest, lock, target))
        return results

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    async def _by_core(
        self,
        manifest: Optional[Manifest],
        target: Repository,
    ) -> Optional[CompatibilityResult]:
        if manifest is None:
            return None
        selected_ranges = self._core_ranges(manifest)
        if not selected_ranges:
            return None

        for target_tag in await self._recent_tags(target):
            target_manifest = await self.store.find_manifest(target, target_tag)
            if target_manifest is None:
                continue

            target_ranges = self._core_ranges(target_manifest)
            shared = [name for name in selected_ranges if name in target_ranges]
            if not shared:
                continue

            anchors: List[str] = []
            for name in shared:
                core_tag = await self._core_intersection(
                    name, selected_ranges[name], target_ranges[name]
                )
                if core_tag is None:
                    break
                anchors.append(f"{name}@{core_tag}")
            else:
                return CompatibilityResult(
                    target=target,
                    version=target_tag,
                    method=Method.CORE,
                    details=", ".join(anchors),
                )

        return None

    async def _by_selected_range(
        self,
        manifest: Optional[Manifest],
        target: Repository,
    ) -> Optional[CompatibilityResult]:
        if manifest is None:
            return None
        expression = manifest.range_for(target.package_name)
        if expression is None:
            return None

        tag = max_satisfying_tag(await self.store.get_tags(target), expression)
        if tag is None:
            return None
        return CompatibilityResult(
            target=target,
            version=tag,
            method=Method.SELECTED_TO_TARGET,
            details=expression,
        )

    def _by_lockfile(
        self,
        lock: Optional[LockEntries],
        target: Repository,
    ) -> Optional[CompatibilityResult]:
        if lock is None:
            return None
        version = lock.version_for(target.package_name)
        if version is None:
            return None
        return CompatibilityResult(
            target=target,
            version=version,
            method=Method.LOCKFILE,
            details=lock.source_for(target.package_name),
        )

    async def _by_target_range(
        self,
        selected: Repository,
        version: Optional[Version],
        target: Repository,
    ) -> Optional[CompatibilityResult]:
        if version is None:
            return None

        for target_tag in await self._recent_tags(target):
            target_manifest = await self.store.find_manifest(target, target_tag)
            if target_manifest is None:
                continue
            expression = target_manifest.range_for(selected.package_name)
            if expression is not None and satisfies(version, expression):
                return CompatibilityResult(
                    target=target,
                    version=target_tag,
                    method=Method.TARGET_TO_SELECTED,
                    details=expression,
                )
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _recent_tags(self, repo: Repository) -> List[str]:
        return sort_descending(await self.store.get_tags(repo))[: self.scan_limit]

    def _core_ranges(self, manifest: Manifest) -> Dict[str, str]:
        ranges: Dict[str, str] = {}
        for name in self.core_packages:
            expression = manifest.range_for(name)
            if expression is not None:
                ranges[name] = expression
        return ranges

    async def _core_intersection(self, name: str, first: str, second: str) -> Optional[str]:
        """Newest release of core package ``name`` inside both ranges."""
        key = (self.store.generation, name, first, second)
        if key not in self._core_memo:
            found: Optional[str] = None
            for tag in sort_descending(await self.store.get_tags(self.core_packages[name])):
                version = coerce(tag)
                if satisfies(version, first) and satisfies(version, second):
                    found = tag
                    break
            self._core_memo[key] = found
        return self._core_memo[key]
