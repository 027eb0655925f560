"""Repository metadata store for depmatrix.

Provides the three read-only accessors the resolution engine needs, all
built on :class:`~depmatrix.core.cache.RemoteCache`:

* :meth:`MetadataStore.get_tags` — every tag of a repository, unfiltered,
  in the order GitHub returns them;
* :meth:`MetadataStore.get_manifest` — ``package.json`` at a ref;
* :meth:`MetadataStore.get_lock_entries` — ``package-lock.json`` at a ref.

Results are memoized per process: each (kind, repo, ref) key maps to one
shared :class:`asyncio.Task`, so concurrent callers share a single load
and later callers get the finished value. Failures are not memoized.
:meth:`MetadataStore.invalidate` drops everything and starts a new
generation; it is wired to credential changes.

Typical usage::

    async with HTTPClient() as http:
        store = MetadataStore(RemoteCache(http, MemoryCacheStore()))
        tags = await store.get_tags(Repository.parse("geostyler/geostyler"))
        manifest = await store.get_manifest(repo, tags[0])
"""

from __future__ import annotations

import json
import base64
import asyncio
import binascii
from functools import partial
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Tuple,
    TypeVar,
)
from urllib.parse import quote

from depmatrix.core.cache import RemoteCache
from depmatrix.models.manifest import Manifest
from depmatrix.models.lockfile import LockEntries
from depmatrix.models.repository import Repository
from depmatrix.utils.logger import get_logger
from depmatrix.exceptions import NotFoundError, ParseError
from depmatrix.constants import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_TAG_PAGES,
    GITHUB_CONTENTS_URL,
    GITHUB_TAGS_URL,
    LOCKFILE_FILE,
    MANIFEST_FILE,
    TAGS_PER_PAGE,
)

logger = get_logger("data_store")

__all__ = ["MetadataStore"]

T = TypeVar("T")
MemoKey = Tuple[str, ...]


class MetadataStore:
    """Memoizing accessors for tags, manifests and lockfiles.

    Args:
        cache: Conditional-GET cache used for every remote read.
        tag_pages: Maximum number of 100-tag pages fetched per repository.
        concurrent_limit: Maximum number of loads in progress at once.
    """

    def __init__(
        self,
        cache: RemoteCache,
        *,
        tag_pages: int = DEFAULT_TAG_PAGES,
        concurrent_limit: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        self.cache = cache
        self.tag_pages = max(1, tag_pages)
        self.generation: int = 0
        self._semaphore = asyncio.Semaphore(concurrent_limit)
        self._memo: Dict[MemoKey, "asyncio.Task[Any]"] = {}

    # ------------------------------------------------------------------
    # Public async accessors
    # ------------------------------------------------------------------

    async def get_tags(self, repo: Repository) -> List[str]:
        """Return all tag names of ``repo`` as listed by GitHub."""
        return await self._memoized(("tags", repo.slug), partial(self._load_tags, repo))

    async def find_manifest(self, repo: Repository, ref: str) -> Optional[Manifest]:
        """Return the manifest at ``ref``, or ``None`` when it is absent.

        Manifests that are not valid JSON objects count as absent.
        """
        return await self._memoized(
            ("manifest", repo.slug, ref), partial(self._load_manifest, repo, ref)
        )

    async def get_manifest(self, repo: Repository, ref: str) -> Manifest:
        """Return the manifest at ``ref``.

        Raises:
            NotFoundError: ``package.json`` does not exist (or is not
                usable) at ``ref``.
        """
        manifest = await self.find_manifest(repo, ref)
        if manifest is None:
            raise NotFoundError(
                f"No usable {MANIFEST_FILE} in {repo.slug}@{ref}",
                url=self._contents_url(repo, MANIFEST_FILE, ref),
                status_code=404,
            )
        return manifest

    async def get_lock_entries(self, repo: Repository, ref: str) -> Optional[LockEntries]:
        """Return resolved lockfile versions at ``ref``.

        A missing lockfile is common and yields ``None``. Any other remote
        failure propagates.
        """
        return await self._memoized(
            ("lock", repo.slug, ref), partial(self._load_lock_entries, repo, ref)
        )

    async def prefetch(
        self,
        repos: Iterable[Repository] = (),
        refs: Iterable[Tuple[Repository, str]] = (),
    ) -> None:
        """Concurrently warm tags for ``repos`` and manifest + lockfile for ``refs``.

        Individual failures are logged and not memoized; the next
        on-demand access retries and surfaces them.
        """
        jobs: List[Awaitable[Any]] = [self.get_tags(repo) for repo in repos]
        for repo, ref in refs:
            jobs.append(self.find_manifest(repo, ref))
            jobs.append(self.get_lock_entries(repo, ref))

        if not jobs:
            return

        results = await asyncio.gather(*jobs, return_exceptions=True)
        failures = [r for r in results if isinstance(r, BaseException)]
        for failure in failures:
            logger.debug("Prefetch failure: %s", failure)
        if failures:
            logger.warning(
                "%d of %d prefetch request(s) failed; they will be retried on demand",
                len(failures),
                len(jobs),
            )

    def invalidate(self, *_: Any) -> None:
        """Forget every memoized result and start a new generation.

        Accepts and ignores arguments so it can be used directly as a
        token-change listener.
        """
        self._memo = {}
        self.generation += 1
        logger.debug("Metadata store invalidated (generation %d)", self.generation)

    # ------------------------------------------------------------------
    # Memoization
    # ------------------------------------------------------------------

    async def _memoized(self, key: MemoKey, loader: Callable[[], Awaitable[T]]) -> T:
        memo = self._memo
        task = memo.get(key)
        if task is None:
            task = asyncio.ensure_future(loader())
            memo[key] = task
            task.add_done_callback(partial(_drop_failed, memo, key))
        return await asyncio.shield(task)

    # ------------------------------------------------------------------
    # Loaders (private)
    # ------------------------------------------------------------------

    async def _load_tags(self, repo: Repository) -> List[str]:
        tags: List[str] = []
        for page in range(1, self.tag_pages + 1):
            url = GITHUB_TAGS_URL.format(slug=repo.slug, per_page=TAGS_PER_PAGE, page=page)
            async with self._semaphore:
                body = await self.cache.fetch(url)

            try:
                entries = _decode_json(body, url)
            except ParseError as exc:
                logger.warning("Ignoring malformed tag listing for %s: %s", repo.slug, exc)
                break
            if not isinstance(entries, list):
                logger.warning("Ignoring unexpected tag listing for %s", repo.slug)
                break

            tags.extend(
                entry["name"]
                for entry in entries
                if isinstance(entry, dict) and isinstance(entry.get("name"), str)
            )
            if len(entries) < TAGS_PER_PAGE:
                break

        logger.debug("Loaded %d tag(s) for %s", len(tags), repo.slug)
        return tags

    async def _load_manifest(self, repo: Repository, ref: str) -> Optional[Manifest]:
        try:
            data = await self._load_json_file(repo, MANIFEST_FILE, ref)
        except NotFoundError:
            logger.debug("No %s in %s@%s", MANIFEST_FILE, repo.slug, ref)
            return None
        except ParseError as exc:
            logger.debug("Unusable %s in %s@%s: %s", MANIFEST_FILE, repo.slug, ref, exc)
            return None
        return Manifest.from_dict(data)

    async def _load_lock_entries(self, repo: Repository, ref: str) -> Optional[LockEntries]:
        try:
            data = await self._load_json_file(repo, LOCKFILE_FILE, ref)
        except NotFoundError:
            return None
        except ParseError as exc:
            logger.debug("Unusable %s in %s@%s: %s", LOCKFILE_FILE, repo.slug, ref, exc)
            return None
        return LockEntries.from_dict(data)

    async def _load_json_file(self, repo: Repository, path: str, ref: str) -> Dict[str, Any]:
        """Fetch a file through the contents API and decode it as a JSON object."""
        url = self._contents_url(repo, path, ref)
        async with self._semaphore:
            body = await self.cache.fetch(url)

        envelope = _decode_json(body, url)
        if not isinstance(envelope, dict):
            raise ParseError("Unexpected contents response", source=url)

        if envelope.get("encoding") == "base64":
            text = _decode_base64(envelope.get("content"), url)
        elif isinstance(envelope.get("download_url"), str):
            # Files above the inline size limit come without content.
            async with self._semaphore:
                text = await self.cache.fetch(envelope["download_url"])
        else:
            raise ParseError("File content not available", source=url)

        data = _decode_json(text, url)
        if not isinstance(data, dict):
            raise ParseError("Expected a JSON object", source=url)
        return data

    @staticmethod
    def _contents_url(repo: Repository, path: str, ref: str) -> str:
        return GITHUB_CONTENTS_URL.format(slug=repo.slug, path=path, ref=quote(ref, safe=""))


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _drop_failed(memo: Dict[MemoKey, "asyncio.Task[Any]"], key: MemoKey, task: "asyncio.Task[Any]") -> None:
    """Done-callback: keep successes memoized, forget failures."""
    if task.cancelled() or task.exception() is not None:
        if memo.get(key) is task:
            del memo[key]


def _decode_json(text: str, source: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as exc:
        raise ParseError(f"Invalid JSON: {exc}", source=source) from exc


def _decode_base64(content: Any, source: str) -> str:
    if not isinstance(content, str):
        raise ParseError("Missing base64 content", source=source)
    try:
        return base64.b64decode(content.replace("\n", "")).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"Invalid base64 content: {exc}", source=source) from exc
