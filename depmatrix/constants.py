"""
Centralized constants for depmatrix.

This module defines immutable configuration values used across depmatrix,
including the default repository catalog, GitHub endpoints, cache layout,
resolution policy limits, and logging formats. All values are intended to
be treated as read-only.
"""

from typing import Final, Mapping, Sequence

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "depmatrix/{version}"

# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

#: Default ordered catalog of repositories (``owner/name``).
DEFAULT_REPOS: Final[Sequence[str]] = (
    "geostyler/geostyler-style",
    "geostyler/geostyler",
    "geostyler/geostyler-sld-parser",
    "geostyler/geostyler-mapbox-parser",
    "geostyler/geostyler-qgis-parser",
    "geostyler/geostyler-openlayers-parser",
    "geostyler/geostyler-lyrx-parser",
    "geostyler/geostyler-geojson-parser",
    "geostyler/geostyler-symcore-parser",
    "geostyler/geostyler-masterportal-parser",
    "geostyler/geostyler-data",
    "geostyler/geostyler-legend",
)

#: Foundational packages used as compatibility anchors, mapped to the
#: repository whose tags carry their release history.
DEFAULT_CORE_PACKAGES: Final[Mapping[str, str]] = {
    "geostyler-style": "geostyler/geostyler-style",
    "geostyler-data": "geostyler/geostyler-data",
}

# ---------------------------------------------------------------------------
# GitHub endpoints
# ---------------------------------------------------------------------------

#: Base URL for the GitHub REST API.
GITHUB_API_URL: Final[str] = "https://api.github.com"

#: Tag listing endpoint.
GITHUB_TAGS_URL: Final[str] = (
    GITHUB_API_URL + "/repos/{slug}/tags?per_page={per_page}&page={page}"
)

#: File contents endpoint at a given ref.
GITHUB_CONTENTS_URL: Final[str] = GITHUB_API_URL + "/repos/{slug}/contents/{path}?ref={ref}"

#: Media type requested from the GitHub API.
GITHUB_ACCEPT: Final[str] = "application/vnd.github+json"

#: Page size used when listing tags.
TAGS_PER_PAGE: Final[int] = 100

#: Manifest file fetched at each ref.
MANIFEST_FILE: Final[str] = "package.json"

#: Lockfile fetched at each ref.
LOCKFILE_FILE: Final[str] = "package-lock.json"

#: Key prefix inside the lockfile ``packages`` mapping.
LOCK_PACKAGE_PREFIX: Final[str] = "node_modules/"

# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

#: Environment variable consulted for a GitHub token.
TOKEN_ENV_VAR: Final[str] = "GITHUB_TOKEN"

#: Default location of the persisted token.
DEFAULT_TOKEN_FILE: Final[str] = "~/.config/depmatrix/token"

# ---------------------------------------------------------------------------
# Remote metadata cache
# ---------------------------------------------------------------------------

#: Prefix of every persisted cache key.
CACHE_KEY_PREFIX: Final[str] = "gh-cache:v2:"

#: Default directory for persisted cache entries.
DEFAULT_CACHE_DIR: Final[str] = "~/.cache/depmatrix"

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Maximum number of retries for failed HTTP requests.
DEFAULT_MAX_RETRIES: Final[int] = 3

#: Default cap on concurrent outbound requests.
DEFAULT_MAX_CONCURRENCY: Final[int] = 10

# ---------------------------------------------------------------------------
# Resolution policy
# ---------------------------------------------------------------------------

#: Number of most-recent tags visited by the fallback scans.
DEFAULT_SCAN_LIMIT: Final[int] = 30

#: Default number of majors per repository shown as matrix columns.
DEFAULT_MAJORS_PER_REPO: Final[int] = 1

#: Default number of tag pages fetched per repository.
DEFAULT_TAG_PAGES: Final[int] = 1

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
