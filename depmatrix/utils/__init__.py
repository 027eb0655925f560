"""
Utility helpers for depmatrix.

This package provides reusable utilities used across depmatrix, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem helpers for the cache and token files
- Async HTTP client for the GitHub API
- Tag coercion and npm range matching

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from depmatrix.utils.filesystem import (
    atomic_write_bytes,
    clear_directory,
    expand_path,
    read_bytes_if_exists,
    remove_file,
)

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from depmatrix.utils.logger import (
    get_logger,
    log_duration,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from depmatrix.utils.console import (
    format_cell,
    get_raw_console,
    print_error,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from depmatrix.utils.http import HTTPClient

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from depmatrix.utils.version_utils import (
    coerce,
    latest_per_major,
    max_satisfying,
    max_satisfying_tag,
    satisfies,
    sort_descending,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "format_cell",
    "print_error",
    "print_table",
    "print_success",
    "print_warning",
    "get_raw_console",
    "reconfigure_console",
    # Logging
    "get_logger",
    "setup_logging",
    "log_duration",
    # Filesystem
    "atomic_write_bytes",
    "clear_directory",
    "expand_path",
    "read_bytes_if_exists",
    "remove_file",
    # HTTP
    "HTTPClient",
    # Version utilities
    "coerce",
    "sort_descending",
    "latest_per_major",
    "max_satisfying",
    "max_satisfying_tag",
    "satisfies",
]
