"""Cache command implementation for depmatrix.

Typical usage::

    $ depmatrix cache clear
"""

from __future__ import annotations

import sys
import click

from depmatrix.core.cache import FileCacheStore
from depmatrix.exceptions import DepMatrixError
from depmatrix.context import pass_context, DepMatrixContext
from depmatrix.utils import get_logger, print_error, print_success

logger = get_logger("commands.cache")


@click.group()
def cache() -> None:
    """Manage the persistent metadata cache."""


@cache.command("clear")
@pass_context
def clear_cache(ctx: DepMatrixContext) -> None:
    """Delete every cached GitHub response."""
    store = FileCacheStore(ctx.config.cache_dir)
    try:
        removed = store.clear()
    except DepMatrixError as e:
        print_error(f"{e}")
        sys.exit(1)

    logger.debug("Cleared cache directory %s", store.directory)
    print_success(f"Removed {removed} cache entr{'y' if removed == 1 else 'ies'}")
