"""Token command implementation for depmatrix.

Manages the GitHub token sent with every API request. A token raises the
API quota and may make private repositories visible. Every change also
discards the persisted metadata cache.

Typical usage::

    $ depmatrix token set            # prompts without echo
    $ depmatrix token show
    $ depmatrix token clear
"""

from __future__ import annotations

import sys
import click
from typing import Optional

from depmatrix.core.cache import FileCacheStore
from depmatrix.core.credentials import TokenStore
from depmatrix.exceptions import DepMatrixError
from depmatrix.context import pass_context, DepMatrixContext
from depmatrix.utils import get_logger, print_error, print_success, print_warning

logger = get_logger("commands.token")


def _token_store(ctx: DepMatrixContext) -> TokenStore:
    tokens = TokenStore(ctx.config.token_file)
    cache = FileCacheStore(ctx.config.cache_dir)

    def reset_cache(_: Optional[str]) -> None:
        removed = cache.clear()
        logger.info("Credentials changed; removed %d cache entries", removed)

    tokens.subscribe(reset_cache)
    return tokens


@click.group()
def token() -> None:
    """Manage the GitHub API token."""


@token.command("set")
@click.argument("value", required=False)
@pass_context
def set_token(ctx: DepMatrixContext, value: Optional[str]) -> None:
    """Store a GitHub token (prompted when VALUE is omitted)."""
    if value is None:
        value = click.prompt("GitHub token", hide_input=True)

    tokens = _token_store(ctx)
    try:
        tokens.set(value)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="VALUE") from e
    except DepMatrixError as e:
        print_error(f"{e}")
        sys.exit(1)

    print_success(f"Token saved ({tokens.masked()})")


@token.command("clear")
@pass_context
def clear_token(ctx: DepMatrixContext) -> None:
    """Remove the stored GitHub token."""
    tokens = _token_store(ctx)
    try:
        tokens.clear()
    except DepMatrixError as e:
        print_error(f"{e}")
        sys.exit(1)

    print_success("Token cleared")
    if tokens.get():
        print_warning(f"{tokens.env_var} is still set in the environment")


@token.command("show")
@pass_context
def show_token(ctx: DepMatrixContext) -> None:
    """Show the active token, masked."""
    tokens = TokenStore(ctx.config.token_file)
    masked = tokens.masked()
    if not masked:
        print_warning("No token configured; unauthenticated rate limits apply")
        return
    click.echo(masked)
