"""Tags command implementation for depmatrix.

Lists the version tags of one repository, newest first. Tags that do not
coerce to a semantic version are left out.

Typical usage::

    $ depmatrix tags geostyler/geostyler
    $ depmatrix tags geostyler/geostyler --majors 3 --format json
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from typing import List, Optional

from depmatrix.core.session import Session
from depmatrix.exceptions import DepMatrixError
from depmatrix.models.repository import Repository
from depmatrix.context import pass_context, DepMatrixContext
from depmatrix.commands import REPOSITORY, format_option, no_cache_option
from depmatrix.utils import (
    coerce,
    get_logger,
    latest_per_major,
    print_error,
    print_table,
    print_warning,
    sort_descending,
)

logger = get_logger("commands.tags")


@click.command()
@click.argument("repo", type=REPOSITORY)
@click.option(
    "--majors",
    "-m",
    type=int,
    default=None,
    help="Only show the newest tag of the N most recent majors.",
)
@format_option
@no_cache_option
@pass_context
def tags(
    ctx: DepMatrixContext,
    repo: Repository,
    majors: Optional[int],
    output_format: str,
    no_cache: bool,
) -> None:
    """List version tags of REPO, newest first."""
    try:
        ordered = asyncio.run(_tags_async(ctx, repo, majors, no_cache))
    except DepMatrixError as e:
        print_error(f"{e}")
        sys.exit(1)

    if output_format == "json":
        data = [{"tag": tag, "version": str(coerce(tag))} for tag in ordered]
        print(json.dumps(data, indent=2))
        return

    if not ordered:
        print_warning(f"No version tags found for {repo}")
        return

    print_table(
        [{"Tag": tag, "Version": str(coerce(tag))} for tag in ordered],
        headers=["Tag", "Version"],
        title=f"Tags of {repo}",
    )


async def _tags_async(
    ctx: DepMatrixContext,
    repo: Repository,
    majors: Optional[int],
    no_cache: bool,
) -> List[str]:
    async with Session(ctx.config, use_cache=not no_cache) as session:
        ordered = sort_descending(await session.store.get_tags(repo))

    logger.info("%s has %d version tag(s)", repo, len(ordered))
    if majors is not None:
        ordered = latest_per_major(ordered, majors)
    return ordered
