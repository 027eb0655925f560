"""Resolve command implementation for depmatrix.

For one selected repository at one tag, finds the compatible version of
every other catalog repository and reports which strategy produced it.

Typical usage::

    # Newest tag of the selected repository
    $ depmatrix resolve geostyler/geostyler

    # A specific tag, machine-readable
    $ depmatrix resolve geostyler/geostyler v14.0.0 --format json
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from typing import List, Optional, Tuple

from depmatrix.core.session import Session
from depmatrix.exceptions import DepMatrixError
from depmatrix.models.compat import CompatibilityResult
from depmatrix.models.repository import Repository
from depmatrix.context import pass_context, DepMatrixContext
from depmatrix.commands import REPOSITORY, format_option, no_cache_option
from depmatrix.utils import (
    format_cell,
    get_logger,
    print_error,
    print_table,
    sort_descending,
)

logger = get_logger("commands.resolve")


@click.command()
@click.argument("repo", type=REPOSITORY)
@click.argument("tag", required=False)
@format_option
@no_cache_option
@pass_context
def resolve(
    ctx: DepMatrixContext,
    repo: Repository,
    tag: Optional[str],
    output_format: str,
    no_cache: bool,
) -> None:
    """Find versions of every other catalog repository compatible with REPO at TAG.

    TAG defaults to the newest version tag of REPO.
    """
    try:
        tag, results = asyncio.run(_resolve_async(ctx, repo, tag, no_cache))
    except DepMatrixError as e:
        print_error(f"{e}")
        sys.exit(1)

    if output_format == "json":
        data = {
            "selected": repo.slug,
            "url": repo.link,
            "tag": tag,
            "results": [result.to_dict() for result in results],
        }
        print(json.dumps(data, indent=2))
        return

    print_table(
        [
            {
                "Repository": result.target.slug,
                "Version": format_cell(result.version, result.method),
                "Method": result.method.value if result.method else "",
                "Evidence": result.details or "",
            }
            for result in results
        ],
        headers=["Repository", "Version", "Method", "Evidence"],
        title=f"Compatible with {repo}@{tag}",
    )


async def _resolve_async(
    ctx: DepMatrixContext,
    repo: Repository,
    tag: Optional[str],
    no_cache: bool,
) -> Tuple[str, List[CompatibilityResult]]:
    async with Session(ctx.config, use_cache=not no_cache) as session:
        if tag is None:
            ordered = sort_descending(await session.store.get_tags(repo))
            if not ordered:
                raise DepMatrixError(f"No version tags found for {repo}")
            tag = ordered[0]
            logger.info("Using newest tag %s of %s", tag, repo)

        results = await session.resolver.resolve_all(repo, tag)
    return tag, results
