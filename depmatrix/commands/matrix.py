"""Matrix command implementation for depmatrix.

Builds the full compatibility matrix: one row per catalog repository and
one column per recent major of every repository.

Typical usage::

    $ depmatrix matrix
    $ depmatrix matrix --majors 2 --show-method
    $ depmatrix matrix --format json > matrix.json
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from typing import Any, Dict, List, Optional

from depmatrix.core.session import Session
from depmatrix.exceptions import DepMatrixError
from depmatrix.models.compat import CompatibilityMatrix
from depmatrix.context import pass_context, DepMatrixContext
from depmatrix.commands import format_option, no_cache_option
from depmatrix.utils import (
    format_cell,
    get_logger,
    get_raw_console,
    print_error,
    print_table,
    print_warning,
)

logger = get_logger("commands.matrix")


@click.command()
@click.option(
    "--majors",
    "-m",
    type=int,
    default=None,
    help="Recent majors per repository shown as columns (default from config).",
)
@click.option(
    "--show-method",
    is_flag=True,
    help="Show the strategy behind every cell.",
)
@format_option
@no_cache_option
@pass_context
def matrix(
    ctx: DepMatrixContext,
    majors: Optional[int],
    show_method: bool,
    output_format: str,
    no_cache: bool,
) -> None:
    """Build the compatibility matrix across the whole catalog."""
    majors_per_repo = ctx.config.majors_per_repo if majors is None else majors
    show_progress = output_format == "table"

    try:
        result = asyncio.run(_matrix_async(ctx, majors_per_repo, no_cache, show_progress))
    except DepMatrixError as e:
        print_error(f"{e}")
        sys.exit(1)

    if output_format == "json":
        print(json.dumps(result.to_dict(), indent=2))
        return

    if not result.columns:
        print_warning("No columns to show (no version tags, or --majors <= 0)")
        return

    _display_table(result, show_method)


async def _matrix_async(
    ctx: DepMatrixContext,
    majors_per_repo: int,
    no_cache: bool,
    show_progress: bool,
) -> CompatibilityMatrix:
    async with Session(ctx.config, use_cache=not no_cache) as session:
        if not show_progress:
            return await session.builder.build(majors_per_repo)

        done = 0

        def on_cell(*_: Any) -> None:
            nonlocal done
            done += 1
            status.update(f"Resolving matrix... {done} cell(s) done")

        with get_raw_console().status("Fetching metadata...") as status:
            result = await session.builder.build(majors_per_repo, on_cell=on_cell)

        logger.info(
            "Served %d transfer(s), %d not-modified, %d shared",
            session.cache.stats.transfers,
            session.cache.stats.not_modified,
            session.cache.stats.shared,
        )
        return result


def _display_table(result: CompatibilityMatrix, show_method: bool) -> None:
    headers = ["Repository"] + [col.key for col in result.columns]
    rows: List[Dict[str, Any]] = []
    for repo, cells in result:
        row: Dict[str, Any] = {"Repository": repo.name}
        for col in result.columns:
            cell = cells[col.key]
            row[col.key] = format_cell(cell.version, cell.method, show_method=show_method)
        rows.append(row)

    print_table(
        rows,
        headers=headers,
        title="Compatibility matrix",
        caption="… pending   — no evidence",
        column_styles={"Repository": {"no_wrap": True, "style": "bold"}},
    )
