"""
Shared Click parameter types and options for depmatrix commands.
"""

from __future__ import annotations

from typing import Any, Optional

import click

from depmatrix.models.repository import Repository


class RepositoryType(click.ParamType):
    """Click parameter accepting an ``owner/name`` slug."""

    name = "owner/name"

    def convert(
        self,
        value: Any,
        param: Optional[click.Parameter],
        ctx: Optional[click.Context],
    ) -> Repository:
        if isinstance(value, Repository):
            return value
        try:
            return Repository.parse(value)
        except ValueError as exc:
            self.fail(str(exc), param, ctx)


REPOSITORY = RepositoryType()

format_option = click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)

no_cache_option = click.option(
    "--no-cache",
    is_flag=True,
    help="Keep fetched metadata in memory only for this run.",
)
