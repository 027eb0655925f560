"""
Command-line interface for depmatrix.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from depmatrix.config import load_config
from depmatrix.__version__ import __version__
from depmatrix.context import DepMatrixContext
from depmatrix.exceptions import ConfigError, DepMatrixError
from depmatrix.utils.logger import get_logger, setup_logging
from depmatrix.utils.console import print_error, print_warning, reconfigure_console

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="DEPMATRIX_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="DEPMATRIX_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="depmatrix",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """depmatrix — version compatibility across a family of tagged libraries.

    \b
    Available commands:
      depmatrix tags REPO          List version tags of a repository
      depmatrix resolve REPO [TAG] Compatible versions for one selection
      depmatrix matrix             Full compatibility matrix
      depmatrix token              Manage the GitHub token
      depmatrix cache              Manage the metadata cache

    \b
    Examples:
      depmatrix resolve geostyler/geostyler v14.0.0
      depmatrix matrix --majors 2
      depmatrix -v matrix --format json

    Use ``depmatrix COMMAND --help`` for command-specific options.
    """
    _configure_logging(verbose)

    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    depmatrix_ctx = DepMatrixContext()
    depmatrix_ctx.config_path = config or loaded_config.source_path
    depmatrix_ctx.config = loaded_config
    depmatrix_ctx.color = color
    depmatrix_ctx.verbose = verbose
    ctx.obj = depmatrix_ctx

    logger.debug("depmatrix v%s", __version__)
    logger.debug("Config path: %s", depmatrix_ctx.config_path)
    if loaded_config.source_path:
        logger.debug("Loaded configuration: %s", loaded_config.to_log_dict())
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Configure logging level based on verbosity flags."""
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    setup_logging(level=level, verbose=verbose >= 2)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


from depmatrix.commands.tags import tags  # noqa: E402
from depmatrix.commands.cache import cache  # noqa: E402
from depmatrix.commands.token import token  # noqa: E402
from depmatrix.commands.matrix import matrix  # noqa: E402
from depmatrix.commands.resolve import resolve  # noqa: E402

cli.add_command(tags)
cli.add_command(resolve)
cli.add_command(matrix)
cli.add_command(token)
cli.add_command(cache)


def main() -> int:
    """Main entry point for the depmatrix CLI.

    Returns:
        Exit code:
            0   Success
            1   Unhandled or application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.exceptions.Abort:
        print_warning("\nOperation cancelled by user")
        return 130

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except DepMatrixError as exc:
        print_error(str(exc))
        logger.debug(
            "DepMatrixError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
