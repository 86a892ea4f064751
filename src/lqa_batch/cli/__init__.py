"""LQA Batch CLI.

Typer app assembly: global options (verbosity, logging) are handled by the
app callback, commands live in ``cli/commands``.

Package structure:
    cli/
    ├── __init__.py       # This file - app assembly
    ├── helpers.py        # CLI state and shared loaders
    ├── output.py         # Rich formatting
    └── commands/
        ├── run.py        # run command
        ├── normalize.py  # normalize command
        └── summary.py    # summary command
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from lqa_batch import __version__

# Re-export helpers module for direct access to internal state (conftest.py needs this)
from . import helpers as helpers
from .commands import normalize, run, summary
from .helpers import (
    OutputLevel,
    configure_global_logging,
    set_log_file,
    set_log_format,
    set_log_level,
    set_output_level,
)
from .output import console

# =============================================================================
# Typer app definition
# =============================================================================

app = typer.Typer(
    name="lqa-batch",
    help="Batch localization QA analysis with deterministic quality grading",
    add_completion=False,
)


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"LQA Batch v{__version__}")
        raise typer.Exit()


def verbose_callback(value: bool) -> None:
    if value:
        set_output_level(OutputLevel.VERBOSE)


def quiet_callback(value: bool) -> None:
    if value:
        set_output_level(OutputLevel.QUIET)


def log_level_callback(value: str | None) -> str | None:
    if value:
        set_log_level(value)
    return value


def log_file_callback(value: Path | None) -> Path | None:
    if value:
        set_log_file(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    if value:
        set_log_format(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        callback=verbose_callback,
        is_eager=True,
        help="Show per-item detail",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        callback=quiet_callback,
        is_eager=True,
        help="Show minimal output (errors only)",
    ),
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="LQA_LOG_LEVEL",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Path for log file output",
            envvar="LQA_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json, console, or both",
            envvar="LQA_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """LQA Batch - analyze screenshot pairs in bounded-concurrency batches."""
    configure_global_logging(console)


# =============================================================================
# Command registration
# =============================================================================

app.command()(run)
app.command()(normalize)
app.command()(summary)


__all__ = ["app", "main"]
