"""Shared utilities for LQA Batch CLI commands.

Holds the module-level CLI state set by the global option callbacks
(output verbosity and logging options) and small loaders shared by the
command modules.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal

import typer
from rich.console import Console

from lqa_batch.core.config import LogConfig
from lqa_batch.core.logging import configure_logging, get_logger
from lqa_batch.core.report import StructuredReport, parse_report_text

# =============================================================================
# Module-level logger
# =============================================================================

_logger = get_logger("cli")


# =============================================================================
# Error message constants
# =============================================================================


class ErrorMessages:
    """Constants for CLI error messages."""

    CONFIG_LOAD_ERROR = "Error loading manifest"
    REPORT_LOAD_ERROR = "Error loading report"
    NO_REPORTS_FOUND = "No report files found"


# =============================================================================
# Output level management
# =============================================================================


class OutputLevel(str, Enum):
    """Output verbosity level."""

    QUIET = "quiet"  # Minimal output (errors only)
    NORMAL = "normal"
    VERBOSE = "verbose"  # Per-item detail


_output_level: OutputLevel = OutputLevel.NORMAL


def set_output_level(level: OutputLevel) -> None:
    global _output_level
    _output_level = level


def is_verbose() -> bool:
    return _output_level == OutputLevel.VERBOSE


def is_quiet() -> bool:
    return _output_level == OutputLevel.QUIET


# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """CLI logging options collected by the global callbacks."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    file: Path | None = None
    format: Literal["json", "console", "both"] = "console"
    configured: bool = False
    # Set when any --log-* option was given; manifest logging is then ignored
    from_cli: bool = False


_log_config = CliLoggingConfig()


def set_log_level(level: str) -> None:
    """Set the log level (DEBUG, INFO, WARNING, ERROR)."""
    _log_config.level = level.upper()  # type: ignore[assignment]
    _log_config.from_cli = True


def set_log_file(path: Path | None) -> None:
    """Set the log file path.

    Structured logs go to the file; Rich output (progress bar, tables)
    still goes to the console.
    """
    _log_config.file = path
    _log_config.from_cli = True


def set_log_format(fmt: str) -> None:
    """Set the log format (json, console, both)."""
    _log_config.format = fmt  # type: ignore[assignment]
    _log_config.from_cli = True


def configure_global_logging(console: Console) -> None:
    """Configure logging from the global CLI options, once per session.

    Raises:
        typer.Exit: If the logging options are inconsistent.
    """
    if _log_config.configured:
        return

    try:
        configure_logging(
            level=_log_config.level,
            format=_log_config.format,
            file_path=_log_config.file,
        )
        _log_config.configured = True
    except ValueError as e:
        # e.g. format="both" without a log file
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def apply_manifest_logging(log_config: LogConfig, console: Console) -> bool:
    """Reconfigure logging from a manifest's ``logging`` section.

    Any ``--log-*`` option (or its environment variable) takes precedence,
    in which case the manifest section is ignored.

    Returns:
        True if logging was reconfigured.

    Raises:
        typer.Exit: If the manifest's logging options are inconsistent.
    """
    if _log_config.from_cli:
        _logger.debug("cli.manifest_logging_ignored")
        return False

    try:
        configure_logging(**log_config.model_dump())
    except ValueError as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None
    _log_config.configured = True
    return True


def reset_logging_state() -> None:
    """Reset logging state so tests can reconfigure it."""
    _log_config.configured = False


# =============================================================================
# Report loading
# =============================================================================


def load_report_file(path: Path) -> StructuredReport:
    """Read and parse one report file; the file stem is its item id.

    Bytes that are not valid UTF-8 are replaced during decoding, so a
    mis-encoded file ends up as a schema or validation error.

    Raises:
        OSError: The file cannot be read.
        AnalysisError: The content is not a valid report.
    """
    data = path.read_bytes()
    _logger.debug("cli.report_loaded", path=str(path), size=len(data))
    return parse_report_text(data, item_id=path.stem)


__all__ = [
    "CliLoggingConfig",
    "ErrorMessages",
    "OutputLevel",
    "apply_manifest_logging",
    "configure_global_logging",
    "is_quiet",
    "is_verbose",
    "load_report_file",
    "reset_logging_state",
    "set_log_file",
    "set_log_format",
    "set_log_level",
    "set_output_level",
]
