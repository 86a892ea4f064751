"""Normalize command: re-grade one report file."""

from __future__ import annotations

from pathlib import Path

import typer

from lqa_batch.core.errors import AnalysisError
from lqa_batch.quality.normalizer import normalize as normalize_report

from ..helpers import ErrorMessages, is_quiet, load_report_file
from ..output import (
    build_issues_table,
    build_scores_table,
    console,
    format_level,
    output_error,
    print_json_output,
)


def normalize(
    report_file: Path = typer.Argument(
        ...,
        help="Path to a JSON report (a ```json fence is accepted)",
        exists=True,
        readable=True,
        dir_okay=False,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Print the normalized report as JSON",
    ),
) -> None:
    """Apply the deterministic quality rules to a report and print the result."""
    try:
        original = load_report_file(report_file)
    except (OSError, AnalysisError) as e:
        error_code = e.error_code.value if isinstance(e, AnalysisError) else None
        output_error(
            f"{ErrorMessages.REPORT_LOAD_ERROR}: {e}",
            error_code=error_code,
            json_output=json_output,
        )
        raise typer.Exit(1) from None

    report = normalize_report(original)

    if json_output:
        print_json_output(report.to_wire())
        return

    upstream = original.overall.quality_level
    level = report.overall.quality_level
    if upstream is level:
        console.print(f"Quality level: {format_level(level)}")
    else:
        console.print(f"Quality level: {format_level(level)} [dim](reported {upstream.value})[/dim]")

    if is_quiet():
        return

    console.print(build_scores_table(report))
    if report.issues:
        console.print(build_issues_table(report))
    else:
        console.print("[green]No issues reported[/green]")
