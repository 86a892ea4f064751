"""Rich output formatting for the LQA Batch CLI.

Color schemes, table builders, the batch progress bar and panels shared by
the command modules.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Literal

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from lqa_batch.core.report import QualityLevel, Severity
from lqa_batch.items import ItemStatus

if TYPE_CHECKING:
    from lqa_batch.core.report import StructuredReport
    from lqa_batch.execution.progress import BatchRunState
    from lqa_batch.quality.summary import GlobalSummary

# =============================================================================
# Shared console instance
# =============================================================================

# Quiet/JSON modes are handled by guards in each command, not by this Console
console = Console()


# =============================================================================
# Color schemes
# =============================================================================


class StatusColors:
    """Color mappings for item status, quality level and severity."""

    ITEM_STATUS: dict[ItemStatus, str] = {
        ItemStatus.PENDING: "yellow",
        ItemStatus.ANALYZING: "blue",
        ItemStatus.COMPLETED: "green",
        ItemStatus.FAILED: "red",
    }

    QUALITY_LEVEL: dict[QualityLevel, str] = {
        QualityLevel.CRITICAL: "bold red",
        QualityLevel.POOR: "red",
        QualityLevel.AVERAGE: "yellow",
        QualityLevel.GOOD: "green",
        QualityLevel.PERFECT: "bold green",
        QualityLevel.EXCELLENT: "bold green",
    }

    SEVERITY: dict[Severity, str] = {
        Severity.CRITICAL: "bold red",
        Severity.MAJOR: "yellow",
        Severity.MINOR: "dim",
    }

    @classmethod
    def get_status_color(cls, status: ItemStatus) -> str:
        return cls.ITEM_STATUS.get(status, "white")

    @classmethod
    def get_level_color(cls, level: QualityLevel) -> str:
        return cls.QUALITY_LEVEL.get(level, "white")

    @classmethod
    def get_severity_color(cls, severity: Severity) -> str:
        return cls.SEVERITY.get(severity, "white")


def format_level(level: QualityLevel) -> str:
    color = StatusColors.get_level_color(level)
    return f"[{color}]{level.value}[/{color}]"


# =============================================================================
# Table builders
# =============================================================================


def create_errors_table(title: str = "Errors") -> Table:
    """Create a styled table for the batch error log."""
    table = Table(title=title if title else None, show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Message", no_wrap=False)
    return table


def create_items_table() -> Table:
    """Create a styled table for per-item results."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Locale", width=8)
    table.add_column("Status", width=10)
    table.add_column("Quality", width=10)
    table.add_column("Issues", justify="right", width=6)
    return table


def create_issues_table(title: str = "Issues") -> Table:
    """Create a styled table for one report's issues."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", width=6)
    table.add_column("Severity", width=9)
    table.add_column("Category", width=15)
    table.add_column("Target text", no_wrap=False)
    table.add_column("Description", no_wrap=False)
    return table


def create_simple_table(show_header: bool = False) -> Table:
    """Create a simple table without box styling (key-value listings)."""
    return Table(show_header=show_header, box=None)


def build_scores_table(report: StructuredReport) -> Table:
    scores = report.overall.scores
    table = create_simple_table()
    table.add_column("Dimension", style="dim")
    table.add_column("Score", justify="right")
    for label, value in (
        ("Accuracy", scores.accuracy),
        ("Terminology", scores.terminology),
        ("Layout", scores.layout),
        ("Grammar", scores.grammar),
        ("Formatting", scores.formatting),
        ("Localization tone", scores.localization_tone),
    ):
        table.add_row(label, f"{value:g}")
    return table


def build_issues_table(report: StructuredReport) -> Table:
    table = create_issues_table()
    for issue in report.issues:
        color = StatusColors.get_severity_color(issue.severity)
        table.add_row(
            issue.id,
            f"[{color}]{issue.severity.value}[/{color}]",
            issue.issue_category.value,
            issue.target_text,
            issue.description,
        )
    return table


# =============================================================================
# Progress bar configuration
# =============================================================================


def create_batch_progress(console_instance: Console | None = None) -> Progress:
    """Create the progress bar shown while a batch runs.

    The task carries a ``failed`` field updated from the live run state.

    Returns:
        Configured Progress instance (not yet started).
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(bar_width=30),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TextColumn("•"),
        TextColumn("{task.completed}/{task.total} items"),
        TextColumn("•"),
        TextColumn("[red]{task.fields[failed]} failed[/red]"),
        TextColumn("•"),
        TimeElapsedColumn(),
        console=console_instance or console,
        transient=False,
    )


# =============================================================================
# Panel builders
# =============================================================================


def create_run_summary_panel(name: str, state: BatchRunState) -> Panel:
    """Create the panel printed after a batch run."""
    if state.cancelled:
        status_text = "[yellow]CANCELLED[/yellow]"
    else:
        status_text = "[green]COMPLETE[/green]"

    lines = [
        f"[bold]{name}[/bold]",
        f"Status: {status_text}",
        "",
        "[bold]Items[/bold]",
        f"  Completed: {state.completed}/{state.total}",
        f"  Succeeded: [green]{state.success}[/green]",
        f"  Failed: [red]{state.failed}[/red]",
    ]
    if state.remaining:
        lines.append(f"  Not started: {state.remaining}")

    border = "green" if state.failed == 0 and not state.cancelled else "yellow"
    return Panel("\n".join(lines), title="Run Summary", border_style=border)


def create_global_summary_panel(summary: GlobalSummary) -> Panel:
    """Create the aggregate quality panel."""
    lines = [
        f"Analyzed: {summary.total_analyzed}",
        f"Pending: {summary.total_pending}",
        "",
        "[bold]Quality[/bold]",
    ]
    for level in QualityLevel:
        count = summary.quality_distribution.get(level.value, 0)
        if count:
            lines.append(f"  {format_level(level)}: {count}")
    counts = summary.severity_counts
    lines.extend([
        "",
        "[bold]Issues[/bold]",
        f"  Critical: {counts.critical}  Major: {counts.major}  Minor: {counts.minor}",
    ])
    for category, count in sorted(summary.category_counts.items(), key=lambda kv: -kv[1]):
        lines.append(f"  {category}: {count}")
    return Panel("\n".join(lines), title="Quality Summary", border_style="cyan")


# =============================================================================
# JSON output
# =============================================================================


def print_json_output(data: Any, console_instance: Console | None = None) -> None:
    """Print ``data`` as JSON without Rich line wrapping."""
    out = console_instance or console
    out.print_json(json.dumps(data, default=str), indent=2)


# =============================================================================
# Error formatting
# =============================================================================


def output_error(
    message: str,
    *,
    error_code: str | None = None,
    hints: list[str] | None = None,
    severity: Literal["error", "warning"] = "error",
    json_output: bool = False,
    console_instance: Console | None = None,
    **json_extras: Any,
) -> None:
    """Print an error or warning, as Rich markup or as a JSON object."""
    out = console_instance or console
    color = "red" if severity == "error" else "yellow"
    label = "Error" if severity == "error" else "Warning"

    if json_output:
        result: dict[str, Any] = {"success": False, "message": message}
        if error_code:
            result["error_code"] = error_code
        if hints:
            result["hints"] = hints
        result.update(json_extras)
        print_json_output(result, out)
        return

    if error_code:
        prefix = f"[{color}]{label} [{error_code}]:[/{color}] "
    else:
        prefix = f"[{color}]{label}:[/{color}] "
    out.print(f"{prefix}{escape(message)}")

    if hints:
        out.print()
        out.print("[dim]Hints:[/dim]")
        for hint in hints:
            out.print(f"  - {hint}")


__all__ = [
    "StatusColors",
    "build_issues_table",
    "build_scores_table",
    "console",
    "create_batch_progress",
    "create_errors_table",
    "create_global_summary_panel",
    "create_issues_table",
    "create_items_table",
    "create_run_summary_panel",
    "create_simple_table",
    "format_level",
    "output_error",
    "print_json_output",
]
