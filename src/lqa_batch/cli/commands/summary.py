"""Summary command: aggregate statistics over a directory of reports."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape

from lqa_batch.core.errors import AnalysisError
from lqa_batch.core.logging import get_logger
from lqa_batch.items import AnalysisItem, ItemStatus, ItemStore, ItemUpdate
from lqa_batch.quality.normalizer import normalize
from lqa_batch.quality.summary import defect_items, summarize

from ..helpers import ErrorMessages, is_quiet, load_report_file
from ..output import (
    console,
    create_errors_table,
    create_global_summary_panel,
    output_error,
    print_json_output,
)

_logger = get_logger("cli.summary")


def summary(
    reports_dir: Path = typer.Argument(
        ...,
        help="Directory of *.json report files",
        exists=True,
        file_okay=False,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output the summary as JSON",
    ),
) -> None:
    """Summarize normalized quality levels and issue counts across reports.

    Files that fail to parse are counted as not analyzed and listed.
    """
    paths = sorted(reports_dir.glob("*.json"))
    if not paths:
        output_error(
            f"{ErrorMessages.NO_REPORTS_FOUND} in {reports_dir}",
            json_output=json_output,
        )
        raise typer.Exit(1)

    store = ItemStore()
    for path in paths:
        store.add(AnalysisItem(id=path.stem, name=path.name, target_locale=""))
        try:
            update = ItemUpdate.completed(normalize(load_report_file(path)))
        except (OSError, AnalysisError) as e:
            _logger.warning("cli.report_skipped", path=str(path), error=str(e))
            update = ItemUpdate.failed(str(e))
        store.update_item_status(path.stem, update)
    items = list(store)

    result = summarize(items)
    defects = defect_items(items)
    unreadable = [item for item in items if item.status is ItemStatus.FAILED]

    if json_output:
        data = result.to_dict()
        data["defects"] = [item.id for item in defects]
        data["unreadable"] = [
            {"id": item.id, "name": item.name, "message": item.error_message}
            for item in unreadable
        ]
        print_json_output(data)
        return

    console.print(create_global_summary_panel(result))
    if is_quiet():
        return
    if defects:
        console.print(
            "[red]Critical/Poor:[/red] " + ", ".join(item.name for item in defects)
        )
    if unreadable:
        table = create_errors_table("Unreadable reports")
        for item in unreadable:
            table.add_row(item.id, item.name, escape(item.error_message or ""))
        console.print(table)
