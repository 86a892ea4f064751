"""Run command for the LQA Batch CLI.

``lqa-batch run MANIFEST`` loads a YAML run manifest, analyzes every
Pending or Failed item through the configured backend, and prints the run
summary. Ctrl+C requests cooperative cancellation: in-flight attempts still
finish and are recorded, nothing new is started. A second Ctrl+C aborts
immediately.
"""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import Any

import typer
from rich.markup import escape
from rich.progress import Progress, TaskID

from lqa_batch.backends import create_backend
from lqa_batch.core.config import BatchConfig, RunConfig
from lqa_batch.core.errors import BatchLimitError
from lqa_batch.core.logging import get_logger
from lqa_batch.execution.progress import BatchRunState
from lqa_batch.items import ItemStore
from lqa_batch.quality.summary import summarize
from lqa_batch.service import BatchAnalysisService

from ..helpers import ErrorMessages, apply_manifest_logging, is_quiet, is_verbose
from ..output import (
    StatusColors,
    console,
    create_batch_progress,
    create_errors_table,
    create_global_summary_panel,
    create_items_table,
    create_run_summary_panel,
    format_level,
    output_error,
    print_json_output,
)

_logger = get_logger("cli.run")


def run(
    manifest: Path = typer.Argument(
        ...,
        help="Path to YAML run manifest",
        exists=True,
        readable=True,
        dir_okay=False,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output result as JSON for machine parsing",
    ),
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        "-c",
        min=1,
        help="Override the number of concurrent workers",
    ),
    retry_budget: int | None = typer.Option(
        None,
        "--retry-budget",
        "-r",
        min=0,
        help="Override the retries allowed per item after the first attempt",
    ),
    deadline: float | None = typer.Option(
        None,
        "--deadline",
        "-d",
        min=0.001,
        help="Override the per-attempt deadline in seconds",
    ),
) -> None:
    """Analyze the pending and failed items of a run manifest."""
    try:
        config = RunConfig.from_yaml(manifest)
    except Exception as e:
        output_error(f"{ErrorMessages.CONFIG_LOAD_ERROR}: {e}", json_output=json_output)
        raise typer.Exit(1) from None

    if "logging" in config.model_fields_set:
        apply_manifest_logging(config.logging, console)

    batch_config = _apply_overrides(config.batch, concurrency, retry_budget, deadline)
    store = ItemStore(spec.to_item() for spec in config.items)

    if not is_quiet() and not json_output:
        console.print(
            f"[bold]{config.name}[/bold] • {len(store)} items • "
            f"backend: {config.backend.type} • concurrency: {batch_config.concurrency}"
        )

    try:
        state = asyncio.run(_run_batch(config, batch_config, store, json_output))
    except BatchLimitError as e:
        output_error(
            str(e),
            error_code=e.error_code.value,
            hints=["Split the manifest into smaller runs"],
            json_output=json_output,
        )
        raise typer.Exit(1) from None

    if json_output:
        print_json_output(_build_json_result(config.name, state, store))
        return

    _print_result(config.name, state, store)


def _apply_overrides(
    batch: BatchConfig,
    concurrency: int | None,
    retry_budget: int | None,
    deadline: float | None,
) -> BatchConfig:
    overrides: dict[str, Any] = {}
    if concurrency is not None:
        overrides["concurrency"] = concurrency
    if retry_budget is not None:
        overrides["retry_budget"] = retry_budget
    if deadline is not None:
        overrides["deadline_seconds"] = deadline
    if not overrides:
        return batch
    return BatchConfig.model_validate({**batch.model_dump(), **overrides})


async def _run_batch(
    config: RunConfig,
    batch_config: BatchConfig,
    store: ItemStore,
    json_output: bool,
) -> BatchRunState:
    backend = create_backend(config.backend)
    service = BatchAnalysisService(store, backend.analyze, batch_config)

    progress: Progress | None = None
    task_id: TaskID | None = None
    if not is_quiet() and not json_output:
        progress = create_batch_progress(console)

    def on_progress(state: BatchRunState) -> None:
        if progress is not None and task_id is not None:
            progress.update(task_id, completed=state.completed, failed=state.failed)

    loop = asyncio.get_running_loop()
    handler_installed = _install_cancel_handler(loop, service, json_output)

    try:
        async with backend:
            if progress is not None:
                progress.start()
                task_id = progress.add_task(
                    f"[cyan]{config.name}[/cyan]",
                    total=len(store.eligible_items()),
                    failed=0,
                )
            return await service.start(on_progress=on_progress)
    finally:
        if progress is not None and progress.live.is_started:
            progress.stop()
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def _install_cancel_handler(
    loop: asyncio.AbstractEventLoop,
    service: BatchAnalysisService,
    json_output: bool,
) -> bool:
    def _on_sigint() -> None:
        # A second Ctrl+C falls through to the default handler
        loop.remove_signal_handler(signal.SIGINT)
        if service.cancel("Cancelled by user"):
            if not json_output:
                console.print(
                    "[yellow]Cancelling: waiting for in-flight items to finish...[/yellow]"
                )

    try:
        loop.add_signal_handler(signal.SIGINT, _on_sigint)
    except (NotImplementedError, RuntimeError):
        # Not supported on this platform or outside the main thread
        _logger.debug("cli.sigint_handler_unavailable")
        return False
    return True


def _build_json_result(name: str, state: BatchRunState, store: ItemStore) -> dict[str, Any]:
    items = []
    for item in store:
        entry: dict[str, Any] = {
            "id": item.id,
            "name": item.name,
            "targetLocale": item.target_locale,
            "status": item.status.value,
        }
        if item.report is not None:
            entry["qualityLevel"] = item.report.overall.quality_level.value
            entry["issueCount"] = len(item.report.issues)
        if item.error_message is not None:
            entry["errorMessage"] = item.error_message
        items.append(entry)

    return {
        "name": name,
        "state": state.to_dict(),
        "items": items,
        "summary": summarize(store).to_dict(),
    }


def _print_result(name: str, state: BatchRunState, store: ItemStore) -> None:
    if is_quiet():
        if state.failed:
            console.print(f"[red]{state.failed} of {state.total} items failed[/red]")
        return

    console.print(create_run_summary_panel(name, state))

    if state.errors:
        table = create_errors_table()
        for entry in state.errors:
            table.add_row(entry.id, entry.name, escape(entry.message))
        console.print(table)

    if is_verbose():
        table = create_items_table()
        for item in store:
            color = StatusColors.get_status_color(item.status)
            report = item.report
            table.add_row(
                item.id,
                item.name,
                item.target_locale,
                f"[{color}]{item.status.value}[/{color}]",
                format_level(report.overall.quality_level) if report else "-",
                str(len(report.issues)) if report else "-",
            )
        console.print(table)

    if state.success:
        console.print(create_global_summary_panel(summarize(store)))
