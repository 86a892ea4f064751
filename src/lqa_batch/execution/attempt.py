"""Single analysis attempt raced against a deadline.

An attempt starts the injected analysis call as its own task and waits for
it for at most ``deadline_seconds``. If the deadline wins, the attempt fails
with ``AnalysisTimeoutError`` and the call is abandoned, not cancelled: it
keeps running until it resolves on its own, and whatever it eventually
returns is drained and discarded. A late result is never applied to the item.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from lqa_batch.core.errors import AnalysisError, AnalysisTimeoutError, NetworkError
from lqa_batch.core.logging import get_logger
from lqa_batch.core.report import StructuredReport, parse_report
from lqa_batch.items import AnalysisItem
from lqa_batch.quality.normalizer import normalize

_logger = get_logger("attempt")

# Injected capability: resolves to a report, a report mapping or raw JSON text
AnalyzeFn = Callable[[AnalysisItem], Awaitable[Any]]


class AttemptExecutor:
    """Runs one analysis attempt for one item.

    Attributes:
        analyze: The injected analysis capability.
        deadline_seconds: Per-attempt deadline.
    """

    def __init__(self, analyze: AnalyzeFn, deadline_seconds: float) -> None:
        if deadline_seconds <= 0:
            raise ValueError("deadline_seconds must be positive")
        self.analyze = analyze
        self.deadline_seconds = deadline_seconds
        # Strong references so abandoned calls are not garbage collected mid-flight
        self._abandoned: set[asyncio.Task[Any]] = set()

    @property
    def abandoned_count(self) -> int:
        """Abandoned calls that have not resolved yet."""
        return len(self._abandoned)

    async def attempt(self, item: AnalysisItem, attempt_number: int = 1) -> StructuredReport:
        """Analyze ``item`` once and return its normalized report.

        Raises:
            AnalysisTimeoutError: The deadline elapsed first.
            NetworkError: The analysis call failed.
            SchemaError: The result is not report-shaped.
            ReportValidationError: The result lacks a required section.
        """
        try:
            call = self.analyze(item)
            task: asyncio.Future[Any] = asyncio.ensure_future(call)
        except Exception as e:
            raise self._wrap_failure(item, e) from e

        try:
            done, _ = await asyncio.wait({task}, timeout=self.deadline_seconds)
        except asyncio.CancelledError:
            # The worker itself is shutting down; do not leak the call
            task.cancel()
            raise

        if not done:
            self._abandon(task, item, attempt_number)
            raise AnalysisTimeoutError(
                f"Request timed out ({self.deadline_seconds:g}s)",
                item_id=item.id,
            )

        if task.cancelled():
            raise NetworkError("Analysis call was cancelled", item_id=item.id)
        exc = task.exception()
        if exc is not None:
            raise self._wrap_failure(item, exc) from exc

        report = parse_report(task.result(), item_id=item.id)
        return normalize(report)

    def _wrap_failure(self, item: AnalysisItem, exc: BaseException) -> AnalysisError:
        if isinstance(exc, AnalysisError):
            if exc.item_id is None:
                exc.item_id = item.id
            return exc
        message = str(exc) or type(exc).__name__
        return NetworkError(message, item_id=item.id, original_error=exc)

    def _abandon(self, task: asyncio.Future[Any], item: AnalysisItem, attempt_number: int) -> None:
        _logger.warning(
            "attempt.deadline_elapsed",
            item_id=item.id,
            attempt=attempt_number,
            deadline_seconds=self.deadline_seconds,
        )
        if not isinstance(task, asyncio.Task):
            return
        self._abandoned.add(task)

        def _drain(finished: asyncio.Task[Any]) -> None:
            self._abandoned.discard(finished)
            if finished.cancelled():
                return
            late_error = finished.exception()
            _logger.debug(
                "attempt.late_result_discarded",
                item_id=item.id,
                attempt=attempt_number,
                error=str(late_error) if late_error is not None else None,
            )

        task.add_done_callback(_drain)
