"""Bounded retry around single analysis attempts.

Per-item state machine, driven as an explicit loop:

    Attempting(remaining=budget)
      -- success ----------------------------------> Done(report)
      -- failure, remaining > 0, not cancelled ----> Attempting(remaining - 1)
      -- failure, remaining == 0 or cancelled -----> Failed(last error)

The cancellation token is read before every attempt. If it is already set
before the first attempt, the item ends as Cancelled without calling the
analysis service. Only the last attempt's error is kept.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from lqa_batch.core.errors import AnalysisCancelledError, AnalysisError, ErrorKind
from lqa_batch.core.logging import get_logger
from lqa_batch.core.report import StructuredReport
from lqa_batch.execution.attempt import AttemptExecutor
from lqa_batch.execution.cancellation import CancellationToken
from lqa_batch.items import AnalysisItem

_logger = get_logger("retry")

# retry number (1-based) -> seconds to pause before it
RetryDelayFn = Callable[[int], float]


@dataclass
class ItemOutcome:
    """Final result of running one item through the retry loop.

    Attributes:
        item_id: The item this outcome belongs to.
        report: Normalized report on success.
        error: Last attempt's error on failure.
        attempts: Number of analysis attempts actually made.
    """

    item_id: str
    report: StructuredReport | None = None
    error: AnalysisError | None = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.report is not None

    @property
    def cancelled(self) -> bool:
        return self.error is not None and self.error.kind is ErrorKind.CANCELLED

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error is not None else None


class RetryCoordinator:
    """Wraps an AttemptExecutor with a retry budget and cancellation checks."""

    def __init__(
        self,
        executor: AttemptExecutor,
        retry_budget: int,
        cancel_token: CancellationToken,
        retry_delay: RetryDelayFn | None = None,
    ) -> None:
        if retry_budget < 0:
            raise ValueError("retry_budget must be non-negative")
        self.executor = executor
        self.retry_budget = retry_budget
        self.cancel_token = cancel_token
        self._retry_delay = retry_delay

    async def run_with_retry(self, item: AnalysisItem) -> ItemOutcome:
        """Attempt ``item`` until success, budget exhaustion or cancellation."""
        remaining = self.retry_budget
        attempts = 0
        last_error: AnalysisError | None = None
        log = _logger.bind(item_id=item.id)

        while True:
            if self.cancel_token.is_cancelled:
                if last_error is None:
                    log.info("retry.cancelled_before_attempt")
                    return ItemOutcome(
                        item_id=item.id,
                        error=AnalysisCancelledError(
                            self.cancel_token.reason or "Batch cancelled",
                            item_id=item.id,
                        ),
                    )
                log.info("retry.cancelled_between_attempts", attempts=attempts)
                return ItemOutcome(item_id=item.id, error=last_error, attempts=attempts)

            attempts += 1
            try:
                report = await self.executor.attempt(item, attempts)
            except AnalysisError as e:
                last_error = e
                log.warning(
                    "retry.attempt_failed",
                    attempt=attempts,
                    remaining=remaining,
                    error_kind=e.kind.value,
                    error_code=e.error_code.value,
                    error=e.message,
                )
                if remaining == 0 or not e.retriable:
                    log.error("retry.exhausted", attempts=attempts, error=e.message)
                    return ItemOutcome(item_id=item.id, error=e, attempts=attempts)
                remaining -= 1
                await self._pause_before_retry(attempts)
                continue

            if attempts > 1:
                log.info("retry.recovered", attempts=attempts)
            return ItemOutcome(item_id=item.id, report=report, attempts=attempts)

    async def _pause_before_retry(self, retry_number: int) -> None:
        if self._retry_delay is None:
            return
        delay = self._retry_delay(retry_number)
        if delay > 0:
            # Returns early when the batch is cancelled during the pause
            await self.cancel_token.wait(delay)
