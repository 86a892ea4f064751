"""Bounded-concurrency batch scheduler.

Items go into one shared FIFO queue. Exactly ``concurrency`` workers pull
from it until it is empty or the batch is cancelled; each claimed item is
marked Analyzing, run through the retry loop, then marked Completed or
Failed and counted in the shared progress aggregator. ``run()`` returns the
frozen run state once every worker has exited.

Items start in queue order; they may finish in any order.

The batch-size cap is the caller's concern (see ``BatchAnalysisService``);
the scheduler runs whatever it is given.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import deque
from collections.abc import Awaitable, Callable, Iterable

from lqa_batch.core.config import BatchConfig
from lqa_batch.core.errors import BatchStateError
from lqa_batch.core.logging import (
    ExecutionContext,
    get_current_context,
    get_logger,
    with_context,
)
from lqa_batch.execution.attempt import AnalyzeFn, AttemptExecutor
from lqa_batch.execution.cancellation import DEFAULT_CANCEL_REASON, CancellationToken
from lqa_batch.execution.progress import BatchRunState, ProgressAggregator, ProgressListener
from lqa_batch.execution.retry import ItemOutcome, RetryCoordinator
from lqa_batch.items import AnalysisItem, ItemUpdate

_logger = get_logger("scheduler")

# Caller-supplied sink for item transitions; may be sync or async
UpdateItemFn = Callable[[str, ItemUpdate], Awaitable[None] | None]


class WorkQueue:
    """FIFO of pending items with an atomic claim operation."""

    def __init__(self, items: Iterable[AnalysisItem]) -> None:
        self._items: deque[AnalysisItem] = deque(items)
        self._lock = asyncio.Lock()

    async def pop(self) -> AnalysisItem | None:
        """Remove and return the next item, or None when drained."""
        async with self._lock:
            if not self._items:
                return None
            return self._items.popleft()

    def __len__(self) -> int:
        return len(self._items)


class BatchScheduler:
    """Runs one batch of items through a fixed-width worker pool.

    Example:
        ```python
        scheduler = BatchScheduler(backend.analyze, store.update_item_status)
        state = await scheduler.run(store.eligible_items())
        ```

    Attributes:
        analyze: Injected analysis capability.
        update_item_status: Injected sink for item transitions.
        config: Concurrency width, retry budget and deadline.
        cancel_token: Token shared by every worker of this batch.
        batch_id: Label used in logs.
    """

    def __init__(
        self,
        analyze: AnalyzeFn,
        update_item_status: UpdateItemFn,
        config: BatchConfig | None = None,
        *,
        cancel_token: CancellationToken | None = None,
        batch_id: str = "batch",
    ) -> None:
        self.analyze = analyze
        self.update_item_status = update_item_status
        self.config = config or BatchConfig()
        self.cancel_token = cancel_token or CancellationToken()
        self.batch_id = batch_id
        self._progress: ProgressAggregator | None = None
        self._started = False
        self._active = 0
        self._peak_active = 0

    @property
    def progress(self) -> ProgressAggregator | None:
        """The live aggregator, once ``run()`` has started."""
        return self._progress

    @property
    def active_count(self) -> int:
        """Items currently in the Analyzing state."""
        return self._active

    @property
    def peak_active(self) -> int:
        """Highest number of simultaneously Analyzing items seen so far."""
        return self._peak_active

    def snapshot(self) -> BatchRunState:
        if self._progress is None:
            return BatchRunState()
        return self._progress.snapshot()

    def cancel(self, reason: str = DEFAULT_CANCEL_REASON) -> bool:
        """Request cooperative cancellation.

        In-flight attempts run to completion and are still recorded; no new
        item is claimed and no new retry starts.

        Returns:
            True if this call set the token.
        """
        newly_set = self.cancel_token.cancel(reason)
        if newly_set:
            _logger.info("scheduler.cancel_requested", batch_id=self.batch_id, reason=reason)
        if self._progress is not None:
            self._progress.mark_cancelled()
        return newly_set

    async def run(
        self,
        items: Iterable[AnalysisItem],
        *,
        on_progress: ProgressListener | None = None,
    ) -> BatchRunState:
        """Process ``items`` and return the frozen run state.

        Raises:
            BatchStateError: If this scheduler already ran a batch.
        """
        if self._started:
            raise BatchStateError("A BatchScheduler runs a single batch")
        self._started = True

        pending = list(items)
        progress = ProgressAggregator(total=len(pending))
        if on_progress is not None:
            progress.subscribe(on_progress)
        self._progress = progress
        if self.cancel_token.is_cancelled:
            progress.mark_cancelled()

        queue = WorkQueue(pending)
        executor = AttemptExecutor(self.analyze, self.config.deadline_seconds)
        coordinator = RetryCoordinator(
            executor,
            self.config.retry_budget,
            self.cancel_token,
            retry_delay=self.config.retry_delay_for,
        )

        ctx = ExecutionContext(batch_id=self.batch_id, component="scheduler")
        with with_context(ctx):
            _logger.info(
                "scheduler.batch_start",
                total=len(pending),
                concurrency=self.config.concurrency,
                retry_budget=self.config.retry_budget,
                deadline_seconds=self.config.deadline_seconds,
            )
            try:
                async with asyncio.TaskGroup() as tg:
                    for worker_num in range(self.config.concurrency):
                        tg.create_task(
                            self._worker(worker_num, queue, coordinator, progress),
                            name=f"lqa-worker-{worker_num}",
                        )
            finally:
                state = progress.mark_complete()

            _logger.info(
                "scheduler.batch_complete",
                total=state.total,
                completed=state.completed,
                success=state.success,
                failed=state.failed,
                cancelled=state.cancelled,
                abandoned_calls=executor.abandoned_count,
            )
        return state

    async def _worker(
        self,
        worker_num: int,
        queue: WorkQueue,
        coordinator: RetryCoordinator,
        progress: ProgressAggregator,
    ) -> None:
        processed = 0
        while not self.cancel_token.is_cancelled:
            item = await queue.pop()
            if item is None:
                break
            await self._process_item(item, coordinator, progress)
            processed += 1

        _logger.debug(
            "scheduler.worker_exit",
            worker=worker_num,
            processed=processed,
            cancelled=self.cancel_token.is_cancelled,
            queue_remaining=len(queue),
        )

    async def _process_item(
        self,
        item: AnalysisItem,
        coordinator: RetryCoordinator,
        progress: ProgressAggregator,
    ) -> None:
        self._active += 1
        self._peak_active = max(self._peak_active, self._active)
        try:
            await self._emit(item.id, ItemUpdate.analyzing())
            ctx = get_current_context()
            if ctx is not None:
                with with_context(ctx.with_item(item.id)):
                    outcome = await coordinator.run_with_retry(item)
            else:
                outcome = await coordinator.run_with_retry(item)
            await self._apply_outcome(item, outcome, progress)
        finally:
            self._active -= 1

    async def _apply_outcome(
        self,
        item: AnalysisItem,
        outcome: ItemOutcome,
        progress: ProgressAggregator,
    ) -> None:
        if outcome.report is not None:
            await self._emit(item.id, ItemUpdate.completed(outcome.report))
            progress.record_success(item.id)
            _logger.info(
                "scheduler.item_completed",
                item_id=item.id,
                attempts=outcome.attempts,
                quality_level=outcome.report.overall.quality_level.value,
            )
            return

        message = outcome.error_message or "Unknown error"
        await self._emit(item.id, ItemUpdate.failed(message))
        progress.record_failure(item.id, item.name, message)
        _logger.warning(
            "scheduler.item_failed",
            item_id=item.id,
            attempts=outcome.attempts,
            cancelled=outcome.cancelled,
            error=message,
        )

    async def _emit(self, item_id: str, update: ItemUpdate) -> None:
        result = self.update_item_status(item_id, update)
        if inspect.isawaitable(result):
            await result


async def run_batch(
    items: Iterable[AnalysisItem],
    analyze: AnalyzeFn,
    update_item_status: UpdateItemFn,
    *,
    concurrency: int = 5,
    retry_budget: int = 2,
    deadline_seconds: float = 30.0,
    cancel_token: CancellationToken | None = None,
    on_progress: ProgressListener | None = None,
    batch_id: str = "batch",
) -> BatchRunState:
    """Run one batch with explicit tunables and return its final state."""
    config = BatchConfig(
        concurrency=concurrency,
        retry_budget=retry_budget,
        deadline_seconds=deadline_seconds,
    )
    scheduler = BatchScheduler(
        analyze,
        update_item_status,
        config,
        cancel_token=cancel_token,
        batch_id=batch_id,
    )
    return await scheduler.run(items, on_progress=on_progress)
