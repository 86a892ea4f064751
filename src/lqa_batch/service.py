"""Batch analysis service, decoupled from the CLI.

The service owns the caller side of a batch: it picks eligible items from
an ``ItemStore``, enforces the batch-size cap, and hands the rest to a
``BatchScheduler``. The CLI is a thin wrapper around it; nothing here
depends on Rich or Typer.
"""

from __future__ import annotations

import uuid

from lqa_batch.core.config import BatchConfig
from lqa_batch.core.errors import BatchLimitError, BatchStateError
from lqa_batch.core.logging import get_logger
from lqa_batch.execution.attempt import AnalyzeFn
from lqa_batch.execution.cancellation import DEFAULT_CANCEL_REASON
from lqa_batch.execution.progress import BatchRunState, ProgressListener
from lqa_batch.execution.scheduler import BatchScheduler
from lqa_batch.items import ItemStore

_logger = get_logger("service")


class BatchAnalysisService:
    """Runs batches over the items of one store, one batch at a time."""

    def __init__(
        self,
        store: ItemStore,
        analyze: AnalyzeFn,
        config: BatchConfig | None = None,
    ) -> None:
        self.store = store
        self.analyze = analyze
        self.config = config or BatchConfig()
        self._scheduler: BatchScheduler | None = None
        self._last_state: BatchRunState | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    @property
    def state(self) -> BatchRunState:
        """Live state of the current run, or the final state of the last one."""
        if self._scheduler is not None:
            return self._scheduler.snapshot()
        if self._last_state is not None:
            return self._last_state
        return BatchRunState()

    # ─── Batch Lifecycle ─────────────────────────────────────────────────

    async def start(self, *, on_progress: ProgressListener | None = None) -> BatchRunState:
        """Analyze every Pending or Failed item and return the final state.

        Raises:
            BatchLimitError: More eligible items than ``max_batch_items``.
            BatchStateError: A batch is already running on this service.
        """
        if self._scheduler is not None:
            raise BatchStateError("A batch is already in progress")

        eligible = self.store.eligible_items()
        if not eligible:
            _logger.info("service.nothing_to_analyze", items=len(self.store))
            self._last_state = BatchRunState(is_complete=True)
            if on_progress is not None:
                on_progress(self._last_state)
            return self._last_state

        if len(eligible) > self.config.max_batch_items:
            _logger.warning(
                "service.batch_limit_exceeded",
                requested=len(eligible),
                limit=self.config.max_batch_items,
            )
            raise BatchLimitError(len(eligible), self.config.max_batch_items)

        batch_id = uuid.uuid4().hex[:12]
        scheduler = BatchScheduler(
            self.analyze,
            self.store.update_item_status,
            self.config,
            batch_id=batch_id,
        )
        self._scheduler = scheduler
        try:
            state = await scheduler.run(eligible, on_progress=on_progress)
        finally:
            self._scheduler = None
        self._last_state = state
        return state

    def cancel(self, reason: str = DEFAULT_CANCEL_REASON) -> bool:
        """Cancel the running batch.

        Returns:
            True if a running batch was newly cancelled.
        """
        if self._scheduler is None:
            _logger.debug("service.cancel_ignored", reason="no batch running")
            return False
        return self._scheduler.cancel(reason)
