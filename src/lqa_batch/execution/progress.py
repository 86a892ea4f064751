"""Live progress aggregation for a batch run.

Workers finish items concurrently and each finish performs exactly one
synchronized update. Readers get immutable ``BatchRunState`` snapshots that
are consistent at the instant they were taken, from any thread.

Invariants:
- ``completed == success + failed`` after every update
- ``completed <= total``
- counts only increase, and nothing changes once ``is_complete`` is set
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from lqa_batch.core.errors import BatchStateError
from lqa_batch.core.logging import get_logger

_logger = get_logger("progress")


@dataclass(frozen=True)
class BatchErrorEntry:
    """One failed item in the batch error log."""

    id: str
    name: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "message": self.message}


@dataclass(frozen=True)
class BatchRunState:
    """Point-in-time view of a batch run.

    Attributes:
        is_processing: True while workers may still finish items.
        total: Items submitted to the run.
        completed: Items finished (success + failed).
        success: Items completed with a report.
        failed: Items that ended in failure.
        errors: Failed items with their last error message, in finish order.
        is_complete: Set once, after every worker has exited.
        cancelled: Whether cancellation was requested during the run.
    """

    is_processing: bool = False
    total: int = 0
    completed: int = 0
    success: int = 0
    failed: int = 0
    errors: tuple[BatchErrorEntry, ...] = field(default_factory=tuple)
    is_complete: bool = False
    cancelled: bool = False

    @property
    def percent(self) -> int:
        """Completion percentage rounded to an int (0 for an empty run)."""
        if self.total <= 0:
            return 0
        return round(self.completed / self.total * 100)

    @property
    def remaining(self) -> int:
        return self.total - self.completed

    def to_dict(self) -> dict[str, Any]:
        return {
            "isProcessing": self.is_processing,
            "total": self.total,
            "completed": self.completed,
            "success": self.success,
            "failed": self.failed,
            "errors": [entry.to_dict() for entry in self.errors],
            "isComplete": self.is_complete,
            "cancelled": self.cancelled,
        }


ProgressListener = Callable[[BatchRunState], None]


class ProgressAggregator:
    """Shared, lock-protected run state for one batch.

    Example:
        aggregator = ProgressAggregator(total=3)
        aggregator.subscribe(lambda state: print(state.percent))
        aggregator.record_success("a")
        aggregator.record_failure("b", "b.png", "Request timed out")
        aggregator.mark_complete()
    """

    def __init__(self, total: int, *, is_processing: bool = True) -> None:
        if total < 0:
            raise ValueError("total must be non-negative")
        self._lock = threading.Lock()
        self._total = total
        self._completed = 0
        self._success = 0
        self._failed = 0
        self._errors: list[BatchErrorEntry] = []
        self._is_processing = is_processing
        self._is_complete = False
        self._cancelled = False
        self._listeners: list[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> None:
        """Register a callback invoked with a fresh snapshot after each update."""
        with self._lock:
            self._listeners.append(listener)

    def snapshot(self) -> BatchRunState:
        with self._lock:
            return self._snapshot_locked()

    @property
    def is_complete(self) -> bool:
        with self._lock:
            return self._is_complete

    def record_success(self, item_id: str) -> BatchRunState:
        """Count one item that completed with a report."""
        with self._lock:
            self._begin_update_locked(item_id)
            self._completed += 1
            self._success += 1
            state = self._snapshot_locked()
        self._notify(state)
        return state

    def record_failure(self, item_id: str, name: str, message: str) -> BatchRunState:
        """Count one failed item and append it to the error log."""
        with self._lock:
            self._begin_update_locked(item_id)
            self._completed += 1
            self._failed += 1
            self._errors.append(BatchErrorEntry(id=item_id, name=name, message=message))
            state = self._snapshot_locked()
        self._notify(state)
        return state

    def mark_cancelled(self) -> None:
        """Record that cancellation was requested (counts are unaffected)."""
        with self._lock:
            if self._is_complete or self._cancelled:
                return
            self._cancelled = True
            state = self._snapshot_locked()
        self._notify(state)

    def mark_complete(self) -> BatchRunState:
        """Freeze the run. Only the scheduler calls this, after workers exit.

        Raises:
            BatchStateError: If the run is already complete.
        """
        with self._lock:
            if self._is_complete:
                raise BatchStateError("Batch run is already complete")
            self._is_processing = False
            self._is_complete = True
            state = self._snapshot_locked()
        _logger.debug(
            "progress.frozen",
            total=state.total,
            completed=state.completed,
            success=state.success,
            failed=state.failed,
        )
        self._notify(state)
        return state

    def _begin_update_locked(self, item_id: str) -> None:
        if self._is_complete:
            raise BatchStateError(f"Cannot record item {item_id}: batch run is complete")
        if self._completed >= self._total:
            raise BatchStateError(
                f"Cannot record item {item_id}: all {self._total} items already counted"
            )

    def _snapshot_locked(self) -> BatchRunState:
        return BatchRunState(
            is_processing=self._is_processing,
            total=self._total,
            completed=self._completed,
            success=self._success,
            failed=self._failed,
            errors=tuple(self._errors),
            is_complete=self._is_complete,
            cancelled=self._cancelled,
        )

    def _notify(self, state: BatchRunState) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(state)
