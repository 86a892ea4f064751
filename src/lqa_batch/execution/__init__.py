"""Batch execution: attempts, retries, worker pool and progress tracking."""

from lqa_batch.execution.cancellation import CancellationToken
from lqa_batch.execution.progress import BatchErrorEntry, BatchRunState, ProgressAggregator
from lqa_batch.execution.scheduler import BatchScheduler, run_batch

__all__ = [
    "BatchErrorEntry",
    "BatchRunState",
    "BatchScheduler",
    "CancellationToken",
    "ProgressAggregator",
    "run_batch",
]
