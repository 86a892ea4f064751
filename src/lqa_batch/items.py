"""Caller-owned analysis items.

The scheduler never stores items itself: it reads identifying fields and
reports every state transition through an ``update_item_status`` callback.
``ItemStore`` is the in-memory owner used by the CLI and the batch service.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from lqa_batch.core.report import StructuredReport


class ItemStatus(str, Enum):
    """Lifecycle status of one item."""

    PENDING = "pending"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"


ELIGIBLE_STATUSES = frozenset({ItemStatus.PENDING, ItemStatus.FAILED})


@dataclass
class AnalysisItem:
    """One screenshot pair to analyze.

    Attributes:
        id: Stable identifier.
        name: Display name (usually the file name).
        target_locale: Locale tag of the target screenshot, e.g. "de-DE".
        source: Source-language input reference (path or URL).
        target: Target-language input reference (path or URL).
        status: Current lifecycle status.
        report: Normalized report once completed.
        error_message: Last error once failed.
    """

    id: str
    name: str
    target_locale: str
    source: str = ""
    target: str = ""
    status: ItemStatus = ItemStatus.PENDING
    report: StructuredReport | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class ItemUpdate:
    """Partial update emitted by the scheduler on each transition."""

    status: ItemStatus
    report: StructuredReport | None = None
    error_message: str | None = None

    @classmethod
    def analyzing(cls) -> ItemUpdate:
        return cls(status=ItemStatus.ANALYZING)

    @classmethod
    def completed(cls, report: StructuredReport) -> ItemUpdate:
        return cls(status=ItemStatus.COMPLETED, report=report)

    @classmethod
    def failed(cls, message: str) -> ItemUpdate:
        return cls(status=ItemStatus.FAILED, error_message=message)


class ItemStore:
    """Insertion-ordered in-memory item store."""

    def __init__(self, items: Iterable[AnalysisItem] = ()) -> None:
        self._items: dict[str, AnalysisItem] = {}
        for item in items:
            self.add(item)

    def add(self, item: AnalysisItem) -> None:
        if item.id in self._items:
            raise ValueError(f"Duplicate item id: {item.id}")
        self._items[item.id] = item

    def get(self, item_id: str) -> AnalysisItem:
        return self._items[item_id]

    def __iter__(self) -> Iterator[AnalysisItem]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def eligible_items(self) -> list[AnalysisItem]:
        """Items that may be submitted to a batch (Pending or Failed)."""
        return [item for item in self._items.values() if item.status in ELIGIBLE_STATUSES]

    def update_item_status(self, item_id: str, update: ItemUpdate) -> None:
        """Apply a partial update to a stored item.

        Entering Analyzing clears a previous error; completing replaces the
        report and clears the error; failing records the message.

        Raises:
            KeyError: If no item has this id.
        """
        item = self._items[item_id]
        item.status = update.status
        if update.status is ItemStatus.ANALYZING:
            item.error_message = None
        elif update.status is ItemStatus.COMPLETED:
            item.report = update.report
            item.error_message = None
        elif update.status is ItemStatus.FAILED:
            item.error_message = update.error_message
