"""Aggregate statistics across analyzed items."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from lqa_batch.core.report import QualityLevel
from lqa_batch.items import AnalysisItem, ItemStatus

DEFECT_LEVELS = frozenset({QualityLevel.CRITICAL, QualityLevel.POOR})


@dataclass
class SeverityCounts:
    critical: int = 0
    major: int = 0
    minor: int = 0

    @property
    def total(self) -> int:
        return self.critical + self.major + self.minor


@dataclass
class GlobalSummary:
    """Roll-up of every item's report.

    Attributes:
        total_analyzed: Items completed with a report.
        total_pending: All other items (pending, analyzing or failed).
        quality_distribution: Item count per quality level.
        severity_counts: Issue counts from each report's summary section.
        category_counts: Issue count per issue category.
    """

    total_analyzed: int = 0
    total_pending: int = 0
    quality_distribution: dict[str, int] = field(default_factory=dict)
    severity_counts: SeverityCounts = field(default_factory=SeverityCounts)
    category_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalAnalyzed": self.total_analyzed,
            "totalPending": self.total_pending,
            "qualityDistribution": dict(self.quality_distribution),
            "severityCounts": {
                "critical": self.severity_counts.critical,
                "major": self.severity_counts.major,
                "minor": self.severity_counts.minor,
            },
            "categoryCounts": dict(self.category_counts),
        }


def _is_analyzed(item: AnalysisItem) -> bool:
    return item.status is ItemStatus.COMPLETED and item.report is not None


def summarize(items: Iterable[AnalysisItem]) -> GlobalSummary:
    """Build a GlobalSummary over ``items``."""
    summary = GlobalSummary()
    levels: Counter[str] = Counter()
    categories: Counter[str] = Counter()

    for item in items:
        report = item.report
        if item.status is not ItemStatus.COMPLETED or report is None:
            summary.total_pending += 1
            continue
        summary.total_analyzed += 1
        levels[report.overall.quality_level.value] += 1
        summary.severity_counts.critical += report.summary.severe_count
        summary.severity_counts.major += report.summary.major_count
        summary.severity_counts.minor += report.summary.minor_count
        for issue in report.issues:
            categories[issue.issue_category.value] += 1

    summary.quality_distribution = dict(levels)
    summary.category_counts = dict(categories)
    return summary


def defect_items(items: Iterable[AnalysisItem]) -> list[AnalysisItem]:
    """Completed items graded Critical or Poor, in input order."""
    return [
        item
        for item in items
        if _is_analyzed(item)
        and item.report is not None
        and item.report.overall.quality_level in DEFECT_LEVELS
    ]
