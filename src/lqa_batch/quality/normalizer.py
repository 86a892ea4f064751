"""Deterministic quality normalization of analysis reports.

The analysis service proposes a quality level and scores, but its output
varies between calls. Normalization re-derives both from the report's own
issue list so that the same findings always grade the same way:

1. Quality tier, first match wins:
   - any Critical issue, or an upstream level of Critical -> Critical
   - any Major issue, or more than three Minor issues     -> Poor
   - no issues at all                                     -> Excellent
   - otherwise                                            -> Good
2. Score ceilings: each issue caps the score dimension its category maps
   to (Critical -> 1, Major -> 2, Minor -> 4). Scores are only lowered.
3. Free-text fields are left untouched.

``normalize`` is pure and idempotent.
"""

from __future__ import annotations

from lqa_batch.core.report import (
    IssueCategory,
    QualityLevel,
    Severity,
    StructuredReport,
)

# Strictly more Minor issues than this downgrades a report to Poor
MINOR_ISSUE_THRESHOLD = 3

CATEGORY_DIMENSIONS: dict[IssueCategory, str] = {
    IssueCategory.MISTRANSLATION: "accuracy",
    IssueCategory.TERMINOLOGY: "terminology",
    IssueCategory.LAYOUT: "layout",
    IssueCategory.GRAMMAR: "grammar",
    IssueCategory.FORMATTING: "formatting",
    IssueCategory.STYLE: "localization_tone",
}

SEVERITY_CAPS: dict[Severity, float] = {
    Severity.CRITICAL: 1.0,
    Severity.MAJOR: 2.0,
    Severity.MINOR: 4.0,
}


def determine_quality_tier(report: StructuredReport) -> QualityLevel:
    """Classify a report from its issues and upstream level only."""
    severities = [issue.severity for issue in report.issues]

    if Severity.CRITICAL in severities or report.overall.quality_level is QualityLevel.CRITICAL:
        return QualityLevel.CRITICAL
    if Severity.MAJOR in severities or severities.count(Severity.MINOR) > MINOR_ISSUE_THRESHOLD:
        return QualityLevel.POOR
    if not severities:
        return QualityLevel.EXCELLENT
    return QualityLevel.GOOD


def score_ceilings(report: StructuredReport) -> dict[str, float]:
    """Tightest cap per score dimension touched by the report's issues."""
    ceilings: dict[str, float] = {}
    for issue in report.issues:
        dimension = CATEGORY_DIMENSIONS.get(issue.issue_category)
        if dimension is None:
            continue
        cap = SEVERITY_CAPS[issue.severity]
        ceilings[dimension] = min(cap, ceilings.get(dimension, cap))
    return ceilings


def normalize(report: StructuredReport) -> StructuredReport:
    """Return a copy of ``report`` with its level and scores re-derived."""
    scores = report.overall.scores
    capped = {
        dimension: min(getattr(scores, dimension), ceiling)
        for dimension, ceiling in score_ceilings(report).items()
    }
    overall = report.overall.model_copy(
        update={
            "quality_level": determine_quality_tier(report),
            "scores": scores.model_copy(update=capped),
        }
    )
    return report.model_copy(update={"overall": overall})
