"""Structured QA report models and parsing.

The analysis service answers with a JSON report per screenshot pair. These
models describe that report; field names are snake_case in Python and
camelCase on the wire (``qualityLevel``, ``issueCategory``...). Reports are
frozen: normalization produces a new instance instead of mutating one.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from lqa_batch.core.errors import ReportValidationError, SchemaError

REQUIRED_SECTIONS: tuple[str, ...] = ("overall", "issues", "summary")

# Section name -> accepted wire keys
_SECTION_KEYS: dict[str, tuple[str, ...]] = {
    "overall": ("overall",),
    "issues": ("issues",),
    "summary": ("summary", "summaryZh"),
}

_JSON_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)


class _CaseInsensitiveEnum(str, Enum):
    @classmethod
    def _missing_(cls, value: object) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None


class QualityLevel(_CaseInsensitiveEnum):
    """Discrete quality classification of a report.

    Unknown upstream labels ("Fair", "Bad") fall back to AVERAGE; the
    normalizer re-derives the level anyway.
    """

    CRITICAL = "Critical"
    POOR = "Poor"
    AVERAGE = "Average"
    GOOD = "Good"
    PERFECT = "Perfect"
    EXCELLENT = "Excellent"

    @classmethod
    def _missing_(cls, value: object) -> Any:
        member = super()._missing_(value)
        if member is None and isinstance(value, str):
            return cls.AVERAGE
        return member


class Severity(_CaseInsensitiveEnum):
    CRITICAL = "Critical"
    MAJOR = "Major"
    MINOR = "Minor"


class IssueCategory(_CaseInsensitiveEnum):
    """Issue categories; unknown labels fall back to OTHER."""

    LAYOUT = "Layout"
    MISTRANSLATION = "Mistranslation"
    UNTRANSLATED = "Untranslated"
    TERMINOLOGY = "Terminology"
    FORMATTING = "Formatting"
    GRAMMAR = "Grammar"
    STYLE = "Style"
    OTHER = "Other"

    @classmethod
    def _missing_(cls, value: object) -> Any:
        member = super()._missing_(value)
        if member is None and isinstance(value, str):
            return cls.OTHER
        return member


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class QaScores(_WireModel):
    """Six scored dimensions, each 0-5."""

    accuracy: float = Field(ge=0, le=5)
    terminology: float = Field(ge=0, le=5)
    layout: float = Field(ge=0, le=5)
    grammar: float = Field(ge=0, le=5)
    formatting: float = Field(ge=0, le=5)
    localization_tone: float = Field(ge=0, le=5, alias="localizationTone")


class BoundingBox(_WireModel):
    x: float
    y: float
    width: float
    height: float


class Overall(_WireModel):
    quality_level: QualityLevel = Field(alias="qualityLevel")
    scores: QaScores
    scene_description: str = Field(
        default="",
        alias="sceneDescription",
        validation_alias=AliasChoices("sceneDescription", "sceneDescriptionZh"),
    )
    main_problems_summary: str = Field(
        default="",
        alias="mainProblemsSummary",
        validation_alias=AliasChoices("mainProblemsSummary", "mainProblemsSummaryZh"),
    )


class QaIssue(_WireModel):
    id: str
    location: str = ""
    issue_category: IssueCategory = Field(alias="issueCategory")
    severity: Severity
    source_text: str = Field(default="", alias="sourceText")
    target_text: str = Field(default="", alias="targetText")
    description: str = Field(
        default="",
        validation_alias=AliasChoices("description", "descriptionZh"),
    )
    suggestions_target: list[str] = Field(default_factory=list, alias="suggestionsTarget")
    bounding_box: BoundingBox | None = Field(default=None, alias="boundingBox")


class ReportSummary(_WireModel):
    severe_count: int = Field(default=0, ge=0, alias="severeCount")
    major_count: int = Field(default=0, ge=0, alias="majorCount")
    minor_count: int = Field(default=0, ge=0, alias="minorCount")
    optimization_advice: str = Field(default="", alias="optimizationAdvice")
    term_advice: str = Field(default="", alias="termAdvice")


class StructuredReport(_WireModel):
    """A complete QA report for one screenshot pair."""

    screenshot_id: str = Field(default="", alias="screenshotId")
    overall: Overall
    issues: list[QaIssue]
    summary: ReportSummary = Field(
        validation_alias=AliasChoices("summary", "summaryZh"),
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize with camelCase keys, as exchanged with the service."""
        return self.model_dump(mode="json", by_alias=True)


def strip_json_fence(text: str) -> str:
    """Remove a surrounding markdown ```json fence, if present."""
    return _JSON_FENCE_RE.sub("", text).strip()


def parse_report_text(text: str | bytes, *, item_id: str | None = None) -> StructuredReport:
    """Parse raw response text into a report.

    Raises:
        SchemaError: Empty text, invalid JSON or a non-object document.
        ReportValidationError: A required section is missing.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    cleaned = strip_json_fence(text)
    if not cleaned:
        raise SchemaError("Received empty response from analysis service", item_id=item_id)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise SchemaError(
            "Invalid JSON response from analysis service",
            item_id=item_id,
            original_error=e,
        ) from e
    return parse_report(payload, item_id=item_id)


def parse_report(payload: Any, *, item_id: str | None = None) -> StructuredReport:
    """Coerce an analysis payload into a StructuredReport.

    Accepts an existing report, a mapping or raw JSON text. When ``item_id``
    is given the report's ``screenshotId`` is forced to it.

    Raises:
        SchemaError: Payload is not report-shaped.
        ReportValidationError: ``overall``, ``issues`` or ``summary`` is missing.
    """
    if isinstance(payload, (str, bytes)):
        return parse_report_text(payload, item_id=item_id)

    if isinstance(payload, StructuredReport):
        report = payload
    elif isinstance(payload, Mapping):
        missing = [
            section
            for section in REQUIRED_SECTIONS
            if not any(payload.get(key) is not None for key in _SECTION_KEYS[section])
        ]
        if missing:
            raise ReportValidationError(
                f"Report is missing required sections: {', '.join(missing)}",
                item_id=item_id,
            )
        try:
            report = StructuredReport.model_validate(dict(payload))
        except PydanticValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise SchemaError(
                f"Report does not match expected structure at '{location}': {first['msg']}",
                item_id=item_id,
                original_error=e,
            ) from e
    else:
        raise SchemaError(
            f"Unexpected report payload type: {type(payload).__name__}",
            item_id=item_id,
        )

    if item_id is not None and report.screenshot_id != item_id:
        report = report.model_copy(update={"screenshot_id": item_id})
    return report
