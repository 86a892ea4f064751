"""Pytest fixtures for LQA Batch tests."""

import json
import logging
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
import structlog

from lqa_batch.core.report import StructuredReport, parse_report
from lqa_batch.items import AnalysisItem, ItemStore


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset CLI and structlog logging state around each test."""
    from lqa_batch.cli import helpers

    original = (
        helpers._log_config.configured,
        helpers._log_config.level,
        helpers._log_config.file,
        helpers._log_config.format,
        helpers._log_config.from_cli,
        helpers._output_level,
    )

    helpers._log_config.configured = False
    helpers._log_config.level = "WARNING"
    helpers._log_config.file = None
    helpers._log_config.format = "console"
    helpers._log_config.from_cli = False
    helpers._output_level = helpers.OutputLevel.NORMAL

    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    (
        helpers._log_config.configured,
        helpers._log_config.level,
        helpers._log_config.file,
        helpers._log_config.format,
        helpers._log_config.from_cli,
        helpers._output_level,
    ) = original

    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


# =============================================================================
# Report builders
# =============================================================================


def _issue(
    issue_id: str,
    severity: str,
    category: str = "Mistranslation",
    **extra: Any,
) -> dict[str, Any]:
    return {
        "id": issue_id,
        "location": "header",
        "issueCategory": category,
        "severity": severity,
        "sourceText": "Settings",
        "targetText": "Einstellungen",
        "description": f"{severity} {category.lower()} issue",
        "suggestionsTarget": [],
        **extra,
    }


def _report_dict(
    *,
    level: str = "Good",
    issues: list[dict[str, Any]] | None = None,
    scores: dict[str, float] | None = None,
    screenshot_id: str = "shot-1",
) -> dict[str, Any]:
    issues = issues or []
    severities = [issue["severity"] for issue in issues]
    return {
        "screenshotId": screenshot_id,
        "overall": {
            "qualityLevel": level,
            "scores": scores
            or {
                "accuracy": 5,
                "terminology": 5,
                "layout": 5,
                "grammar": 5,
                "formatting": 5,
                "localizationTone": 5,
            },
            "sceneDescription": "Settings page",
            "mainProblemsSummary": "",
        },
        "issues": issues,
        "summary": {
            "severeCount": severities.count("Critical"),
            "majorCount": severities.count("Major"),
            "minorCount": severities.count("Minor"),
            "optimizationAdvice": "",
            "termAdvice": "",
        },
    }


@pytest.fixture
def make_issue() -> Callable[..., dict[str, Any]]:
    """Factory for wire-format issue dicts."""
    return _issue


@pytest.fixture
def make_report_dict() -> Callable[..., dict[str, Any]]:
    """Factory for wire-format report dicts (summary counts derived from issues)."""
    return _report_dict


@pytest.fixture
def make_report() -> Callable[..., StructuredReport]:
    """Factory for parsed StructuredReport instances."""

    def _make(**kwargs: Any) -> StructuredReport:
        return parse_report(_report_dict(**kwargs))

    return _make


# =============================================================================
# Items
# =============================================================================


def _items(count: int, prefix: str = "shot") -> list[AnalysisItem]:
    return [
        AnalysisItem(id=f"{prefix}-{n}", name=f"{prefix}-{n}.png", target_locale="de-DE")
        for n in range(1, count + 1)
    ]


@pytest.fixture
def make_items() -> Callable[..., list[AnalysisItem]]:
    """Factory for pending AnalysisItems named shot-1..shot-N."""
    return _items


@pytest.fixture
def item_store() -> ItemStore:
    """Store with three pending items."""
    return ItemStore(_items(3))


# =============================================================================
# Files
# =============================================================================


@pytest.fixture
def reports_dir(tmp_path: Path) -> Path:
    """Directory of canned reports for shot-1..shot-3 (shot-3 has a Major issue)."""
    directory = tmp_path / "reports"
    directory.mkdir()
    (directory / "shot-1.json").write_text(json.dumps(_report_dict(screenshot_id="shot-1")))
    (directory / "shot-2.json").write_text(
        "```json\n"
        + json.dumps(_report_dict(screenshot_id="shot-2", issues=[_issue("1", "Minor")]))
        + "\n```"
    )
    (directory / "shot-3.json").write_text(
        json.dumps(
            _report_dict(
                screenshot_id="shot-3",
                level="Excellent",
                issues=[_issue("1", "Major", "Terminology")],
            )
        )
    )
    return directory


@pytest.fixture
def manifest_file(tmp_path: Path, reports_dir: Path) -> Path:
    """Run manifest using the replay backend over ``reports_dir``."""
    manifest = tmp_path / "run.yaml"
    manifest.write_text(
        "name: nightly-de\n"
        "batch:\n"
        "  concurrency: 2\n"
        "  retry_budget: 1\n"
        "  deadline_seconds: 5\n"
        "backend:\n"
        "  type: replay\n"
        "  reports_dir: reports\n"
        "items:\n"
        "  - id: shot-1\n"
        "    name: shot-1.png\n"
        "  - id: shot-2\n"
        "    name: shot-2.png\n"
        "  - id: shot-3\n"
        "    name: shot-3.png\n"
        "  - id: shot-4\n"
        "    name: shot-4.png\n"
    )
    return manifest
