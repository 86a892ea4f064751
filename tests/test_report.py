"""Tests for report models and parsing."""

import json

import pytest
from pydantic import ValidationError

from lqa_batch.core.errors import ErrorCode, ReportValidationError, SchemaError
from lqa_batch.core.report import (
    IssueCategory,
    QualityLevel,
    Severity,
    StructuredReport,
    parse_report,
    parse_report_text,
    strip_json_fence,
)


class TestParseReport:
    def test_parses_wire_dict(self, make_report_dict, make_issue):
        payload = make_report_dict(issues=[make_issue("7", "Major", "Layout")])
        report = parse_report(payload)

        assert isinstance(report, StructuredReport)
        assert report.overall.quality_level is QualityLevel.GOOD
        assert report.overall.scores.localization_tone == 5
        assert report.issues[0].id == "7"
        assert report.issues[0].issue_category is IssueCategory.LAYOUT
        assert report.issues[0].severity is Severity.MAJOR
        assert report.summary.major_count == 1

    def test_enums_are_case_insensitive(self, make_report_dict, make_issue):
        payload = make_report_dict(level="critical", issues=[make_issue("1", "minor", "GRAMMAR")])
        report = parse_report(payload)
        assert report.overall.quality_level is QualityLevel.CRITICAL
        assert report.issues[0].severity is Severity.MINOR
        assert report.issues[0].issue_category is IssueCategory.GRAMMAR

    def test_unknown_category_becomes_other(self, make_report_dict, make_issue):
        payload = make_report_dict(issues=[make_issue("1", "Minor", "Punctuation")])
        assert parse_report(payload).issues[0].issue_category is IssueCategory.OTHER

    def test_unknown_quality_level_becomes_average(self, make_report_dict):
        payload = make_report_dict(level="Fair")
        assert parse_report(payload).overall.quality_level is QualityLevel.AVERAGE

    def test_localized_field_variants_accepted(self, make_report_dict):
        payload = make_report_dict()
        payload["overall"]["sceneDescriptionZh"] = payload["overall"].pop("sceneDescription")
        payload["summaryZh"] = payload.pop("summary")
        report = parse_report(payload)
        assert report.overall.scene_description == "Settings page"
        assert report.summary.severe_count == 0

    def test_screenshot_id_polyfilled_from_item(self, make_report_dict):
        payload = make_report_dict(screenshot_id="something-else")
        assert parse_report(payload, item_id="shot-9").screenshot_id == "shot-9"

    def test_screenshot_id_kept_without_item(self, make_report_dict):
        payload = make_report_dict(screenshot_id="shot-3")
        assert parse_report(payload).screenshot_id == "shot-3"

    def test_existing_report_passes_through(self, make_report):
        report = make_report()
        assert parse_report(report) is report

    @pytest.mark.parametrize("section", ["overall", "issues", "summary"])
    def test_missing_section_is_validation_error(self, make_report_dict, section):
        payload = make_report_dict()
        del payload[section]
        with pytest.raises(ReportValidationError, match=section) as exc_info:
            parse_report(payload, item_id="shot-1")
        assert exc_info.value.item_id == "shot-1"
        assert exc_info.value.error_code is ErrorCode.VALIDATION_MISSING_SECTION

    def test_null_section_is_validation_error(self, make_report_dict):
        payload = make_report_dict()
        payload["overall"] = None
        with pytest.raises(ReportValidationError):
            parse_report(payload)

    def test_wrong_nested_type_is_schema_error(self, make_report_dict):
        payload = make_report_dict()
        payload["overall"]["scores"]["accuracy"] = "great"
        with pytest.raises(SchemaError, match="overall.scores.accuracy"):
            parse_report(payload)

    def test_score_out_of_range_is_schema_error(self, make_report_dict):
        payload = make_report_dict()
        payload["overall"]["scores"]["layout"] = 7
        with pytest.raises(SchemaError):
            parse_report(payload)

    @pytest.mark.parametrize("payload", [42, None, ["overall"]])
    def test_non_mapping_is_schema_error(self, payload):
        with pytest.raises(SchemaError, match="Unexpected report payload type"):
            parse_report(payload)


class TestParseReportText:
    def test_plain_json(self, make_report_dict):
        text = json.dumps(make_report_dict())
        assert parse_report_text(text).overall.quality_level is QualityLevel.GOOD

    def test_fenced_json(self, make_report_dict):
        text = "```json\n" + json.dumps(make_report_dict()) + "\n```"
        assert parse_report_text(text).issues == []

    def test_bytes_accepted(self, make_report_dict):
        assert parse_report_text(json.dumps(make_report_dict()).encode()).issues == []

    @pytest.mark.parametrize("text", ["", "   ", "```json\n```"])
    def test_empty_is_schema_error(self, text):
        with pytest.raises(SchemaError, match="empty response"):
            parse_report_text(text)

    def test_invalid_json_is_schema_error(self):
        with pytest.raises(SchemaError, match="Invalid JSON") as exc_info:
            parse_report_text("{not json", item_id="shot-2")
        assert exc_info.value.item_id == "shot-2"
        assert exc_info.value.original_error is not None

    def test_json_array_is_schema_error(self):
        with pytest.raises(SchemaError):
            parse_report_text("[1, 2, 3]")

    def test_strip_json_fence_leaves_plain_text(self):
        assert strip_json_fence('  {"a": 1}  ') == '{"a": 1}'
        assert strip_json_fence('```\n{"a": 1}\n```') == '{"a": 1}'


class TestWireFormat:
    def test_to_wire_uses_camel_case(self, make_report, make_issue):
        wire = make_report(issues=[make_issue("1", "Minor", "Style")]).to_wire()
        assert wire["screenshotId"] == "shot-1"
        assert wire["overall"]["qualityLevel"] == "Good"
        assert "localizationTone" in wire["overall"]["scores"]
        assert wire["issues"][0]["issueCategory"] == "Style"
        assert wire["summary"]["minorCount"] == 1

    def test_wire_output_parses_back(self, make_report, make_issue):
        report = make_report(issues=[make_issue("1", "Major", "Layout")])
        assert parse_report(report.to_wire()) == report

    def test_reports_are_frozen(self, make_report):
        report = make_report()
        with pytest.raises(ValidationError):
            report.screenshot_id = "changed"  # type: ignore[misc]
