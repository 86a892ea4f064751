"""Tests for the LQA Batch CLI.

Structured logs are routed to a file with ``--log-file`` so that stdout
holds only the command's own output.
"""

import asyncio
import json
import signal
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from lqa_batch import __version__
from lqa_batch.cli import app
from lqa_batch.cli.commands.run import _install_cancel_handler

runner = CliRunner()


@pytest.fixture
def log_file(tmp_path: Path) -> Path:
    return tmp_path / "logs" / "lqa.log"


def _invoke(log_file: Path, *args: str):
    return runner.invoke(app, ["--log-file", str(log_file), *args])


class TestGlobalOptions:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"LQA Batch v{__version__}" in result.stdout

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "normalize", "summary"):
            assert command in result.stdout

    def test_invalid_log_level(self, manifest_file):
        result = runner.invoke(app, ["--log-level", "LOUD", "run", str(manifest_file)])
        assert result.exit_code == 1
        assert "Invalid log level" in result.stdout

    def test_both_format_needs_file(self, manifest_file):
        result = runner.invoke(app, ["--log-format", "both", "run", str(manifest_file)])
        assert result.exit_code == 1
        assert "file_path is required" in result.stdout


class TestRunCommand:
    def test_json_result(self, manifest_file, log_file):
        """A missing canned report fails one item; the run itself succeeds."""
        result = _invoke(log_file, "run", str(manifest_file), "--json")

        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert data["name"] == "nightly-de"

        state = data["state"]
        assert state["total"] == 4
        assert state["success"] == 3
        assert state["failed"] == 1
        assert state["isComplete"] is True
        assert state["isProcessing"] is False
        assert state["errors"] == [
            {"id": "shot-4", "name": "shot-4.png", "message": "No canned report for item shot-4"}
        ]

        items = {entry["id"]: entry for entry in data["items"]}
        assert items["shot-1"]["qualityLevel"] == "Excellent"
        assert items["shot-2"]["qualityLevel"] == "Good"
        assert items["shot-3"]["qualityLevel"] == "Poor"
        assert items["shot-3"]["issueCount"] == 1
        assert items["shot-4"]["status"] == "failed"
        assert "qualityLevel" not in items["shot-4"]

        assert data["summary"]["totalAnalyzed"] == 3
        assert data["summary"]["totalPending"] == 1
        assert data["summary"]["qualityDistribution"] == {"Excellent": 1, "Good": 1, "Poor": 1}

    def test_failures_are_logged_to_file(self, manifest_file, log_file):
        result = _invoke(log_file, "run", str(manifest_file), "--json")

        assert result.exit_code == 0
        text = log_file.read_text()
        assert "scheduler.item_failed" in text
        assert "shot-4" in text

    def test_human_output(self, manifest_file, log_file):
        result = _invoke(log_file, "run", str(manifest_file))

        assert result.exit_code == 0
        assert "nightly-de" in result.stdout
        assert "Run Summary" in result.stdout
        assert "Quality Summary" in result.stdout
        assert "No canned report for item shot-4" in result.stdout

    def test_verbose_lists_items(self, manifest_file, log_file):
        result = _invoke(log_file, "--verbose", "run", str(manifest_file))

        assert result.exit_code == 0
        assert "Items" in result.stdout
        assert "shot-3.png" in result.stdout

    def test_quiet_reports_failure_count_only(self, manifest_file, log_file):
        result = _invoke(log_file, "--quiet", "run", str(manifest_file))

        assert result.exit_code == 0
        assert "1 of 4 items failed" in result.stdout
        assert "Run Summary" not in result.stdout

    def test_skips_completed_items(self, tmp_path, reports_dir, log_file):
        manifest = tmp_path / "resume.yaml"
        manifest.write_text(
            "backend: {type: replay, reports_dir: reports}\n"
            "items:\n"
            "  - {id: shot-1, status: completed}\n"
            "  - {id: shot-2, status: failed}\n"
        )

        result = _invoke(log_file, "run", str(manifest), "--json")

        data = json.loads(result.stdout)
        assert data["state"]["total"] == 1
        assert data["state"]["success"] == 1

    def test_concurrency_override_is_validated(self, manifest_file, log_file):
        result = _invoke(log_file, "run", str(manifest_file), "--concurrency", "0")
        assert result.exit_code == 2

    def test_invalid_manifest(self, tmp_path, log_file):
        manifest = tmp_path / "bad.yaml"
        manifest.write_text("name: no-backend\n")

        result = _invoke(log_file, "run", str(manifest))

        assert result.exit_code == 1
        assert "Error loading manifest" in result.stdout

    def test_batch_limit(self, tmp_path, reports_dir, log_file):
        manifest = tmp_path / "big.yaml"
        manifest.write_text(
            "batch: {max_batch_items: 2}\n"
            "backend: {type: replay, reports_dir: reports}\n"
            "items: [{id: shot-1}, {id: shot-2}, {id: shot-3}]\n"
        )

        result = _invoke(log_file, "run", str(manifest), "--json")

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["success"] is False
        assert data["error_code"] == "E301"
        assert "at most 2 items" in data["message"]

    def test_missing_manifest_file(self, tmp_path, log_file):
        result = _invoke(log_file, "run", str(tmp_path / "nope.yaml"))
        assert result.exit_code == 2

    @pytest.fixture
    def logged_manifest(self, tmp_path, reports_dir) -> Path:
        manifest = tmp_path / "logged.yaml"
        manifest.write_text(
            "name: logged\n"
            "backend: {type: replay, reports_dir: reports}\n"
            "logging: {level: INFO, format: json, file_path: from_manifest.log}\n"
            "items: [{id: shot-1}, {id: shot-4}]\n"
        )
        return manifest

    def test_manifest_logging_section_is_applied(self, logged_manifest, tmp_path):
        result = runner.invoke(app, ["run", str(logged_manifest), "--json"])

        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout)["state"]["failed"] == 1

        entries = [
            json.loads(line)
            for line in (tmp_path / "from_manifest.log").read_text().splitlines()
        ]
        events = [entry["event"] for entry in entries]
        assert "scheduler.batch_start" in events
        assert "scheduler.item_failed" in events

    def test_log_options_override_manifest_logging(self, logged_manifest, tmp_path, log_file):
        result = _invoke(log_file, "run", str(logged_manifest), "--json")

        assert result.exit_code == 0
        assert not (tmp_path / "from_manifest.log").exists()
        assert "replay.report_missing" in log_file.read_text()

    def test_invalid_manifest_logging(self, tmp_path, reports_dir):
        manifest = tmp_path / "bad-logging.yaml"
        manifest.write_text(
            "backend: {type: replay, reports_dir: reports}\n"
            "logging: {format: both}\n"
        )

        result = runner.invoke(app, ["run", str(manifest)])

        assert result.exit_code == 1
        assert "Error loading manifest" in result.stdout


class TestNormalizeCommand:
    @pytest.fixture
    def report_file(self, tmp_path, make_report_dict, make_issue) -> Path:
        path = tmp_path / "shot-9.json"
        path.write_text(
            json.dumps(
                make_report_dict(
                    level="Excellent",
                    issues=[make_issue("1", "Critical", "Layout")],
                )
            )
        )
        return path

    def test_json(self, report_file, log_file):
        result = _invoke(log_file, "normalize", str(report_file), "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["screenshotId"] == "shot-9"
        assert data["overall"]["qualityLevel"] == "Critical"
        assert data["overall"]["scores"]["layout"] == 1.0
        assert data["overall"]["sceneDescription"] == "Settings page"

    def test_human_output_shows_regrade(self, report_file, log_file):
        result = _invoke(log_file, "normalize", str(report_file))

        assert result.exit_code == 0
        assert "Critical" in result.stdout
        assert "(reported Excellent)" in result.stdout

    def test_unparseable_report(self, tmp_path, log_file):
        path = tmp_path / "broken.json"
        path.write_text("I could not analyze this screenshot.")

        result = _invoke(log_file, "normalize", str(path))

        assert result.exit_code == 1
        assert "Error loading report" in result.stdout
        assert "E503" in result.stdout


class TestSummaryCommand:
    def test_json(self, reports_dir, log_file):
        (reports_dir / "broken.json").write_text("{}")

        result = _invoke(log_file, "summary", str(reports_dir), "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["totalAnalyzed"] == 3
        assert data["totalPending"] == 1
        assert data["qualityDistribution"] == {"Excellent": 1, "Good": 1, "Poor": 1}
        assert data["severityCounts"] == {"critical": 0, "major": 1, "minor": 1}
        assert data["defects"] == ["shot-3"]
        assert [entry["id"] for entry in data["unreadable"]] == ["broken"]

    def test_non_utf8_file_is_listed_as_unreadable(self, reports_dir, log_file):
        (reports_dir / "latin1.json").write_bytes(b'{"overall": "\xe9t\xe9"}')

        result = _invoke(log_file, "summary", str(reports_dir), "--json")

        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert data["totalAnalyzed"] == 3
        assert [entry["id"] for entry in data["unreadable"]] == ["latin1"]
        assert "missing required sections" in data["unreadable"][0]["message"]

    def test_human_output(self, reports_dir, log_file):
        result = _invoke(log_file, "summary", str(reports_dir))

        assert result.exit_code == 0
        assert "Quality Summary" in result.stdout
        assert "shot-3.json" in result.stdout

    def test_empty_directory(self, tmp_path, log_file):
        empty = tmp_path / "empty"
        empty.mkdir()

        result = _invoke(log_file, "summary", str(empty))

        assert result.exit_code == 1
        assert "No report files found" in result.stdout


@pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers need Unix")
class TestCancelHandler:
    @pytest.mark.asyncio
    async def test_first_ctrl_c_cancels_and_uninstalls(self):
        loop = asyncio.get_running_loop()
        service = MagicMock()
        service.cancel.return_value = True

        assert _install_cancel_handler(loop, service, json_output=True)
        signal.raise_signal(signal.SIGINT)
        await asyncio.sleep(0.05)

        service.cancel.assert_called_once_with("Cancelled by user")
        # Nothing left to remove: the next Ctrl+C reaches the default handler
        assert loop.remove_signal_handler(signal.SIGINT) is False
        assert signal.getsignal(signal.SIGINT) is signal.default_int_handler
