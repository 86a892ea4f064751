"""Replay backend: serves canned reports from a directory.

Useful for dry runs, demos and tests. Each item is answered with the
contents of ``<reports_dir>/<item id>.json``, falling back to
``<reports_dir>/<name stem>.json``.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from lqa_batch.backends.base import AnalysisBackend
from lqa_batch.core.errors import NetworkError
from lqa_batch.core.logging import get_logger
from lqa_batch.items import AnalysisItem

_logger = get_logger("backend.replay")


class ReplayBackend(AnalysisBackend):
    """Answer each item with a report file read from disk.

    Attributes:
        reports_dir: Directory holding ``*.json`` reports.
        latency_seconds: Simulated service latency per call.
    """

    def __init__(self, reports_dir: Path, latency_seconds: float = 0.0) -> None:
        self.reports_dir = Path(reports_dir)
        self.latency_seconds = latency_seconds

    @property
    def name(self) -> str:
        return f"replay:{self.reports_dir.name}"

    def report_path(self, item: AnalysisItem) -> Path | None:
        """First existing candidate report file for ``item``, if any."""
        candidates = [self.reports_dir / f"{item.id}.json"]
        stem = Path(item.name).stem
        if stem and stem != item.id:
            candidates.append(self.reports_dir / f"{stem}.json")
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    async def analyze(self, item: AnalysisItem) -> str:
        if self.latency_seconds > 0:
            await asyncio.sleep(self.latency_seconds)

        # Filesystem calls run in a worker thread so other attempts keep going
        path = await asyncio.to_thread(self.report_path, item)
        if path is None:
            _logger.warning("replay.report_missing", item_id=item.id, reports_dir=str(self.reports_dir))
            raise NetworkError(f"No canned report for item {item.id}", item_id=item.id)

        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise NetworkError(
                f"Cannot read {path.name}: {e}", item_id=item.id, original_error=e
            ) from e
        text = data.decode("utf-8", errors="replace")
        _logger.debug("replay.report_loaded", item_id=item.id, path=str(path), size=len(text))
        return text
