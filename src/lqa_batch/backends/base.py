"""Abstract base for analysis backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from lqa_batch.items import AnalysisItem


class AnalysisBackend(ABC):
    """Abstract base class for the "analyze this screenshot pair" capability.

    A backend returns whatever the service produced for one item: raw JSON
    text (possibly fenced), a report mapping, or a ``StructuredReport``.
    Parsing, validation and normalization happen in the attempt executor,
    so backends stay thin transport adapters.

    Failures are raised as ``AnalysisError`` subclasses; any other exception
    is treated by the executor as a transport failure.
    """

    @abstractmethod
    async def analyze(self, item: AnalysisItem) -> Any:
        """Run one analysis for ``item``.

        Args:
            item: The item to analyze.

        Returns:
            The report payload for the parser.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name."""
        ...

    async def close(self) -> None:
        """Release any resources held by the backend."""

    async def __aenter__(self) -> AnalysisBackend:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
