"""Error taxonomy for batch analysis.

Every failure of a single analysis attempt is an ``AnalysisError`` whose
``kind`` decides retry behavior. Caller-level misuse (batch too large,
mutating a finished run) has its own exceptions outside that hierarchy.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Kinds of attempt failure with different retry behavior."""

    NETWORK = "network"
    """Retriable - transport-level failure reaching the analysis service."""

    TIMEOUT = "timeout"
    """Retriable - the attempt deadline elapsed first."""

    SCHEMA = "schema"
    """Retriable - response not parseable as a report."""

    VALIDATION = "validation"
    """Retriable - parseable, but required report sections are missing."""

    CANCELLED = "cancelled"
    """Terminal - batch cancellation observed before the attempt."""

    @property
    def retriable(self) -> bool:
        return self is not ErrorKind.CANCELLED


class ErrorCode(str, Enum):
    """Stable identifiers for log aggregation and programmatic handling."""

    EXECUTION_INTERRUPTED = "E004"
    VALIDATION_MISSING_SECTION = "E209"
    BATCH_LIMIT_EXCEEDED = "E301"
    BACKEND_CONNECTION = "E501"
    BACKEND_RESPONSE = "E503"
    BACKEND_TIMEOUT = "E504"


_KIND_CODES: dict[ErrorKind, ErrorCode] = {
    ErrorKind.NETWORK: ErrorCode.BACKEND_CONNECTION,
    ErrorKind.TIMEOUT: ErrorCode.BACKEND_TIMEOUT,
    ErrorKind.SCHEMA: ErrorCode.BACKEND_RESPONSE,
    ErrorKind.VALIDATION: ErrorCode.VALIDATION_MISSING_SECTION,
    ErrorKind.CANCELLED: ErrorCode.EXECUTION_INTERRUPTED,
}


class LqaError(Exception):
    """Base exception for all lqa_batch errors."""


class AnalysisError(LqaError):
    """One failed analysis attempt (or the final failure of an item).

    Attributes:
        kind: Failure kind; decides whether the attempt is retried.
        item_id: Item the attempt belonged to, when known.
        original_error: Underlying exception, if any.
    """

    kind: ErrorKind = ErrorKind.NETWORK

    def __init__(
        self,
        message: str,
        *,
        item_id: str | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.item_id = item_id
        self.original_error = original_error

    @property
    def error_code(self) -> ErrorCode:
        return _KIND_CODES[self.kind]

    @property
    def retriable(self) -> bool:
        return self.kind.retriable


class NetworkError(AnalysisError):
    """The analysis service could not be reached or returned a transport error."""

    kind = ErrorKind.NETWORK


class AnalysisTimeoutError(AnalysisError):
    """The attempt deadline elapsed before the analysis resolved."""

    kind = ErrorKind.TIMEOUT


class SchemaError(AnalysisError):
    """The response could not be parsed as a structured report."""

    kind = ErrorKind.SCHEMA


class ReportValidationError(AnalysisError):
    """The response parsed, but required report sections are missing."""

    kind = ErrorKind.VALIDATION


class AnalysisCancelledError(AnalysisError):
    """Batch cancellation was observed before the attempt started."""

    kind = ErrorKind.CANCELLED


class BatchLimitError(LqaError):
    """Raised when more items are submitted than the batch cap allows."""

    error_code = ErrorCode.BATCH_LIMIT_EXCEEDED

    def __init__(self, requested: int, limit: int) -> None:
        super().__init__(
            f"Please process at most {limit} items at a time ({requested} submitted)"
        )
        self.requested = requested
        self.limit = limit


class BatchStateError(LqaError):
    """Raised on an illegal batch state transition (e.g. mutating a frozen run)."""
