"""Structured logging infrastructure for LQA Batch.

Provides structured logging using structlog with batch-specific context
such as batch_id, run_id and item_id. Supports console and JSON output,
optionally mirrored to a rotating log file.

Example usage:
    from lqa_batch.core.logging import get_logger, configure_logging, with_context

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("scheduler")

    # Log with auto-context
    logger.info("scheduler.batch_start", total=12)

    # Bind context for a scope
    item_logger = logger.bind(item_id="shot-01")
    item_logger.debug("retry.attempt_start", attempt=1)

    # Use execution context for automatic correlation
    ctx = ExecutionContext(batch_id="nightly-de")
    with with_context(ctx):
        logger.info("scheduler.worker_exit")  # Includes batch_id, run_id
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Field name fragments whose values must never reach a log sink
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "api-key",
    "token",
    "secret",
    "password",
    "credential",
    "bearer",
    "authorization",
})

_current_log_path: Path | None = None


def get_current_log_path() -> Path | None:
    """Get the currently configured log file path, if file logging is on."""
    return _current_log_path


@dataclass(frozen=True)
class ExecutionContext:
    """Immutable context for correlating log entries across a batch run.

    Attributes:
        batch_id: Name of the batch (manifest name or caller label).
        run_id: Unique id per batch run.
        item_id: Item currently being processed, if any.
        component: Component name for the current operation.
    """

    batch_id: str
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    item_id: str | None = None
    component: str = "unknown"

    def with_item(self, item_id: str) -> ExecutionContext:
        """Return a copy of this context scoped to one item."""
        return replace(self, item_id=item_id)

    def with_component(self, component: str) -> ExecutionContext:
        """Return a copy of this context for another component."""
        return replace(self, component=component)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging (None values dropped)."""
        result: dict[str, Any] = {
            "batch_id": self.batch_id,
            "run_id": self.run_id,
            "component": self.component,
        }
        if self.item_id is not None:
            result["item_id"] = self.item_id
        return result


# ContextVar keeps each asyncio task's context isolated
_current_context: ContextVar[ExecutionContext | None] = ContextVar(
    "lqa_batch_context", default=None
)


def get_current_context() -> ExecutionContext | None:
    """Get the current ExecutionContext if set."""
    return _current_context.get()


@contextmanager
def with_context(ctx: ExecutionContext) -> Iterator[ExecutionContext]:
    """Set the ExecutionContext for the duration of a block.

    Args:
        ctx: The ExecutionContext to use for the block.

    Yields:
        The ExecutionContext that was set.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    """Return "[REDACTED]" for sensitive keys, the value otherwise."""
    key_lower = key.lower()
    for pattern in SENSITIVE_PATTERNS:
        if pattern in key_lower:
            return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields (one level deep)."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds an ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that merges the current ExecutionContext.

    Explicitly bound keys take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            if key not in event_dict:
                event_dict[key] = value
    return event_dict


class LqaLogger:
    """Component-bound wrapper around a structlog logger.

    The underlying structlog logger is fetched lazily on every call so that
    loggers created at import time honor a later configure_logging().
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> LqaLogger:
        """Create a new logger with additional bound context."""
        new_logger = LqaLogger.__new__(LqaLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)


def _build_processors(include_timestamps: bool, include_context: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        # Rendering happens per handler, see _attach_renderer
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ])
    return processors


def _attach_renderer(handler: logging.Handler, renderer: Processor) -> logging.Handler:
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    return handler


def _rotating_file_handler(
    file_path: Path,
    max_file_size_mb: int,
    backup_count: int,
) -> RotatingFileHandler:
    global _current_log_path
    file_path.parent.mkdir(parents=True, exist_ok=True)
    _current_log_path = file_path
    return RotatingFileHandler(
        file_path,
        maxBytes=max_file_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8",
    )


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console", "both"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure structured logging.

    Call once at application startup before any logging occurs.

    Sinks by format:
        console: human-readable lines to stderr, or to ``file_path`` if given.
        json: JSON lines to stdout, or to ``file_path`` if given.
        both: human-readable lines to stderr and JSON lines to ``file_path``.

    Args:
        level: Minimum log level to capture.
        format: Output format, see above.
        file_path: Log file path. Required when format="both".
        max_file_size_mb: Maximum log file size before rotation (MB).
        backup_count: Number of rotated log files to keep.
        include_timestamps: Whether to add ISO8601 timestamps.
        include_context: Whether to merge ExecutionContext fields.

    Raises:
        ValueError: If the level or format is unknown, or format="both"
            but file_path is not provided.
    """
    global _current_log_path

    if level not in ("DEBUG", "INFO", "WARNING", "ERROR"):
        raise ValueError(f"Invalid log level: {level}")
    if format not in ("json", "console", "both"):
        raise ValueError(f"Invalid log format: {format}")
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    _current_log_path = None
    handlers: list[logging.Handler] = []

    if format == "console" and file_path is not None:
        handlers.append(_attach_renderer(
            _rotating_file_handler(file_path, max_file_size_mb, backup_count),
            structlog.dev.ConsoleRenderer(colors=False),
        ))
    elif format in ("console", "both"):
        handlers.append(_attach_renderer(
            logging.StreamHandler(sys.stderr),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ))

    if format in ("json", "both"):
        json_handler: logging.Handler
        if file_path is not None:
            json_handler = _rotating_file_handler(file_path, max_file_size_mb, backup_count)
        else:
            json_handler = logging.StreamHandler(sys.stdout)
        handlers.append(_attach_renderer(json_handler, structlog.processors.JSONRenderer()))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        handler.setLevel(log_level)
        root_logger.addHandler(handler)

    # cache_logger_on_first_use=False so import-time loggers follow reconfiguration
    structlog.configure(
        processors=_build_processors(include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> LqaLogger:
    """Get a logger bound to a component name.

    Args:
        component: The component name (e.g., "scheduler", "retry").
        **initial_context: Additional context to bind.

    Returns:
        An LqaLogger bound to the component.
    """
    return LqaLogger(component, **initial_context)


__all__ = [
    "ExecutionContext",
    "LqaLogger",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "get_current_context",
    "get_current_log_path",
    "get_logger",
    "with_context",
]
