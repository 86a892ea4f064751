"""Analysis backends."""

from __future__ import annotations

from lqa_batch.backends.base import AnalysisBackend
from lqa_batch.backends.http import HttpAnalysisBackend, api_key_from_env
from lqa_batch.backends.replay import ReplayBackend
from lqa_batch.core.config import BackendConfig


def create_backend(config: BackendConfig) -> AnalysisBackend:
    """Build the backend described by ``config``.

    Raises:
        ValueError: The field the backend type needs is missing.
    """
    if config.type == "http":
        if config.endpoint is None:
            raise ValueError("endpoint is required when type='http'")
        return HttpAnalysisBackend(
            config.endpoint,
            api_key=api_key_from_env(config.api_key_env),
            timeout=config.request_timeout_seconds,
            headers=config.headers,
        )
    if config.reports_dir is None:
        raise ValueError("reports_dir is required when type='replay'")
    return ReplayBackend(config.reports_dir, latency_seconds=config.latency_seconds)


__all__ = [
    "AnalysisBackend",
    "HttpAnalysisBackend",
    "ReplayBackend",
    "api_key_from_env",
    "create_backend",
]
