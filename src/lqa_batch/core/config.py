"""Configuration models for LQA Batch.

Pydantic models for the YAML run manifest consumed by the CLI and for the
tunables threaded into the scheduler (concurrency width, retry budget,
attempt deadline, batch cap).
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator

from lqa_batch.items import AnalysisItem, ItemStatus


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level to capture",
    )
    format: Literal["json", "console", "both"] = Field(
        default="console",
        description="Output format: json for structured, console for human-readable, "
        "both for console to stderr and JSON to file",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path for log file output (required if format='both')",
    )
    max_file_size_mb: int = Field(default=50, gt=0, le=1000)
    backup_count: int = Field(default=5, ge=0, le=100)
    include_timestamps: bool = Field(default=True)
    include_context: bool = Field(
        default=True,
        description="Include bound context (batch_id, item_id) in log entries",
    )

    @model_validator(mode="after")
    def _check_file_path_required(self) -> LogConfig:
        if self.format == "both" and self.file_path is None:
            raise ValueError(f"file_path is required when format='{self.format}'")
        return self


class BatchConfig(BaseModel):
    """Tunables for one batch run."""

    concurrency: int = Field(default=5, ge=1, description="Number of concurrent workers")
    retry_budget: int = Field(
        default=2,
        ge=0,
        description="Additional attempts per item after the first",
    )
    deadline_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-attempt deadline; each retry gets a fresh window",
    )
    max_batch_items: int = Field(
        default=100,
        ge=1,
        description="Largest number of items accepted in one run",
    )
    retry_delay_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Pause before the first retry (0 retries immediately)",
    )
    retry_backoff_multiplier: float = Field(
        default=2.0,
        ge=1,
        description="Multiplier applied to the pause after each retry",
    )

    def retry_delay_for(self, retry_number: int) -> float:
        """Pause before retry ``retry_number`` (1-based)."""
        if self.retry_delay_seconds == 0:
            return 0.0
        return self.retry_delay_seconds * self.retry_backoff_multiplier ** (retry_number - 1)


class BackendConfig(BaseModel):
    """Which analysis capability to use and how to reach it."""

    type: Literal["replay", "http"] = Field(default="replay")
    reports_dir: Path | None = Field(
        default=None,
        description="Directory of canned <item id>.json reports (replay backend)",
    )
    latency_seconds: float = Field(default=0.0, ge=0, description="Simulated latency (replay)")
    endpoint: str | None = Field(default=None, description="Analysis endpoint URL (http)")
    api_key_env: str | None = Field(
        default=None,
        description="Environment variable holding the bearer token (http)",
    )
    request_timeout_seconds: float = Field(default=60.0, gt=0)
    headers: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_type_fields(self) -> BackendConfig:
        if self.type == "replay" and self.reports_dir is None:
            raise ValueError("reports_dir is required when type='replay'")
        if self.type == "http" and not self.endpoint:
            raise ValueError("endpoint is required when type='http'")
        return self


class ItemSpec(BaseModel):
    """One screenshot pair listed in a run manifest."""

    id: str = Field(min_length=1)
    name: str | None = None
    target_locale: str = Field(default="de-DE")
    source: str = Field(default="", description="Source-language input (path or URL)")
    target: str = Field(default="", description="Target-language input (path or URL)")
    status: ItemStatus = ItemStatus.PENDING

    def to_item(self) -> AnalysisItem:
        return AnalysisItem(
            id=self.id,
            name=self.name or self.id,
            target_locale=self.target_locale,
            source=self.source,
            target=self.target,
            status=self.status,
        )


class RunConfig(BaseModel):
    """A complete run manifest."""

    name: str = Field(default="lqa-batch")
    batch: BatchConfig = Field(default_factory=BatchConfig)
    backend: BackendConfig
    logging: LogConfig = Field(default_factory=LogConfig)
    items: list[ItemSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_ids(self) -> RunConfig:
        seen: set[str] = set()
        for spec in self.items:
            if spec.id in seen:
                raise ValueError(f"Duplicate item id: {spec.id}")
            seen.add(spec.id)
        return self

    @classmethod
    def from_yaml(cls, path: Path) -> RunConfig:
        """Load a manifest from a YAML file.

        A relative ``backend.reports_dir`` or ``logging.file_path`` resolves
        against the manifest's directory.
        """
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        config = cls.model_validate(data or {})
        reports_dir = config.backend.reports_dir
        if reports_dir is not None and not reports_dir.is_absolute():
            config.backend.reports_dir = (path.parent / reports_dir).resolve()
        log_path = config.logging.file_path
        if log_path is not None and not log_path.is_absolute():
            config.logging.file_path = (path.parent / log_path).resolve()
        return config

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> RunConfig:
        """Load a manifest from a YAML string."""
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data or {})
