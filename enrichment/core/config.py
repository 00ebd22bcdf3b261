"""
Application configuration models and helpers.

Centralizes settings management so every analysis strategy, the CLI and the
tests share a consistent configuration surface.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from enrichment.schemas.cost import PricingTable


class _EnvSettings(BaseSettings):
    """Base class reading values from the process environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class InferenceSettings(_EnvSettings):
    """Configuration for the external inference provider."""

    api_key: str = Field(..., validation_alias="OPENAI_API_KEY")
    base_url: Optional[str] = Field(
        None,
        validation_alias="OPENAI_BASE_URL",
        description="Optional override for OpenAI-compatible endpoints.",
    )
    model: str = Field("gpt-4o-mini", validation_alias="INFERENCE_MODEL")
    timeout_seconds: float = Field(60.0, validation_alias="INFERENCE_TIMEOUT_SECONDS")
    max_retries: int = Field(2, validation_alias="INFERENCE_MAX_RETRIES")


class PricingSettings(_EnvSettings):
    """Per-1000-token rates for standard and batch-discounted calls."""

    standard_input_rate: float = Field(
        0.000150, validation_alias="PRICING_STANDARD_INPUT_RATE"
    )
    standard_output_rate: float = Field(
        0.000600, validation_alias="PRICING_STANDARD_OUTPUT_RATE"
    )
    batch_input_rate: float = Field(0.000075, validation_alias="PRICING_BATCH_INPUT_RATE")
    batch_output_rate: float = Field(
        0.000300, validation_alias="PRICING_BATCH_OUTPUT_RATE"
    )

    def standard_table(self) -> PricingTable:
        return PricingTable(
            name="standard",
            input_rate=self.standard_input_rate,
            output_rate=self.standard_output_rate,
        )

    def batch_table(self) -> PricingTable:
        return PricingTable(
            name="batch",
            input_rate=self.batch_input_rate,
            output_rate=self.batch_output_rate,
        )


class ConcurrencySettings(_EnvSettings):
    """Settings for the bounded-concurrency analyzer."""

    concurrency: int = Field(10, ge=1, validation_alias="ANALYSIS_CONCURRENCY")
    inter_batch_delay_ms: int = Field(
        100, ge=0, validation_alias="ANALYSIS_INTER_BATCH_DELAY_MS"
    )


class BatchSettings(_EnvSettings):
    """Settings for submitting and polling provider batch jobs."""

    poll_interval_seconds: float = Field(
        30.0, ge=0, validation_alias="BATCH_POLL_INTERVAL_SECONDS"
    )
    timeout_seconds: float = Field(
        24 * 60 * 60, gt=0, validation_alias="BATCH_TIMEOUT_SECONDS"
    )
    completion_window: str = Field("24h", validation_alias="BATCH_COMPLETION_WINDOW")
    endpoint: str = Field("/v1/chat/completions", validation_alias="BATCH_ENDPOINT")
    work_dir: Optional[str] = Field(
        "temp/batch_jobs",
        validation_alias="BATCH_WORK_DIR",
        description="Directory for local copies of submitted and downloaded JSONL.",
    )
    cancel_on_abandon: bool = Field(True, validation_alias="BATCH_CANCEL_ON_ABANDON")

    @field_validator("work_dir", mode="before")
    @classmethod
    def _blank_disables(cls, value: Optional[str]) -> Optional[str]:
        """An empty value turns local artifact copies off."""
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ImageSettings(_EnvSettings):
    """Settings for resolving image references."""

    fetch_remote: bool = Field(False, validation_alias="IMAGE_FETCH_REMOTE")
    max_bytes: int = Field(20 * 1024 * 1024, gt=0, validation_alias="IMAGE_MAX_BYTES")
    fetch_timeout_seconds: float = Field(
        30.0, validation_alias="IMAGE_FETCH_TIMEOUT_SECONDS"
    )


class LoggingSettings(_EnvSettings):
    """Log level alone, readable without the provider credentials."""

    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")


class AppSettings(_EnvSettings):
    """Root settings object for the analysis orchestrator."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    strategy: str = Field("sequential", validation_alias="ANALYSIS_STRATEGY")
    variant: str = Field("fashion_attributes", validation_alias="ANALYSIS_VARIANT")
    inference: InferenceSettings = Field(default_factory=InferenceSettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "BatchSettings",
    "ConcurrencySettings",
    "ImageSettings",
    "InferenceSettings",
    "LoggingSettings",
    "PricingSettings",
    "get_settings",
]
