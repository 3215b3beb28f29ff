"""Environment-driven settings for cron-workflow.

Everything a host may want to tune without code changes lives here:
the fallback schedule for jobs that declare none, the evaluation
timezone, logging, the local SQLite substrate path and the local host's
retry policy.

All values are read from ``CRON_WORKFLOW_*`` environment variables or a
``.env`` file.

Examples:
    >>> from cron_workflow.core.settings import get_settings
    >>> get_settings().default_schedule
    '*/5 * * * *'

Tags:
    settings, configuration, pydantic, environment, cron-workflow
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SCHEDULE = "*/5 * * * *"


class CronWorkflowSettings(BaseSettings):
    """Settings shared by the engine, the local host and the CLI.

    Fields
    ──────
    default_schedule : Cron expression used when a job declares none
    timezone         : IANA zone cron expressions are evaluated in
    log_level        : Structlog log level
    json_logs        : Force JSON (True) / console (False) / auto (None)
    database_path    : SQLite file backing the local substrate
    max_retries      : Local host retries for retryable instance failures
    retry_base_delay : First backoff delay in seconds
    retry_max_delay  : Backoff cap in seconds
    """

    model_config = SettingsConfigDict(
        env_prefix="CRON_WORKFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Scheduling ───────────────────────────────────────────────
    default_schedule: str = DEFAULT_SCHEDULE
    timezone: str = "UTC"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Local substrate ──────────────────────────────────────────
    database_path: Path = Field(
        default_factory=lambda: Path.home() / ".cron-workflow" / "cron_workflow.db",
        description="SQLite file used by the local step store and instance registry",
    )
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=60.0, ge=0)

    @field_validator("default_schedule")
    @classmethod
    def _strip_schedule(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("default_schedule must not be empty")
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


@lru_cache(maxsize=1)
def get_settings() -> CronWorkflowSettings:
    """Return the process-wide settings (cached)."""
    return CronWorkflowSettings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()


__all__ = [
    "DEFAULT_SCHEDULE",
    "CronWorkflowSettings",
    "get_settings",
    "reset_settings",
]
