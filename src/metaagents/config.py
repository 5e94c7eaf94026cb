"""Configuration settings for metaagents."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or overrides."""

    model_config = SettingsConfigDict(
        env_prefix="METAAGENTS_", case_sensitive=False, populate_by_name=True
    )

    workspace_dir: str = Field(default=".metaagents")
    log_level: str = Field(default="INFO")
    # None keeps executors unbounded.
    task_timeout_seconds: float | None = Field(default=None, gt=0)
    tester_timeout_seconds: float | None = Field(default=None, gt=0)
    command_timeout_seconds: int = Field(default=600, ge=1)
    handoff_excerpt_chars: int = Field(default=2000, ge=0)
    handoff_reference_section: str = Field(default="Output & Handoff")
    quality_reference_section: str = Field(default="Core Workflow")


DEFAULT_SETTINGS = Settings()
