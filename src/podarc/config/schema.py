"""Configuration schema models using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from podarc.catalog.grouper import SeriesOverride

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
LLMProvider = Literal["claude", "gemini"]


class LLMConfig(BaseModel):
    """LLM enrichment service configuration."""

    provider: LLMProvider = "claude"
    primary_model: str = "claude-sonnet-4-5"
    fallback_model: str | None = "claude-haiku-4-5"
    api_key: str | None = None  # If None, will use environment variable
    max_attempts: int = Field(default=3, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0)
    # Show hosts, excluded from extracted key people
    hosts: list[str] = Field(default_factory=list)


class GroupingConfig(BaseModel):
    """Series grouping tuning."""

    max_gap_days: int = Field(default=14, ge=0)


class PipelineConfig(BaseModel):
    """Global podarc configuration."""

    version: str = "1"
    feed_url: str | None = None
    output_dir: Path = Field(default=Path("."))
    log_level: LogLevel = "INFO"

    llm: LLMConfig = Field(default_factory=LLMConfig)
    grouping: GroupingConfig = Field(default_factory=GroupingConfig)


class SeriesOverrides(BaseModel):
    """Collection of series overrides."""

    overrides: list[SeriesOverride] = Field(default_factory=list)
