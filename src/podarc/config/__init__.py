"""Configuration management for podarc."""

from podarc.config.manager import ConfigManager
from podarc.config.schema import (
    GroupingConfig,
    LLMConfig,
    PipelineConfig,
    SeriesOverrides,
)

__all__ = [
    "ConfigManager",
    "PipelineConfig",
    "LLMConfig",
    "GroupingConfig",
    "SeriesOverrides",
]
