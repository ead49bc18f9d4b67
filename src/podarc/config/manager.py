"""Configuration manager for loading and saving podarc config."""

import logging
import os
from pathlib import Path

import yaml

from podarc.config.defaults import (
    DEFAULT_PIPELINE_CONFIG,
    DEFAULT_SERIES_OVERRIDES,
    get_default_config_content,
    get_default_overrides_content,
)
from podarc.config.schema import PipelineConfig, SeriesOverrides
from podarc.utils.errors import InvalidConfigError
from podarc.utils.paths import get_config_dir, get_config_file, get_overrides_file

logger = logging.getLogger(__name__)

API_KEY_ENV_VARS = {
    "claude": "ANTHROPIC_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}


class ConfigManager:
    """Manages podarc configuration files."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize the config manager.

        Args:
            config_dir: Optional custom config directory. Defaults to the
                platform user config dir.
        """
        self.config_dir = config_dir or get_config_dir()
        self.config_file = get_config_file(self.config_dir)
        self.overrides_file = get_overrides_file(self.config_dir)

    def load_config(self) -> PipelineConfig:
        """Load and validate pipeline configuration.

        Returns:
            Validated PipelineConfig instance

        Raises:
            InvalidConfigError: If config is invalid
        """
        if not self.config_file.exists():
            self._create_default_config()
            return DEFAULT_PIPELINE_CONFIG.model_copy(deep=True)

        try:
            with open(self.config_file) as f:
                data = yaml.safe_load(f) or {}
            return PipelineConfig(**data)
        except Exception as e:
            raise InvalidConfigError(
                f"Invalid configuration in {self.config_file}: {e}"
            ) from e

    def save_config(self, config: PipelineConfig) -> None:
        """Save pipeline configuration.

        Args:
            config: PipelineConfig instance to save
        """
        data = config.model_dump(mode="json")

        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_file, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def load_overrides(self) -> SeriesOverrides:
        """Load manual series overrides.

        Returns:
            SeriesOverrides instance (empty when the file was just created)

        Raises:
            InvalidConfigError: If the overrides file is invalid
        """
        if not self.overrides_file.exists():
            self._create_default_overrides()
            return DEFAULT_SERIES_OVERRIDES.model_copy(deep=True)

        try:
            with open(self.overrides_file) as f:
                data = yaml.safe_load(f) or {}
            return SeriesOverrides(**data)
        except Exception as e:
            raise InvalidConfigError(
                f"Invalid series overrides in {self.overrides_file}: {e}"
            ) from e

    def resolve_api_key(self, config: PipelineConfig) -> str | None:
        """Return the configured API key, falling back to the provider env var."""
        if config.llm.api_key:
            return config.llm.api_key
        env_var = API_KEY_ENV_VARS[config.llm.provider]
        value = os.environ.get(env_var)
        if not value:
            logger.debug(f"No API key configured and {env_var} is unset")
        return value or None

    def _create_default_config(self) -> None:
        """Create default config.yaml file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(get_default_config_content())

    def _create_default_overrides(self) -> None:
        """Create default series-overrides.yaml file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.overrides_file.write_text(get_default_overrides_content())
