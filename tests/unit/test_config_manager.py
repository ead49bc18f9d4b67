"""Tests for ConfigManager."""

from pathlib import Path

import pytest
import yaml

from podarc.config.manager import ConfigManager
from podarc.config.schema import PipelineConfig
from podarc.utils.errors import InvalidConfigError


class TestConfigManager:
    """Tests for ConfigManager class."""

    def test_init_with_custom_dir(self, tmp_path: Path) -> None:
        """Test ConfigManager initialization with custom directory."""
        manager = ConfigManager(config_dir=tmp_path)
        assert manager.config_dir == tmp_path
        assert manager.config_file == tmp_path / "config.yaml"
        assert manager.overrides_file == tmp_path / "series-overrides.yaml"

    def test_load_config_creates_default_if_missing(self, tmp_path: Path) -> None:
        """Test that load_config creates default config if file doesn't exist."""
        manager = ConfigManager(config_dir=tmp_path)
        config = manager.load_config()

        assert isinstance(config, PipelineConfig)
        assert config.llm.provider == "claude"
        assert config.grouping.max_gap_days == 14
        assert manager.config_file.exists()

    def test_default_file_is_loadable(self, tmp_path: Path) -> None:
        """Test that the generated config file parses back to the defaults."""
        manager = ConfigManager(config_dir=tmp_path)
        manager.load_config()

        reloaded = manager.load_config()

        assert reloaded == PipelineConfig()

    def test_load_config_from_existing_file(self, tmp_path: Path, sample_config_dict: dict) -> None:
        """Test loading config from existing file."""
        with open(tmp_path / "config.yaml", "w") as f:
            yaml.safe_dump(sample_config_dict, f)

        config = ConfigManager(config_dir=tmp_path).load_config()

        assert config.feed_url == "https://example.com/feed.xml"
        assert config.output_dir == tmp_path / "catalog"
        assert config.llm.primary_model == "claude-sonnet-4-5"

    def test_invalid_config_raises(self, tmp_path: Path) -> None:
        """Test that invalid values raise InvalidConfigError."""
        (tmp_path / "config.yaml").write_text("llm:\n  provider: openai\n")

        with pytest.raises(InvalidConfigError, match="Invalid configuration"):
            ConfigManager(config_dir=tmp_path).load_config()

    def test_negative_gap_rejected(self, tmp_path: Path) -> None:
        """Test grouping validation."""
        (tmp_path / "config.yaml").write_text("grouping:\n  max_gap_days: -1\n")

        with pytest.raises(InvalidConfigError):
            ConfigManager(config_dir=tmp_path).load_config()

    def test_save_config(self, tmp_path: Path) -> None:
        """Test saving configuration."""
        manager = ConfigManager(config_dir=tmp_path)
        config = PipelineConfig(log_level="DEBUG", feed_url="https://example.com/rss")

        manager.save_config(config)

        with open(manager.config_file) as f:
            data = yaml.safe_load(f)
        assert data["log_level"] == "DEBUG"
        assert manager.load_config() == config


class TestSeriesOverrides:
    """Tests for series-overrides.yaml handling."""

    def test_creates_default_if_missing(self, tmp_path: Path) -> None:
        """Test that an empty overrides file is created."""
        manager = ConfigManager(config_dir=tmp_path)

        overrides = manager.load_overrides()

        assert overrides.overrides == []
        assert manager.overrides_file.exists()
        assert manager.load_overrides().overrides == []

    def test_loads_overrides(self, tmp_path: Path) -> None:
        """Test parsing override entries."""
        (tmp_path / "series-overrides.yaml").write_text(
            "overrides:\n"
            "  - series_id: nelson-20250901\n"
            "    episode_ids: [nelson-1, nelson-2]\n"
            "    series_key_raw: Nelson\n"
        )

        overrides = ConfigManager(config_dir=tmp_path).load_overrides()

        assert overrides.overrides[0].series_id == "nelson-20250901"
        assert overrides.overrides[0].episode_ids == ["nelson-1", "nelson-2"]

    def test_invalid_overrides(self, tmp_path: Path) -> None:
        """Test that malformed entries raise InvalidConfigError."""
        (tmp_path / "series-overrides.yaml").write_text("overrides:\n  - episode_ids: [a]\n")

        with pytest.raises(InvalidConfigError, match="Invalid series overrides"):
            ConfigManager(config_dir=tmp_path).load_overrides()


class TestResolveApiKey:
    """Tests for API key resolution."""

    def test_config_value_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that an explicit key beats the environment."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
        config = PipelineConfig(llm={"api_key": "config-key"})

        assert ConfigManager(config_dir=tmp_path).resolve_api_key(config) == "config-key"

    def test_provider_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the provider-specific environment variable."""
        monkeypatch.setenv("GOOGLE_API_KEY", "gemini-key")
        config = PipelineConfig(llm={"provider": "gemini"})

        assert ConfigManager(config_dir=tmp_path).resolve_api_key(config) == "gemini-key"

    def test_missing(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that no key resolves to None."""
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        assert ConfigManager(config_dir=tmp_path).resolve_api_key(PipelineConfig()) is None
