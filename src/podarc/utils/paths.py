"""Path helpers for podarc configuration files."""

from pathlib import Path

import platformdirs

APP_NAME = "podarc"


def get_config_dir() -> Path:
    """Return the per-user configuration directory."""
    return Path(platformdirs.user_config_dir(APP_NAME))


def get_config_file(config_dir: Path | None = None) -> Path:
    """Return the path of config.yaml."""
    return (config_dir or get_config_dir()) / "config.yaml"


def get_overrides_file(config_dir: Path | None = None) -> Path:
    """Return the path of series-overrides.yaml."""
    return (config_dir or get_config_dir()) / "series-overrides.yaml"
