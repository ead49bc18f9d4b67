"""Utility functions and helpers for podarc."""

from podarc.utils.errors import (
    CatalogValidationError,
    ConfigError,
    FeedError,
    FeedParseError,
    IntegrityError,
    InvalidConfigError,
    NetworkError,
    PodarcError,
    StorageError,
)
from podarc.utils.paths import (
    get_config_dir,
    get_config_file,
    get_overrides_file,
)

__all__ = [
    # Errors
    "PodarcError",
    "ConfigError",
    "InvalidConfigError",
    "FeedError",
    "FeedParseError",
    "NetworkError",
    "StorageError",
    "IntegrityError",
    "CatalogValidationError",
    # Paths
    "get_config_dir",
    "get_config_file",
    "get_overrides_file",
]
