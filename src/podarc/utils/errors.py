"""Custom exceptions for podarc."""


class PodarcError(Exception):
    """Base exception for all podarc errors."""

    pass


class ConfigError(PodarcError):
    """Configuration-related errors."""

    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration data."""

    pass


class FeedError(PodarcError):
    """Feed retrieval errors."""

    pass


class FeedParseError(FeedError):
    """RSS feed parsing errors."""

    pass


class NetworkError(FeedError):
    """Network-related errors while talking to the feed host."""

    pass


class StorageError(PodarcError):
    """Artefact read/write failures other than not-found."""

    pass


class IntegrityError(PodarcError):
    """Referential integrity violation between pipeline layers.

    Raised when one layer references a record that another layer does not
    contain, e.g. a programmatic episode without its raw counterpart.
    """

    pass


class CatalogValidationError(PodarcError):
    """The composed catalog violates the schema or integrity contract."""

    def __init__(self, message: str, violations: list | None = None) -> None:
        super().__init__(message)
        self.violations = violations or []
