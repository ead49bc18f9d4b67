"""Enrichment-related error classes."""

from podarc.utils.errors import PodarcError


class EnrichmentError(PodarcError):
    """Base error for LLM enrichment failures."""

    pass


class ProviderError(EnrichmentError):
    """Error from LLM provider (API error, rate limit, etc.)."""

    def __init__(self, message: str, provider: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ResponseParseError(EnrichmentError):
    """LLM reply could not be parsed as the expected JSON object."""

    def __init__(self, message: str, content: str = "") -> None:
        super().__init__(message)
        self.content = content
