"""LLM enrichment: provider clients, prompts and the cache-aware enricher."""

from podarc.enrichment.clients import (
    BaseLLMClient,
    ChatMessage,
    ClaudeClient,
    Completion,
    GeminiClient,
    create_client,
)
from podarc.enrichment.enricher import EnrichmentResult, Enricher, PlannedCall
from podarc.enrichment.errors import EnrichmentError, ProviderError, ResponseParseError

__all__ = [
    "BaseLLMClient",
    "ChatMessage",
    "ClaudeClient",
    "Completion",
    "EnrichmentError",
    "EnrichmentResult",
    "Enricher",
    "GeminiClient",
    "PlannedCall",
    "ProviderError",
    "ResponseParseError",
    "create_client",
]
