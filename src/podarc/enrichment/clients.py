"""LLM chat clients used for enrichment.

Each client sends a list of chat messages and returns the reply text.
Transient provider failures are retried with backoff; when the primary
model keeps failing the fallback model is tried once more.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar, NamedTuple

import google.generativeai as genai
from anthropic import AsyncAnthropic
from google.generativeai import GenerativeModel

from podarc.config.schema import LLMConfig
from podarc.enrichment.errors import ProviderError
from podarc.utils.retry import (
    NonRetryableError,
    RetryableError,
    RetryConfig,
    classify_api_error,
    default_config,
    with_retry,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1024
DEFAULT_TEMPERATURE = 0.2


class ChatMessage(NamedTuple):
    role: str
    content: str


class Completion(NamedTuple):
    """Reply text and the model that produced it."""

    model: str
    content: str


class BaseLLMClient(ABC):
    """Provider-neutral chat completion client.

    Subclasses implement ``_request`` for a single model call; retries,
    error classification and model fallback live here.
    """

    PROVIDER: ClassVar[str] = "unknown"

    def __init__(
        self,
        primary_model: str,
        fallback_model: str | None = None,
        timeout_seconds: float = 30.0,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self.primary_model = primary_model
        self.fallback_model = fallback_model
        self.timeout_seconds = timeout_seconds
        self.retry_config = retry_config

    @property
    def models(self) -> list[str]:
        """Models to try, in order."""
        models = [self.primary_model]
        if self.fallback_model and self.fallback_model != self.primary_model:
            models.append(self.fallback_model)
        return models

    async def complete(self, messages: list[ChatMessage]) -> Completion:
        """Send messages and return the first successful reply.

        Args:
            messages: Chat messages (system and user roles)

        Returns:
            Completion with the reply text

        Raises:
            ProviderError: If every model failed
        """
        last_error: ProviderError | None = None
        for model in self.models:
            try:
                content = await self._complete_with_retry(model, messages)
                return Completion(model=model, content=content)
            except ProviderError as e:
                logger.warning(f"{self.PROVIDER} model {model} failed: {e}")
                last_error = e

        assert last_error is not None
        raise last_error

    async def _complete_with_retry(self, model: str, messages: list[ChatMessage]) -> str:
        @with_retry(config=self.retry_config)
        async def attempt() -> str:
            try:
                return await self._request(model, messages)
            except ProviderError:
                raise
            except Exception as e:
                raise classify_api_error(e) from e

        try:
            return await attempt()
        except (RetryableError, NonRetryableError) as e:
            status_code = getattr(e.__cause__, "status_code", None)
            raise ProviderError(
                f"{self.PROVIDER} API error: {e}",
                provider=self.PROVIDER,
                status_code=status_code if isinstance(status_code, int) else None,
            ) from e

    @abstractmethod
    async def _request(self, model: str, messages: list[ChatMessage]) -> str:
        """Make one API call and return the reply text."""
        pass


class ClaudeClient(BaseLLMClient):
    """Client for the Anthropic Messages API."""

    PROVIDER = "claude"

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.client = AsyncAnthropic(api_key=api_key, timeout=self.timeout_seconds)

    async def _request(self, model: str, messages: list[ChatMessage]) -> str:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        request_params: dict[str, Any] = {
            "model": model,
            "max_tokens": DEFAULT_MAX_TOKENS,
            "temperature": DEFAULT_TEMPERATURE,
            "messages": [
                {"role": m.role, "content": m.content} for m in messages if m.role != "system"
            ],
        }
        if system:
            request_params["system"] = system

        response = await self.client.messages.create(**request_params)

        # Claude returns a list of content blocks
        return "".join(block.text for block in response.content if hasattr(block, "text"))


class GeminiClient(BaseLLMClient):
    """Client for Google Gemini models."""

    PROVIDER = "gemini"

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        genai.configure(api_key=api_key)

    async def _request(self, model: str, messages: list[ChatMessage]) -> str:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        generative_model = GenerativeModel(model, system_instruction=system or None)

        # Gemini names the assistant role "model"
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [m.content]}
            for m in messages
            if m.role != "system"
        ]
        response = await generative_model.generate_content_async(
            contents,
            generation_config={
                "temperature": DEFAULT_TEMPERATURE,
                "max_output_tokens": DEFAULT_MAX_TOKENS,
                "response_mime_type": "application/json",
            },
            request_options={"timeout": self.timeout_seconds},
        )
        return response.text


def create_client(config: LLMConfig, api_key: str) -> BaseLLMClient:
    """Build the configured provider's client.

    Args:
        config: LLM configuration
        api_key: Resolved API key

    Returns:
        Client for ``config.provider``
    """
    retry_config = default_config(config.max_attempts)
    client_class = GeminiClient if config.provider == "gemini" else ClaudeClient
    logger.debug(f"Using {client_class.PROVIDER} with model {config.primary_model}")
    return client_class(
        api_key=api_key,
        primary_model=config.primary_model,
        fallback_model=config.fallback_model,
        timeout_seconds=config.timeout_seconds,
        retry_config=retry_config,
    )
