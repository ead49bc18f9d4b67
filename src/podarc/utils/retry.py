"""Backoff for LLM provider calls and feed downloads.

Failures are sorted into transient ones (rate limits, 5xx, dropped
connections) that are retried with exponential backoff, and permanent
ones (bad keys, malformed requests) that surface on the first attempt.
"""

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from functools import wraps

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = logging.getLogger(__name__)


class RetryableError(Exception):
    """A failure worth trying again."""


class RateLimitError(RetryableError):
    """The provider asked us to slow down (HTTP 429)."""


class TimeoutError(RetryableError):
    """The request did not finish in time."""


class ConnectionError(RetryableError):
    """The host could not be reached or dropped the connection."""


class ServerError(RetryableError):
    """The remote side failed with a 5xx status, 529 overload included."""


class NonRetryableError(Exception):
    """A failure that will repeat no matter how often we ask."""


class AuthenticationError(NonRetryableError):
    """The API key was rejected."""


class InvalidRequestError(NonRetryableError):
    """The request itself was refused with a 4xx status."""


@dataclass(frozen=True)
class RetryConfig:
    """Attempt limit and backoff window.

    Attributes:
        max_attempts: Attempts including the first call
        max_wait_seconds: Upper bound for a single backoff sleep
        min_wait_seconds: First backoff sleep
        jitter: Randomise sleeps up to ``max_wait_seconds``
    """

    max_attempts: int = 3
    max_wait_seconds: float = 10
    min_wait_seconds: float = 1
    jitter: bool = True

    def with_attempts(self, max_attempts: int) -> "RetryConfig":
        return replace(self, max_attempts=max_attempts)


DEFAULT_RETRY_CONFIG = RetryConfig()

# Near-zero sleeps so retry paths stay fast under test
TEST_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    max_wait_seconds=0.1,
    min_wait_seconds=0.01,
    jitter=False,
)

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    RateLimitError,
    TimeoutError,
    ConnectionError,
    ServerError,
)

NETWORK_ERRORS: tuple[type[Exception], ...] = (TimeoutError, ConnectionError)


def default_config(max_attempts: int | None = None) -> RetryConfig:
    """The module default as it stands now, optionally with another attempt limit."""
    if max_attempts is None:
        return DEFAULT_RETRY_CONFIG
    return DEFAULT_RETRY_CONFIG.with_attempts(max_attempts)


def log_retry_attempt(retry_state: RetryCallState) -> None:
    """Warn before tenacity sleeps between attempts."""
    if not (retry_state.outcome and retry_state.outcome.failed):
        return
    error = retry_state.outcome.exception()
    name = getattr(retry_state.fn, "__name__", "call")
    logger.warning(
        f"{name}: attempt {retry_state.attempt_number} failed "
        f"({type(error).__name__}: {error}), backing off"
    )


def _retry_kwargs(active: RetryConfig, retry_on: tuple[type[Exception], ...]) -> dict:
    jitter = active.max_wait_seconds if active.jitter else 0
    return {
        "stop": stop_after_attempt(active.max_attempts),
        "wait": wait_exponential_jitter(
            initial=active.min_wait_seconds, max=active.max_wait_seconds, jitter=jitter
        ),
        "retry": retry_if_exception_type(retry_on),
        "before_sleep": log_retry_attempt,
        "reraise": True,
    }


def with_retry(
    config: RetryConfig | None = None,
    retry_on: tuple[type[Exception], ...] | None = None,
) -> Callable:
    """Retry the decorated function or coroutine function with backoff.

    ``config`` falls back to ``DEFAULT_RETRY_CONFIG`` when the call happens,
    not when the decorator is applied, so the module default can be swapped
    out (the test suite does this).

    Usage:
        @with_retry()
        async def complete(messages):
            ...

        @with_retry(retry_on=NETWORK_ERRORS)
        def fetch_feed(url):
            ...

    Args:
        config: Attempt limit and backoff window
        retry_on: Exception types to retry on (defaults to TRANSIENT_ERRORS)

    Returns:
        Decorator
    """
    retry_on = retry_on or TRANSIENT_ERRORS

    def gave_up(func: Callable, active: RetryConfig, error: Exception) -> None:
        logger.error(
            f"{func.__name__} gave up after at most {active.max_attempts} attempt(s): "
            f"{type(error).__name__}: {error}"
        )

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                active = config or DEFAULT_RETRY_CONFIG
                try:
                    async for attempt in AsyncRetrying(**_retry_kwargs(active, retry_on)):
                        with attempt:
                            result = await func(*args, **kwargs)
                    return result
                except Exception as e:
                    gave_up(func, active, e)
                    raise

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            active = config or DEFAULT_RETRY_CONFIG
            try:
                return Retrying(**_retry_kwargs(active, retry_on))(func, *args, **kwargs)
            except Exception as e:
                gave_up(func, active, e)
                raise

        return wrapper

    return decorator


def with_network_retry(max_attempts: int | None = None) -> Callable:
    """Retry only timeouts and dropped connections.

    Args:
        max_attempts: Attempt limit; the module default applies when omitted

    Returns:
        Decorator
    """
    config = default_config(max_attempts) if max_attempts is not None else None
    return with_retry(config=config, retry_on=NETWORK_ERRORS)


def classify_http_error(status_code: int, error_message: str = "") -> Exception:
    """Map an HTTP status to a retryable or permanent error.

    Args:
        status_code: HTTP status code
        error_message: Detail from the response

    Returns:
        Exception instance to raise
    """
    detail = f"HTTP {status_code}: {error_message}" if error_message else f"HTTP {status_code}"

    if status_code == 429:
        return RateLimitError(f"Rate limit exceeded ({detail})")
    if status_code == 408:
        return TimeoutError(f"Request timed out ({detail})")
    if 500 <= status_code < 600:
        return ServerError(f"Server error ({detail})")
    if status_code in (401, 403):
        return AuthenticationError(f"Authentication failed ({detail})")
    if 400 <= status_code < 500:
        return InvalidRequestError(f"Request rejected ({detail})")
    return NonRetryableError(f"Unexpected status ({detail})")


_MESSAGE_HINTS: tuple[tuple[tuple[str, ...], type[Exception]], ...] = (
    (("rate limit", "too many requests"), RateLimitError),
    (("timeout", "timed out"), TimeoutError),
    (("connection", "network"), ConnectionError),
    (("authentication", "unauthorized", "api key"), AuthenticationError),
)


def classify_api_error(exception: Exception) -> Exception:
    """Map a provider SDK exception to a retryable or permanent error.

    A ``status_code`` attribute decides when the SDK sets one; otherwise
    the message text is matched. Unrecognised errors are permanent.
    """
    status_code = getattr(exception, "status_code", None)
    if isinstance(status_code, int):
        return classify_http_error(status_code, str(exception))

    message = str(exception)
    lowered = message.lower()
    for hints, error_class in _MESSAGE_HINTS:
        if any(hint in lowered for hint in hints):
            return error_class(message)
    return NonRetryableError(message)
