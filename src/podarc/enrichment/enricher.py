"""LLM enrichment of episodes and series.

Results are cached by ``"<id>:<fingerprint>"``, so an item is only sent to
the model again when its content changes or a rerun is forced. Failures
never abort a run: they become ``status: error`` cache entries plus error
ledger entries, and the composer ignores them.
"""

import json
import logging
import math
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import regex

from podarc.catalog.models import (
    ErrorLedgerEntry,
    LlmEpisodeCacheEntry,
    LlmSeriesCacheEntry,
    ProgrammaticEpisode,
    ProgrammaticSeries,
    YearConfidence,
    cache_key,
)
from podarc.enrichment.clients import BaseLLMClient, ChatMessage
from podarc.enrichment.errors import ProviderError, ResponseParseError
from podarc.enrichment.prompts import (
    EPISODE_PROMPT_VERSION,
    SERIES_PROMPT_VERSION,
    build_episode_messages,
    build_series_messages,
    with_json_reminder,
)
from podarc.utils.dates import parse_iso, utc_now_iso

logger = logging.getLogger(__name__)

EPISODE_STAGE = "llm:episodes"
SERIES_STAGE = "llm:series"

MAX_LIST_ITEMS = 12
MAX_THEMES = 8
MIN_YEAR = -9999
MAX_YEAR = 9999
MAX_JSON_ATTEMPTS = 3

BUDGET_MESSAGE = "Skipped LLM enrichment due to max call limit"
NO_CLIENT_MESSAGE = "Skipped LLM enrichment: no LLM client configured"

# Rough prompt-size estimates for plan mode
CHARS_PER_TOKEN = 3.5
TOKENS_PER_SERIES_SUMMARY = 400

YEAR_CONFIDENCE_VALUES = ("high", "medium", "low", "unknown")
CODE_FENCE = regex.compile(r"^```(?:json)?\s*|\s*```$", regex.IGNORECASE)
NON_THEME_CHARS = regex.compile(r"[^a-z0-9]+")

EntryT = TypeVar("EntryT", LlmEpisodeCacheEntry, LlmSeriesCacheEntry)


@dataclass
class PlannedCall:
    """An LLM call that a real run would make."""

    kind: str
    item_id: str
    cache_key: str
    approx_tokens: int


@dataclass
class EnrichmentResult(Generic[EntryT]):
    """Updated cache plus everything recorded along the way."""

    cache: dict[str, EntryT]
    errors: list[ErrorLedgerEntry] = field(default_factory=list)
    planned: list[PlannedCall] = field(default_factory=list)
    calls_made: int = 0


# Reply sanitizers


def sanitize_strings(values: Any, max_items: int = MAX_LIST_ITEMS) -> list[str]:
    """Keep trimmed, non-empty, unique strings (first occurrence wins)."""
    if not isinstance(values, list):
        return []
    result: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        trimmed = value.strip()
        if trimmed and trimmed not in result:
            result.append(trimmed)
        if len(result) >= max_items:
            break
    return result


def to_theme(value: str) -> str | None:
    """Kebab-case a theme label; None when nothing is left."""
    normalised = NON_THEME_CHARS.sub("-", value.lower()).strip("-")
    return normalised or None


def sanitize_themes(values: Any, max_items: int = MAX_THEMES) -> list[str]:
    """Kebab-case, dedupe and cap theme labels."""
    if not isinstance(values, list):
        return []
    result: list[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        theme = to_theme(value)
        if theme and theme not in result:
            result.append(theme)
        if len(result) >= max_items:
            break
    return result


def ensure_year(value: Any) -> int | None:
    """Return an integer year in range, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and MIN_YEAR <= value <= MAX_YEAR:
        return value
    return None


def normalise_year_confidence(value: Any) -> YearConfidence:
    if isinstance(value, str) and value.strip().lower() in YEAR_CONFIDENCE_VALUES:
        return value.strip().lower()  # type: ignore[return-value]
    return "unknown"


def parse_json_reply(content: str) -> dict[str, Any]:
    """Parse a model reply into a JSON object.

    Code fences around the object are tolerated.

    Raises:
        ResponseParseError: If the reply is not a JSON object
    """
    stripped = CODE_FENCE.sub("", content.strip()).strip()
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Invalid JSON in LLM reply: {e}", content=content) from e
    if not isinstance(data, dict):
        raise ResponseParseError("LLM reply is not a JSON object", content=content)
    return data


def estimate_episode_tokens(episode: ProgrammaticEpisode) -> int:
    return math.ceil(
        (len(episode.clean_description_text) + len(episode.clean_title)) / CHARS_PER_TOKEN
    )


def estimate_series_tokens(series: ProgrammaticSeries) -> int:
    return len(series.derived.episode_summaries) * TOKENS_PER_SERIES_SUMMARY


class Enricher:
    """Runs episode and series enrichment against an LLM client.

    Example:
        >>> enricher = Enricher(client, hosts=["Tom Holland"])
        >>> result = await enricher.enrich_episodes(episodes, cache)
    """

    def __init__(
        self,
        client: BaseLLMClient | None,
        hosts: list[str] | None = None,
        max_json_attempts: int = MAX_JSON_ATTEMPTS,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        """Initialize the enricher.

        Args:
            client: LLM client; None allows plan mode and cache-only runs
            hosts: Names excluded from key people
            max_json_attempts: Attempts per item when replies are not JSON
            clock: Timestamp source for cache entries
        """
        self.client = client
        self.hosts = hosts or []
        self.max_json_attempts = max_json_attempts
        self.clock = clock

    async def _ask(self, messages: list[ChatMessage]) -> tuple[str, dict[str, Any]]:
        """Ask the model, re-asking with a JSON-only reminder on bad replies.

        Returns:
            (model, parsed reply)

        Raises:
            ProviderError: If the request itself fails
            ResponseParseError: If no attempt produced a JSON object
        """
        assert self.client is not None
        attempt_messages = messages
        last_error: ResponseParseError | None = None

        for attempt in range(1, self.max_json_attempts + 1):
            completion = await self.client.complete(attempt_messages)
            try:
                return completion.model, parse_json_reply(completion.content)
            except ResponseParseError as e:
                logger.warning(f"Unparseable LLM reply (attempt {attempt}/{self.max_json_attempts})")
                last_error = e
                attempt_messages = with_json_reminder(messages, completion.content)

        assert last_error is not None
        raise last_error

    @property
    def _model_name(self) -> str:
        return self.client.primary_model if self.client else "none"

    def _skip_entry(
        self, stage: str, item_id: str, key: str, message: str
    ) -> ErrorLedgerEntry:
        return ErrorLedgerEntry.create(stage, item_id, "info", message, {"cacheKey": key})

    async def enrich_episodes(
        self,
        episodes: Mapping[str, ProgrammaticEpisode],
        cache: Mapping[str, LlmEpisodeCacheEntry],
        force_ids: Collection[str] = (),
        force_all: bool = False,
        plan: bool = False,
        max_calls: int | None = None,
    ) -> EnrichmentResult[LlmEpisodeCacheEntry]:
        """Fill the episode cache for every episode without a current ok entry.

        Episodes are processed in (published_at, episode_id) order.

        Args:
            episodes: Programmatic episodes by id
            cache: Existing cache by key
            force_ids: Episode ids whose current entry is discarded and redone
            force_all: Redo every episode
            plan: Only list the calls that would be made
            max_calls: Stop issuing calls after this many items

        Returns:
            EnrichmentResult with the updated cache
        """
        # Older entries may predate the current theme normalisation
        next_cache = {
            key: entry.model_copy(update={"key_themes": sanitize_themes(entry.key_themes)})
            for key, entry in cache.items()
        }
        result: EnrichmentResult[LlmEpisodeCacheEntry] = EnrichmentResult(cache=next_cache)

        ordered = sorted(
            episodes.values(), key=lambda e: (parse_iso(e.published_at), e.episode_id)
        )
        for episode in ordered:
            key = cache_key(episode.episode_id, episode.fingerprint)
            if force_all or episode.episode_id in force_ids:
                next_cache.pop(key, None)
            elif key in next_cache and next_cache[key].status == "ok":
                continue

            if plan:
                result.planned.append(
                    PlannedCall("episode", episode.episode_id, key, estimate_episode_tokens(episode))
                )
                continue

            if self.client is None:
                result.errors.append(
                    self._skip_entry(
                        EPISODE_STAGE, episode.episode_id, key, NO_CLIENT_MESSAGE
                    )
                )
                continue

            if max_calls is not None and result.calls_made >= max_calls:
                result.errors.append(
                    self._skip_entry(
                        EPISODE_STAGE, episode.episode_id, key, BUDGET_MESSAGE
                    )
                )
                continue

            result.calls_made += 1
            next_cache[key] = await self._enrich_episode(episode, key, result.errors)

        logger.info(f"Episode enrichment made {result.calls_made} LLM call(s)")
        return result

    async def _enrich_episode(
        self, episode: ProgrammaticEpisode, key: str, errors: list[ErrorLedgerEntry]
    ) -> LlmEpisodeCacheEntry:
        base = {
            "episode_id": episode.episode_id,
            "fingerprint": episode.fingerprint,
            "prompt_version": EPISODE_PROMPT_VERSION,
            "created_at": self.clock(),
        }

        try:
            model, reply = await self._ask(build_episode_messages(episode, self.hosts))
        except ProviderError as e:
            errors.append(
                ErrorLedgerEntry.create(
                    EPISODE_STAGE, episode.episode_id, "error", "LLM request failed",
                    {"cacheKey": key, "error": str(e)},
                )
            )
            return LlmEpisodeCacheEntry(**base, model=self._model_name, status="error", notes=str(e))
        except ResponseParseError as e:
            errors.append(
                ErrorLedgerEntry.create(
                    EPISODE_STAGE, episode.episode_id, "error", "Failed to parse LLM response",
                    {"cacheKey": key, "error": str(e), "content": e.content},
                )
            )
            return LlmEpisodeCacheEntry(**base, model=self._model_name, status="error", notes=str(e))

        return LlmEpisodeCacheEntry(
            **base,
            model=model,
            status="ok",
            key_people=sanitize_strings(reply.get("keyPeople")),
            key_places=sanitize_strings(reply.get("keyPlaces")),
            key_themes=sanitize_themes(reply.get("keyThemes")),
            year_from=ensure_year(reply.get("yearFrom")),
            year_to=ensure_year(reply.get("yearTo")),
            year_confidence=normalise_year_confidence(reply.get("yearConfidence")),
        )

    async def enrich_series(
        self,
        series: Mapping[str, ProgrammaticSeries],
        cache: Mapping[str, LlmSeriesCacheEntry],
        force_ids: Collection[str] = (),
        force_all: bool = False,
        plan: bool = False,
        max_calls: int | None = None,
    ) -> EnrichmentResult[LlmSeriesCacheEntry]:
        """Fill the series cache for every series without a current ok entry.

        Series are processed in id order; arguments mirror
        ``enrich_episodes``. Series without episode summaries are skipped
        with a warning.
        """
        next_cache = dict(cache)
        result: EnrichmentResult[LlmSeriesCacheEntry] = EnrichmentResult(cache=next_cache)

        for entry in sorted(series.values(), key=lambda s: s.series_id):
            key = cache_key(entry.series_id, entry.fingerprint)
            if force_all or entry.series_id in force_ids:
                next_cache.pop(key, None)
            elif key in next_cache and next_cache[key].status == "ok":
                continue

            if not entry.derived.episode_summaries:
                result.errors.append(
                    ErrorLedgerEntry.create(
                        SERIES_STAGE, entry.series_id, "warn",
                        "Series lacks episode summaries; skipping enrichment",
                        {"cacheKey": key},
                    )
                )
                continue

            if plan:
                result.planned.append(
                    PlannedCall("series", entry.series_id, key, estimate_series_tokens(entry))
                )
                continue

            if self.client is None:
                result.errors.append(
                    self._skip_entry(
                        SERIES_STAGE, entry.series_id, key, NO_CLIENT_MESSAGE
                    )
                )
                continue

            if max_calls is not None and result.calls_made >= max_calls:
                result.errors.append(
                    self._skip_entry(
                        SERIES_STAGE, entry.series_id, key, BUDGET_MESSAGE
                    )
                )
                continue

            result.calls_made += 1
            next_cache[key] = await self._enrich_series(entry, key, result.errors)

        logger.info(f"Series enrichment made {result.calls_made} LLM call(s)")
        return result

    async def _enrich_series(
        self, series: ProgrammaticSeries, key: str, errors: list[ErrorLedgerEntry]
    ) -> LlmSeriesCacheEntry:
        base = {
            "series_id": series.series_id,
            "fingerprint": series.fingerprint,
            "prompt_version": SERIES_PROMPT_VERSION,
            "created_at": self.clock(),
            "year_from": series.year_from,
            "year_to": series.year_to,
            "year_confidence": series.year_confidence,
        }

        try:
            model, reply = await self._ask(build_series_messages(series))
        except ProviderError as e:
            errors.append(
                ErrorLedgerEntry.create(
                    SERIES_STAGE, series.series_id, "error", "LLM request failed",
                    {"cacheKey": key, "error": str(e)},
                )
            )
            return LlmSeriesCacheEntry(**base, model=self._model_name, status="error", notes=str(e))
        except ResponseParseError as e:
            errors.append(
                ErrorLedgerEntry.create(
                    SERIES_STAGE, series.series_id, "error", "Failed to parse LLM response",
                    {"cacheKey": key, "error": str(e), "content": e.content},
                )
            )
            return LlmSeriesCacheEntry(
                **base,
                model=self._model_name,
                status="error",
                notes=str(e),
                series_title=series.series_title_fallback,
            )

        title = reply.get("seriesTitle")
        summary = reply.get("narrativeSummary")
        return LlmSeriesCacheEntry(
            **base,
            model=model,
            status="ok",
            series_title=title.strip() if isinstance(title, str) and title.strip() else series.series_title_fallback,
            narrative_summary=summary.strip() if isinstance(summary, str) and summary.strip() else None,
            tonal_descriptors=(
                sanitize_strings(reply["tonalDescriptors"]) if "tonalDescriptors" in reply else None
            ),
        )
