"""Merge raw, programmatic and LLM layers into public records."""

import logging
from collections.abc import Mapping
from typing import NamedTuple

from podarc.catalog.models import (
    FAR_FUTURE_SORT_KEY,
    LlmEpisodeCacheEntry,
    LlmSeriesCacheEntry,
    ProgrammaticEpisode,
    ProgrammaticSeries,
    PublicEpisode,
    PublicSeries,
    cache_key,
    normalise_year_range,
)
from podarc.feeds.models import RawEpisode
from podarc.utils.dates import parse_iso
from podarc.utils.errors import IntegrityError

logger = logging.getLogger(__name__)


class ComposedCatalog(NamedTuple):
    """Public records, sorted, without slugs."""

    episodes: list[PublicEpisode]
    series: list[PublicSeries]


def valid_episode_entry(
    episode: ProgrammaticEpisode, cache: Mapping[str, LlmEpisodeCacheEntry]
) -> LlmEpisodeCacheEntry | None:
    """Return the ``ok`` cache entry for the episode's current fingerprint."""
    entry = cache.get(cache_key(episode.episode_id, episode.fingerprint))
    if entry is None or entry.status != "ok":
        return None
    return entry


def valid_series_entry(
    series: ProgrammaticSeries, cache: Mapping[str, LlmSeriesCacheEntry]
) -> LlmSeriesCacheEntry | None:
    """Return the ``ok`` cache entry for the series' current fingerprint."""
    entry = cache.get(cache_key(series.series_id, series.fingerprint))
    if entry is None or entry.status != "ok":
        return None
    return entry


def apply_episode_year_spans(
    episodes: Mapping[str, ProgrammaticEpisode],
    cache: Mapping[str, LlmEpisodeCacheEntry],
) -> dict[str, ProgrammaticEpisode]:
    """Copy year spans from valid cache entries onto programmatic episodes.

    Returns:
        Updated copies keyed by episode id
    """
    updated: dict[str, ProgrammaticEpisode] = {}
    for episode_id, episode in episodes.items():
        entry = valid_episode_entry(episode, cache)
        if entry is not None:
            year_from, year_to = normalise_year_range(entry.year_from, entry.year_to)
            confidence = entry.year_confidence
        else:
            year_from, year_to = normalise_year_range(episode.year_from, episode.year_to)
            confidence = episode.year_confidence or "unknown"
        updated[episode_id] = episode.model_copy(
            update={"year_from": year_from, "year_to": year_to, "year_confidence": confidence}
        )
    return updated


def _first(primary, fallback):
    return primary if primary is not None else fallback


def compose_episode(
    episode: ProgrammaticEpisode,
    raw: RawEpisode,
    llm: LlmEpisodeCacheEntry | None,
) -> PublicEpisode:
    """Build one public episode from its three layers."""
    year_from, year_to = normalise_year_range(
        _first(llm.year_from if llm else None, episode.year_from),
        _first(llm.year_to if llm else None, episode.year_to),
    )

    return PublicEpisode(
        id=episode.episode_id,
        episode_id=episode.episode_id,
        title=raw.title,
        published_at=raw.published_at,
        description=raw.description,
        audio_url=raw.audio_url,
        rss_last_seen_at=raw.rss_last_seen_at,
        itunes_episode=raw.source.itunes_episode,
        clean_title=episode.clean_title,
        clean_description_markdown=episode.clean_description_markdown,
        clean_description_text=episode.clean_description_text,
        description_blocks=list(episode.description_blocks),
        credits={role: list(names) for role, names in episode.credits.items()},
        fingerprint=episode.fingerprint,
        cleanup_version=episode.cleanup_version,
        part=episode.part,
        series_id=episode.series_id,
        series_key=episode.series_key,
        series_key_raw=episode.series_key_raw,
        series_grouping_confidence=episode.series_grouping_confidence,
        key_people=list(llm.key_people) if llm else [],
        key_places=list(llm.key_places) if llm else [],
        key_themes=list(llm.key_themes) if llm else [],
        year_from=year_from,
        year_to=year_to,
        year_confidence=llm.year_confidence if llm else (episode.year_confidence or "unknown"),
    )


def compose_series(series: ProgrammaticSeries, llm: LlmSeriesCacheEntry | None) -> PublicSeries:
    """Build one public series from its programmatic record and cache entry."""
    year_from, year_to = normalise_year_range(
        _first(llm.year_from if llm else None, series.year_from),
        _first(llm.year_to if llm else None, series.year_to),
    )

    return PublicSeries(
        id=series.series_id,
        series_id=series.series_id,
        series_key=series.series_key,
        series_key_raw=series.series_key_raw,
        series_grouping_confidence=series.series_grouping_confidence,
        episode_ids=list(series.episode_ids),
        year_from=year_from,
        year_to=year_to,
        year_confidence=llm.year_confidence if llm else series.year_confidence,
        fingerprint=series.fingerprint,
        member_episode_fingerprints=list(series.member_episode_fingerprints),
        derived=series.derived.model_copy(deep=True),
        series_title=(llm.series_title if llm and llm.series_title else series.series_title_fallback),
        narrative_summary=llm.narrative_summary if llm else None,
        tonal_descriptors=list(llm.tonal_descriptors) if llm and llm.tonal_descriptors else None,
        rss_last_seen_at=series.rss_last_seen_at,
    )


def compose_catalog(
    raw_episodes: list[RawEpisode],
    programmatic_episodes: Mapping[str, ProgrammaticEpisode],
    programmatic_series: Mapping[str, ProgrammaticSeries],
    episode_cache: Mapping[str, LlmEpisodeCacheEntry],
    series_cache: Mapping[str, LlmSeriesCacheEntry],
) -> ComposedCatalog:
    """Compose the public catalog.

    Only ``ok`` cache entries whose key matches the current fingerprint are
    merged; stale or failed entries are ignored. Inverted year ranges are
    swapped, never rejected.

    Args:
        raw_episodes: Every raw episode
        programmatic_episodes: Grouped programmatic episodes by id
        programmatic_series: Programmatic series by id
        episode_cache: Episode LLM cache by ``"<id>:<fingerprint>"``
        series_cache: Series LLM cache by ``"<id>:<fingerprint>"``

    Returns:
        Episodes sorted by (published_at, episode_id) and series sorted by
        (earliest member published_at, series_id)

    Raises:
        IntegrityError: If a programmatic episode has no raw counterpart
    """
    raw_by_id = {raw.episode_id: raw for raw in raw_episodes}

    episodes: list[PublicEpisode] = []
    for episode in programmatic_episodes.values():
        raw = raw_by_id.get(episode.episode_id)
        if raw is None:
            raise IntegrityError(f"Missing raw episode for {episode.episode_id}")
        episodes.append(compose_episode(episode, raw, valid_episode_entry(episode, episode_cache)))

    episodes.sort(key=lambda e: (parse_iso(e.published_at), e.episode_id))

    def series_sort_key(entry: PublicSeries) -> tuple[str, str]:
        dates = sorted(
            raw_by_id[episode_id].published_at
            for episode_id in entry.episode_ids
            if episode_id in raw_by_id
        )
        return (dates[0] if dates else FAR_FUTURE_SORT_KEY, entry.series_id)

    series = [
        compose_series(entry, valid_series_entry(entry, series_cache))
        for entry in programmatic_series.values()
    ]
    series.sort(key=series_sort_key)

    logger.info(f"Composed {len(episodes)} public episodes and {len(series)} public series")
    return ComposedCatalog(episodes=episodes, series=series)
