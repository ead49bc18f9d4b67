"""Series grouping.

Episodes are bucketed into multi-part arcs from their titles and publish
dates alone. The state machine walks episodes in publish order and keeps
one open bucket per series-key slug:

- a part 1 opens a bucket, closing any bucket already open for that slug
- a later part joins the open bucket when it follows the previous member
  within ``max_gap_days``; otherwise the bucket is closed
- a later part with no open bucket is left standalone

Closed buckets with fewer than two members are discarded. Manual
overrides run afterwards as a separate pass over the finished result.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import cmp_to_key
from typing import NamedTuple

from pydantic import BaseModel, Field

from podarc.catalog.fingerprints import series_fingerprint
from podarc.catalog.models import (
    EpisodeSummary,
    ProgrammaticEpisode,
    ProgrammaticSeries,
    SeriesDerived,
    normalise_year_range,
    weakest_confidence,
)
from podarc.catalog.titles import SeriesKey, parse_part_number, parse_series_key
from podarc.utils.dates import date_fragment, parse_iso

logger = logging.getLogger(__name__)

MAX_GAP_DAYS = 14
MIN_SERIES_MEMBERS = 2


class SeriesOverride(BaseModel):
    """Curator correction: force ``episode_ids`` into ``series_id``."""

    series_id: str
    episode_ids: list[str] = Field(default_factory=list)
    series_key_raw: str | None = None


class GroupingResult(NamedTuple):
    """Grouped copies of the input episodes and the series they form."""

    episodes: dict[str, ProgrammaticEpisode]
    series: dict[str, ProgrammaticSeries]


@dataclass
class _OpenBucket:
    key: SeriesKey
    first_published_at: str
    last_published: datetime
    members: list[ProgrammaticEpisode] = field(default_factory=list)


def _publish_order(episode: ProgrammaticEpisode) -> tuple[datetime, str]:
    return parse_iso(episode.published_at), episode.episode_id


def _compare_members(a: ProgrammaticEpisode, b: ProgrammaticEpisode) -> int:
    if a.part is not None and b.part is not None and a.part != b.part:
        return a.part - b.part
    left, right = _publish_order(a), _publish_order(b)
    return (left > right) - (left < right)


def _as_episode_list(
    episodes: Mapping[str, ProgrammaticEpisode] | Iterable[ProgrammaticEpisode],
) -> list[ProgrammaticEpisode]:
    if isinstance(episodes, Mapping):
        return list(episodes.values())
    return list(episodes)


def _build_series(
    series_id: str,
    members: list[ProgrammaticEpisode],
    series_key_raw: str | None,
) -> ProgrammaticSeries:
    """Order members, stamp their series fields and aggregate the series.

    Mutates ``members`` (working copies owned by the grouper).
    """
    ordered = sorted(members, key=cmp_to_key(_compare_members))

    effective_raw = series_key_raw or next(
        (episode.series_key_raw for episode in ordered if episode.series_key_raw), None
    )
    if not effective_raw:
        derived_key = parse_series_key(ordered[0].clean_title)
        effective_raw = derived_key.raw if derived_key else series_id
    series_key = effective_raw.lower()

    for episode in ordered:
        part = parse_part_number(episode.clean_title)
        if part is not None:
            episode.part = part
        episode.series_id = series_id
        episode.series_key_raw = effective_raw
        episode.series_key = series_key
        episode.series_grouping_confidence = "high"

    year_froms = [e.year_from for e in ordered if e.year_from is not None]
    year_tos = [e.year_to for e in ordered if e.year_to is not None]
    seen_at = [e.rss_last_seen_at for e in ordered if e.rss_last_seen_at]
    member_fingerprints = [e.fingerprint for e in ordered]

    return ProgrammaticSeries(
        series_id=series_id,
        series_key=series_key,
        series_key_raw=effective_raw,
        series_title_fallback=effective_raw,
        series_grouping_confidence="high",
        episode_ids=[e.episode_id for e in ordered],
        member_episode_fingerprints=member_fingerprints,
        fingerprint=series_fingerprint(series_id, member_fingerprints),
        year_from=min(year_froms) if year_froms else None,
        year_to=max(year_tos) if year_tos else None,
        year_confidence=weakest_confidence([e.year_confidence for e in ordered]),
        derived=SeriesDerived(
            episode_count=len(ordered),
            episode_summaries=[
                EpisodeSummary(
                    part=e.part,
                    clean_title=e.clean_title,
                    clean_description_text=e.clean_description_text,
                )
                for e in ordered
            ],
        ),
        rss_last_seen_at=max(seen_at) if seen_at else None,
    )


def _bucket_episodes(
    ordered: list[ProgrammaticEpisode], max_gap_days: int
) -> list[_OpenBucket]:
    max_gap = timedelta(days=max_gap_days)
    open_buckets: dict[str, _OpenBucket] = {}
    closed: list[_OpenBucket] = []

    for episode in ordered:
        key = parse_series_key(episode.clean_title)
        part = parse_part_number(episode.clean_title)

        episode.series_id = None
        episode.series_grouping_confidence = "low"
        episode.series_key_raw = key.raw if key else None
        episode.series_key = key.normalised if key else None
        episode.part = part

        if key is None or part is None:
            continue

        bucket = open_buckets.get(key.slug)
        published = parse_iso(episode.published_at)

        if bucket is None or part == 1:
            if bucket is not None:
                closed.append(open_buckets.pop(key.slug))
            if part != 1:
                # No part 1 anchor for this key: stays standalone
                logger.debug(f"Part {part} without open series: {episode.episode_id}")
                continue
            open_buckets[key.slug] = _OpenBucket(
                key=key,
                first_published_at=episode.published_at,
                last_published=published,
                members=[episode],
            )
            continue

        if published - bucket.last_published > max_gap:
            closed.append(open_buckets.pop(key.slug))
            logger.debug(f"Gap over {max_gap_days} days closes series '{key.slug}' before {episode.episode_id}")
            continue

        bucket.members.append(episode)
        bucket.last_published = published

    closed.extend(open_buckets.values())
    return closed


def _apply_overrides(
    working: dict[str, ProgrammaticEpisode],
    series: dict[str, ProgrammaticSeries],
    overrides: Iterable[SeriesOverride],
) -> None:
    for override in overrides:
        existing = series.get(override.series_id)
        targets: dict[str, ProgrammaticEpisode] = {}
        if existing is not None:
            for episode_id in existing.episode_ids:
                if episode_id in working:
                    targets[episode_id] = working[episode_id]

        touched: set[str] = set()
        for episode_id in override.episode_ids:
            episode = working.get(episode_id)
            if episode is None:
                logger.debug(f"Override {override.series_id} names unknown episode {episode_id}")
                continue

            previous_id = episode.series_id
            if previous_id and previous_id != override.series_id and previous_id in series:
                previous = series[previous_id]
                remaining = [i for i in previous.episode_ids if i != episode_id]
                if remaining:
                    series[previous_id] = previous.model_copy(update={"episode_ids": remaining})
                    touched.add(previous_id)
                else:
                    del series[previous_id]
                    touched.discard(previous_id)
            targets[episode_id] = episode

        if not targets:
            continue

        series_key_raw = override.series_key_raw or (existing.series_key_raw if existing else None)
        series[override.series_id] = _build_series(
            override.series_id, list(targets.values()), series_key_raw
        )

        for previous_id in sorted(touched):
            previous = series[previous_id]
            series[previous_id] = _build_series(
                previous_id,
                [working[i] for i in previous.episode_ids],
                previous.series_key_raw,
            )


def group_series(
    episodes: Mapping[str, ProgrammaticEpisode] | Iterable[ProgrammaticEpisode],
    overrides: Iterable[SeriesOverride] = (),
    max_gap_days: int = MAX_GAP_DAYS,
) -> GroupingResult:
    """Group episodes into series.

    Works on deep copies; the input records are never modified. Grouping
    never raises: titles that cannot be parsed leave their episode
    standalone.

    Args:
        episodes: Programmatic episodes (mapping by id or any iterable)
        overrides: Manual corrections applied after automatic grouping
        max_gap_days: Largest allowed gap between consecutive parts

    Returns:
        Grouped episode copies keyed by id and series keyed by id
    """
    working = {
        episode.episode_id: episode.model_copy(deep=True) for episode in _as_episode_list(episodes)
    }
    ordered = sorted(working.values(), key=_publish_order)

    series: dict[str, ProgrammaticSeries] = {}
    for bucket in _bucket_episodes(ordered, max_gap_days):
        if len(bucket.members) < MIN_SERIES_MEMBERS:
            continue

        series_id = f"{bucket.key.slug}-{date_fragment(bucket.first_published_at)}"
        if series_id in series:
            logger.warning(f"Series id collision for {series_id}; keeping the first arc")
            continue
        series[series_id] = _build_series(series_id, bucket.members, bucket.key.raw)

    _apply_overrides(working, series, overrides)

    for episode in working.values():
        if not episode.series_id or episode.series_id not in series:
            episode.series_id = None
            episode.part = None
            episode.series_key = None
            episode.series_key_raw = None
            episode.series_grouping_confidence = "low"

    logger.info(f"Grouped {len(working)} episodes into {len(series)} series")
    return GroupingResult(episodes=working, series=series)


def apply_series_year_spans(
    series: Mapping[str, ProgrammaticSeries],
    episodes: Mapping[str, ProgrammaticEpisode],
) -> dict[str, ProgrammaticSeries]:
    """Recompute series year spans from (refreshed) member year spans.

    The span runs from the smallest to the largest year any member
    mentions; confidence is the weakest member confidence, or unknown when
    no member has a year.

    Returns:
        Updated copies of the series keyed by id
    """
    updated: dict[str, ProgrammaticSeries] = {}
    for series_id, entry in series.items():
        members = [episodes[i] for i in entry.episode_ids if i in episodes]
        years = [
            year
            for episode in members
            for year in (episode.year_from, episode.year_to)
            if year is not None
        ]

        if years:
            year_from, year_to = normalise_year_range(min(years), max(years))
            confidence = weakest_confidence([e.year_confidence for e in members])
        else:
            year_from, year_to, confidence = None, None, "unknown"

        updated[series_id] = entry.model_copy(
            update={"year_from": year_from, "year_to": year_to, "year_confidence": confidence}
        )
    return updated
