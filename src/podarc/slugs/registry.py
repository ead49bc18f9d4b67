"""Slug assignment across the whole catalog."""

import logging
from typing import NamedTuple

from podarc.catalog.models import PublicEpisode, PublicSeries, SlugRegistryEntry
from podarc.slugs.generate import (
    EpisodeSlugInput,
    SeriesSlugInput,
    generate_episode_slug,
    generate_series_slug,
)
from podarc.utils.errors import IntegrityError

logger = logging.getLogger(__name__)


class SlugAssignment(NamedTuple):
    """Slug-bearing records plus the slug -> entity registry."""

    episodes: list[PublicEpisode]
    series: list[PublicSeries]
    registry: dict[str, SlugRegistryEntry]


def assign_slugs(episodes: list[PublicEpisode], series: list[PublicSeries]) -> SlugAssignment:
    """Assign slugs to every series and episode.

    Series are processed first, then episodes, each in id order, against
    one shared set of taken slugs. Identical input always yields identical
    slugs. Input order is preserved in the returned lists.

    Raises:
        IntegrityError: If two records share an id
    """
    taken: set[str] = set()
    registry: dict[str, SlugRegistryEntry] = {}

    series_slugs: dict[str, str] = {}
    for entry in sorted(series, key=lambda s: s.series_id):
        if entry.series_id in series_slugs:
            raise IntegrityError(f"Duplicate series id during slug assignment: {entry.series_id}")
        slug = generate_series_slug(
            SeriesSlugInput(series_id=entry.series_id, series_title=entry.series_title),
            taken,
        )
        series_slugs[entry.series_id] = slug
        registry[slug] = SlugRegistryEntry(type="series", id=entry.series_id)

    episode_slugs: dict[str, str] = {}
    for entry in sorted(episodes, key=lambda e: e.episode_id):
        if entry.episode_id in episode_slugs:
            raise IntegrityError(f"Duplicate episode id during slug assignment: {entry.episode_id}")
        slug = generate_episode_slug(
            EpisodeSlugInput(
                episode_id=entry.episode_id,
                clean_title=entry.clean_title,
                part=entry.part,
                series_id=entry.series_id,
            ),
            series_slugs.get,
            taken,
        )
        episode_slugs[entry.episode_id] = slug
        registry[slug] = SlugRegistryEntry(type="episode", id=entry.episode_id)

    logger.debug(f"Assigned {len(series_slugs)} series and {len(episode_slugs)} episode slugs")

    return SlugAssignment(
        episodes=[e.model_copy(update={"slug": episode_slugs[e.episode_id]}) for e in episodes],
        series=[s.model_copy(update={"slug": series_slugs[s.series_id]}) for s in series],
        registry=registry,
    )
