"""People and place indexes over the published catalog.

Both indexes are rebuilt from a ``CatalogContext`` on demand; callers that
want to reuse one keep the returned dict themselves.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import NamedTuple

from podarc.catalog.lookup import CatalogContext
from podarc.catalog.models import PublicEpisode

logger = logging.getLogger(__name__)


class NameCount(NamedTuple):
    name: str
    count: int


@dataclass
class PersonIndexEntry:
    """Where one person is mentioned, and alongside whom."""

    name: str
    appearances: int = 0
    episode_ids: list[str] = field(default_factory=list)
    series_ids: list[str] = field(default_factory=list)
    series_counts: dict[str, int] = field(default_factory=dict)
    co_occurrences: list[NameCount] = field(default_factory=list)


@dataclass
class PlaceIndexEntry:
    """Where one place is mentioned."""

    name: str
    appearances: int = 0
    episode_ids: list[str] = field(default_factory=list)
    series_counts: dict[str, int] = field(default_factory=dict)


def _unique_names(values: list[str]) -> list[str]:
    names = (value.strip() for value in values)
    return list(dict.fromkeys(name for name in names if name))


def _by_count(counts: Counter) -> list[NameCount]:
    return [NameCount(name, count) for name, count in sorted(counts.items(), key=lambda i: (-i[1], i[0]))]


def _tally(
    episodes: list[PublicEpisode], names_of
) -> tuple[dict[str, set[str]], dict[str, Counter], dict[str, Counter]]:
    episode_ids: dict[str, set[str]] = {}
    series_counts: dict[str, Counter] = {}
    co_occurrences: dict[str, Counter] = {}

    for episode in episodes:
        names = _unique_names(names_of(episode))
        for name in names:
            episode_ids.setdefault(name, set()).add(episode.id)
            series = series_counts.setdefault(name, Counter())
            if episode.series_id:
                series[episode.series_id] += 1
            others = co_occurrences.setdefault(name, Counter())
            others.update(other for other in names if other != name)

    return episode_ids, series_counts, co_occurrences


def build_people_index(context: CatalogContext) -> dict[str, PersonIndexEntry]:
    """Index every key person by name.

    Names are trimmed and counted once per episode. Co-occurrences are
    ordered by count, then name.
    """
    episode_ids, series_counts, co_occurrences = _tally(
        list(context.episodes.values()), lambda episode: episode.key_people
    )
    index = {
        name: PersonIndexEntry(
            name=name,
            appearances=len(ids),
            episode_ids=sorted(ids),
            series_ids=sorted(series_counts[name]),
            series_counts=dict(sorted(series_counts[name].items())),
            co_occurrences=_by_count(co_occurrences[name]),
        )
        for name, ids in episode_ids.items()
    }
    logger.debug(f"Indexed {len(index)} people")
    return index


def build_places_index(context: CatalogContext) -> dict[str, PlaceIndexEntry]:
    """Index every key place by name."""
    episode_ids, series_counts, _ = _tally(
        list(context.episodes.values()), lambda episode: episode.key_places
    )
    index = {
        name: PlaceIndexEntry(
            name=name,
            appearances=len(ids),
            episode_ids=sorted(ids),
            series_counts=dict(sorted(series_counts[name].items())),
        )
        for name, ids in episode_ids.items()
    }
    logger.debug(f"Indexed {len(index)} places")
    return index


def top_for_series(
    index: dict[str, PersonIndexEntry] | dict[str, PlaceIndexEntry],
    series_id: str,
    limit: int = 5,
) -> list[NameCount]:
    """Most mentioned names within one series."""
    counts = Counter(
        {name: entry.series_counts[series_id] for name, entry in index.items() if entry.series_counts.get(series_id)}
    )
    return _by_count(counts)[:limit]


def people_for_episode(index: dict[str, PersonIndexEntry], episode_id: str) -> list[str]:
    """Names of the people indexed against an episode, alphabetically."""
    return sorted(name for name, entry in index.items() if episode_id in entry.episode_ids)
