"""Related episodes and series by overlap of people, places and themes."""

from typing import NamedTuple

from podarc.catalog.lookup import CatalogContext
from podarc.catalog.models import PublicEpisode, PublicSeries

PEOPLE_WEIGHT = 0.45
PLACES_WEIGHT = 0.25
THEMES_WEIGHT = 0.15
SAME_SERIES_BONUS = 0.25
DEFAULT_LIMIT = 6


class Features(NamedTuple):
    people: set[str]
    places: set[str]
    themes: set[str]


class SimilarEpisode(NamedTuple):
    episode: PublicEpisode
    score: float


class SimilarSeries(NamedTuple):
    series: PublicSeries
    score: float


def jaccard(a: set[str], b: set[str]) -> float:
    """Intersection over union; 0 when both sets are empty."""
    union = len(a | b)
    return len(a & b) / union if union else 0.0


def _names(values: list[str]) -> set[str]:
    return {value.strip() for value in values if value.strip()}


def _episode_features(episode: PublicEpisode) -> Features:
    return Features(
        _names(episode.key_people), _names(episode.key_places), _names(episode.key_themes)
    )


def _series_features(context: CatalogContext, series: PublicSeries) -> Features:
    features = Features(set(), set(), set())
    for episode in context.episodes_for_series(series.id):
        member = _episode_features(episode)
        features.people.update(member.people)
        features.places.update(member.places)
        features.themes.update(member.themes)
    return features


def _weighted(a: Features, b: Features) -> float:
    return (
        jaccard(a.people, b.people) * PEOPLE_WEIGHT
        + jaccard(a.places, b.places) * PLACES_WEIGHT
        + jaccard(a.themes, b.themes) * THEMES_WEIGHT
    )


def score_episode_similarity(target: PublicEpisode, candidate: PublicEpisode) -> float:
    """Score in [0, 1]; sharing a series adds a fixed bonus."""
    if target.id == candidate.id:
        return 0.0

    score = _weighted(_episode_features(target), _episode_features(candidate))
    if target.series_id and target.series_id == candidate.series_id:
        score += SAME_SERIES_BONUS
    return min(1.0, max(0.0, score))


def score_series_similarity(
    context: CatalogContext, target: PublicSeries, candidate: PublicSeries
) -> float:
    """Score two series on the pooled features of their members."""
    if target.id == candidate.id:
        return 0.0
    score = _weighted(_series_features(context, target), _series_features(context, candidate))
    return min(1.0, max(0.0, score))


def find_related_episodes(
    context: CatalogContext, episode_id: str, limit: int = DEFAULT_LIMIT
) -> list[SimilarEpisode]:
    """Best scoring other episodes, highest first; zero scores are dropped."""
    target = context.get_episode_by_id(episode_id)
    if target is None:
        return []

    scored = [
        SimilarEpisode(candidate, score_episode_similarity(target, candidate))
        for candidate in context.episodes.values()
    ]
    ranked = sorted((item for item in scored if item.score > 0), key=lambda item: -item.score)
    return ranked[:limit]


def find_related_series(
    context: CatalogContext, series_id: str, limit: int = DEFAULT_LIMIT
) -> list[SimilarSeries]:
    target = context.get_series_by_id(series_id)
    if target is None:
        return []

    scored = [
        SimilarSeries(candidate, score_series_similarity(context, target, candidate))
        for candidate in context.series.values()
    ]
    ranked = sorted((item for item in scored if item.score > 0), key=lambda item: -item.score)
    return ranked[:limit]
