"""Series and episode slug generation.

Slugs stay short: at most four tokens. Episode slugs lead with a handle
derived from their series slug and end with a ``pt<N>`` marker when the
title carries a part number. Collisions get ``-2``, ``-3``, ... suffixes
against a ``taken`` set shared by every assignment in a run.
"""

import re
from collections.abc import Callable

from pydantic import BaseModel

from podarc.slugs.constants import DOMAIN_TOPICS
from podarc.slugs.slugify import slugify, split_tokens
from podarc.slugs.titles import derive_subtitle_source, extract_part_number, strip_leading_number

MAX_SERIES_TOKENS = 4
MAX_EPISODE_TOKENS = 4
MAX_EPISODE_KEYWORD_TOKENS = 2
HANDLE_FALLBACK_ID_LENGTH = 8
KEYWORD_FALLBACK_ID_LENGTH = 4

NON_ALNUM = re.compile(r"[^a-z0-9]", re.IGNORECASE)

SeriesSlugLookup = Callable[[str], str | None]


class SeriesSlugInput(BaseModel):
    """Fields a series slug is built from."""

    series_id: str
    series_title: str


class EpisodeSlugInput(BaseModel):
    """Fields an episode slug is built from."""

    episode_id: str
    clean_title: str
    part: int | None = None
    series_id: str | None = None


def resolve_slug_conflict(base_slug: str, taken: set[str]) -> str:
    """Return ``base_slug`` or the first free numbered variant, and claim it."""
    candidate = base_slug
    counter = 2
    while candidate in taken:
        candidate = f"{base_slug}-{counter}"
        counter += 1
    taken.add(candidate)
    return candidate


def _fallback_tokens_from_id(entity_id: str) -> list[str]:
    normalised = re.sub(r"[^a-z0-9-]", "-", entity_id.lower())
    return split_tokens(normalised)[:MAX_SERIES_TOKENS]


def pick_series_handle(series_slug: str, series_id: str) -> str:
    """Choose the anchor token episode slugs share with their series.

    The first token that is not a generic domain word wins; if every token
    is generic the first two are glued together.
    """
    tokens = split_tokens(series_slug)

    for token in tokens:
        if token not in DOMAIN_TOPICS:
            return token

    if len(tokens) >= 2:
        return f"{tokens[0]}{tokens[1]}"

    if len(tokens) == 1:
        return tokens[0]

    return NON_ALNUM.sub("", series_id).lower()[:HANDLE_FALLBACK_ID_LENGTH] or "item"


def _dedupe_tokens(existing: list[str], candidates: list[str]) -> list[str]:
    seen = set(existing)
    result = []
    for token in candidates:
        if token not in seen:
            seen.add(token)
            result.append(token)
    return result


def generate_series_slug(series: SeriesSlugInput, taken: set[str]) -> str:
    """Build a unique slug for a series and register it in ``taken``.

    Args:
        series: Series id and display title
        taken: Slugs already assigned in this run (mutated)

    Returns:
        The assigned slug
    """
    tokens = split_tokens(slugify(series.series_title))[:MAX_SERIES_TOKENS]
    if not tokens:
        tokens = _fallback_tokens_from_id(series.series_id)

    joined = "-".join(tokens)
    return resolve_slug_conflict(joined or series.series_id.lower(), taken)


def generate_episode_slug(
    episode: EpisodeSlugInput,
    series_lookup: SeriesSlugLookup,
    taken: set[str],
) -> str:
    """Build a unique slug for an episode and register it in ``taken``.

    Args:
        episode: Episode id, clean title and series membership
        series_lookup: Returns the slug already assigned to a series id
        taken: Slugs already assigned in this run (mutated)

    Returns:
        The assigned slug
    """
    title_without_number = strip_leading_number(episode.clean_title)
    title_without_part, part_number = extract_part_number(title_without_number)

    keywords = split_tokens(slugify(derive_subtitle_source(title_without_part)))
    keywords = keywords[:MAX_EPISODE_KEYWORD_TOKENS]
    if not keywords:
        keywords = split_tokens(slugify(title_without_part))[:MAX_EPISODE_KEYWORD_TOKENS]
    if not keywords:
        keywords = [NON_ALNUM.sub("", episode.episode_id)[:KEYWORD_FALLBACK_ID_LENGTH].lower()]

    tokens: list[str] = []
    if episode.series_id:
        series_slug = series_lookup(episode.series_id) or ""
        tokens.append(pick_series_handle(series_slug, episode.series_id))

    slots = MAX_EPISODE_TOKENS - len(tokens) - (1 if part_number else 0)
    tokens.extend(_dedupe_tokens(tokens, keywords)[: max(slots, 0)])

    if part_number is not None:
        if len(tokens) >= MAX_EPISODE_TOKENS:
            tokens.pop()
        tokens.append(f"pt{part_number}")

    tokens = [token for token in tokens if token]
    if not tokens:
        tokens = [episode.episode_id[:8].lower()]

    return resolve_slug_conflict("-".join(tokens), taken)
