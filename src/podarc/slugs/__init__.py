"""Slug generation and registry for podarc."""

from podarc.slugs.constants import DOMAIN_TOPICS, STOP_WORDS
from podarc.slugs.generate import (
    EpisodeSlugInput,
    SeriesSlugInput,
    generate_episode_slug,
    generate_series_slug,
)
from podarc.slugs.registry import SlugAssignment, assign_slugs
from podarc.slugs.slugify import slugify
from podarc.slugs.titles import (
    PartExtraction,
    derive_subtitle_source,
    extract_part_number,
    strip_leading_number,
)

__all__ = [
    "STOP_WORDS",
    "DOMAIN_TOPICS",
    "slugify",
    "strip_leading_number",
    "extract_part_number",
    "derive_subtitle_source",
    "PartExtraction",
    "SeriesSlugInput",
    "EpisodeSlugInput",
    "generate_series_slug",
    "generate_episode_slug",
    "SlugAssignment",
    "assign_slugs",
]
