"""Catalog building: cleaning, grouping, composition and validation."""

from podarc.catalog.cleaning import build_programmatic_episode, build_programmatic_episodes
from podarc.catalog.composer import ComposedCatalog, apply_episode_year_spans, compose_catalog
from podarc.catalog.grouper import (
    GroupingResult,
    SeriesOverride,
    apply_series_year_spans,
    group_series,
)
from podarc.catalog.indexes import build_people_index, build_places_index
from podarc.catalog.lookup import CatalogContext
from podarc.catalog.similar import find_related_episodes, find_related_series
from podarc.catalog.titles import SeriesKey, parse_part_number, parse_series_key
from podarc.catalog.validator import (
    CatalogDataset,
    ValidationPolicy,
    Violation,
    audit_artifacts,
    evaluate_catalog,
    load_schemas,
    run_validation,
)

__all__ = [
    "CatalogContext",
    "CatalogDataset",
    "ComposedCatalog",
    "GroupingResult",
    "SeriesKey",
    "SeriesOverride",
    "ValidationPolicy",
    "Violation",
    "apply_episode_year_spans",
    "apply_series_year_spans",
    "audit_artifacts",
    "build_people_index",
    "build_places_index",
    "build_programmatic_episode",
    "build_programmatic_episodes",
    "compose_catalog",
    "evaluate_catalog",
    "find_related_episodes",
    "find_related_series",
    "group_series",
    "load_schemas",
    "parse_part_number",
    "parse_series_key",
    "run_validation",
]
