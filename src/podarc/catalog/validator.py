"""Catalog validation: JSON Schema conformance plus referential integrity.

The same rule set serves two callers. The pipeline validates fail-fast so
that nothing is written once a rule breaks; the audit command collects
every violation into a report.
"""

import json
import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from importlib import resources
from typing import Any, NamedTuple

from jsonschema import Draft202012Validator

from podarc.utils.errors import CatalogValidationError

logger = logging.getLogger(__name__)

SCHEMA_PACKAGE = "podarc.catalog.schemas"
SCHEMA_FILES = {
    "episode": "episode.public.schema.json",
    "series": "series.public.schema.json",
    "episode_cache": "cache.episode.schema.json",
    "series_cache": "cache.series.schema.json",
}

Record = dict[str, Any]


class ValidationPolicy(str, Enum):
    """How evaluation reacts to a violation."""

    FAIL_FAST = "fail_fast"
    COLLECT_ALL = "collect_all"


class Violation(NamedTuple):
    """One broken rule."""

    scope: str
    item_id: str
    message: str


class CatalogSchemas(NamedTuple):
    """Parsed JSON Schema documents."""

    episode: Record
    series: Record
    episode_cache: Record
    series_cache: Record


@dataclass
class CatalogDataset:
    """Serialized (camelCase) records to validate.

    Programmatic records and caches are keyed by id and cache key.
    """

    raw_episodes: list[Record] = field(default_factory=list)
    programmatic_episodes: Mapping[str, Record] = field(default_factory=dict)
    programmatic_series: Mapping[str, Record] = field(default_factory=dict)
    episode_cache: Mapping[str, Record] = field(default_factory=dict)
    series_cache: Mapping[str, Record] = field(default_factory=dict)
    public_episodes: list[Record] = field(default_factory=list)
    public_series: list[Record] = field(default_factory=list)


class _Validators(NamedTuple):
    episode: Draft202012Validator
    series: Draft202012Validator
    episode_cache: Draft202012Validator
    series_cache: Draft202012Validator


def load_schemas() -> CatalogSchemas:
    """Load the packaged JSON Schema documents."""
    root = resources.files(SCHEMA_PACKAGE)
    documents = {
        name: json.loads(root.joinpath(filename).read_text(encoding="utf-8"))
        for name, filename in SCHEMA_FILES.items()
    }
    return CatalogSchemas(**documents)


def _compile(schemas: CatalogSchemas) -> _Validators:
    compiled = {}
    for name, schema in schemas._asdict().items():
        Draft202012Validator.check_schema(schema)
        compiled[name] = Draft202012Validator(
            schema, format_checker=Draft202012Validator.FORMAT_CHECKER
        )
    return _Validators(**compiled)


def _schema_errors(validator: Draft202012Validator, record: Any) -> str | None:
    errors = sorted(validator.iter_errors(record), key=lambda e: e.json_path)
    if not errors:
        return None
    return "\n".join(f"  - {error.json_path}: {error.message}" for error in errors)


def _check_year_range(record: Record) -> tuple[int, int] | None:
    year_from = record.get("yearFrom")
    year_to = record.get("yearTo")
    if isinstance(year_from, int) and isinstance(year_to, int) and year_from > year_to:
        return year_from, year_to
    return None


def _duplicate_ids(records: list[Record], key: str, context: str) -> Iterator[Violation]:
    seen: set[str] = set()
    reported: set[str] = set()
    for record in records:
        value = record.get(key)
        if value is None:
            continue
        if value in seen and value not in reported:
            reported.add(value)
            yield Violation(context, str(value), f"Duplicate identifier detected in {context}: {value}")
        seen.add(value)


def _iter_violations(dataset: CatalogDataset, validators: _Validators) -> Iterator[Violation]:
    yield from _duplicate_ids(dataset.raw_episodes, "episodeId", "raw episodes")
    yield from _duplicate_ids(dataset.public_episodes, "id", "public episodes")

    raw_ids = {record.get("episodeId") for record in dataset.raw_episodes}
    public_episode_ids = {record.get("id") for record in dataset.public_episodes}
    series_by_id = {record.get("id"): record for record in dataset.public_series}
    slugs: set[str] = set()

    for episode in dataset.public_episodes:
        episode_id = str(episode.get("id"))

        slug = episode.get("slug")
        if not slug:
            yield Violation("episode", episode_id, f"Missing slug for public episode {episode_id}")
        elif slug in slugs:
            yield Violation(
                "episode", episode_id, f"Duplicate slug detected for public episode {episode_id}: {slug}"
            )
        else:
            slugs.add(slug)

        if episode_id not in raw_ids:
            yield Violation(
                "episode", episode_id, f"Public episode {episode_id} missing corresponding raw episode"
            )
        if episode_id not in dataset.programmatic_episodes:
            yield Violation(
                "episode",
                episode_id,
                f"Public episode {episode_id} missing corresponding programmatic episode",
            )

        series_id = episode.get("seriesId")
        if series_id:
            series = series_by_id.get(series_id)
            if series is None:
                yield Violation(
                    "episode", episode_id, f"Public episode {episode_id} references missing series {series_id}"
                )
            elif episode_id not in (series.get("episodeIds") or []):
                yield Violation(
                    "episode",
                    episode_id,
                    f"Series {series_id} does not include episode {episode_id} in its membership",
                )

        inverted = _check_year_range(episode)
        if inverted:
            yield Violation(
                "episode",
                episode_id,
                f"Invalid year range in public episode {episode_id}: "
                f"yearFrom ({inverted[0]}) > yearTo ({inverted[1]})",
            )

        details = _schema_errors(validators.episode, episode)
        if details:
            yield Violation(
                "episode", episode_id, f"Public episode {episode_id} failed schema validation:\n{details}"
            )

    for series in dataset.public_series:
        series_id = str(series.get("id"))

        slug = series.get("slug")
        if not slug:
            yield Violation("series", series_id, f"Missing slug for public series {series_id}")
        elif slug in slugs:
            yield Violation(
                "series", series_id, f"Duplicate slug detected for public series {series_id}: {slug}"
            )
        else:
            slugs.add(slug)

        details = _schema_errors(validators.series, series)
        if details:
            yield Violation(
                "series", series_id, f"Public series {series_id} failed schema validation:\n{details}"
            )

        for member_id in series.get("episodeIds") or []:
            if member_id not in public_episode_ids:
                yield Violation(
                    "series", series_id, f"Series {series_id} references missing public episode {member_id}"
                )

        inverted = _check_year_range(series)
        if inverted:
            yield Violation(
                "series",
                series_id,
                f"Invalid year range in public series {series_id}: "
                f"yearFrom ({inverted[0]}) > yearTo ({inverted[1]})",
            )

    for key, entry in dataset.episode_cache.items():
        details = _schema_errors(validators.episode_cache, entry)
        if details:
            yield Violation(
                "cache", key, f"Episode LLM cache entry {key} failed schema validation:\n{details}"
            )

    for key, entry in dataset.series_cache.items():
        details = _schema_errors(validators.series_cache, entry)
        if details:
            yield Violation(
                "cache", key, f"Series LLM cache entry {key} failed schema validation:\n{details}"
            )


def evaluate_catalog(
    dataset: CatalogDataset,
    schemas: CatalogSchemas | None = None,
    policy: ValidationPolicy = ValidationPolicy.COLLECT_ALL,
) -> list[Violation]:
    """Evaluate every catalog rule against a dataset.

    Schema validators are compiled once per call.

    Args:
        dataset: Serialized records to check
        schemas: Schema documents (defaults to the packaged ones)
        policy: FAIL_FAST raises on the first violation, COLLECT_ALL
            returns them all

    Returns:
        Violations in rule order (empty when the catalog is valid)

    Raises:
        CatalogValidationError: Under FAIL_FAST, on the first violation
    """
    validators = _compile(schemas or load_schemas())
    violations: list[Violation] = []

    for violation in _iter_violations(dataset, validators):
        if policy is ValidationPolicy.FAIL_FAST:
            raise CatalogValidationError(violation.message, violations=[violation])
        violations.append(violation)

    if violations:
        logger.warning(f"Catalog validation found {len(violations)} violation(s)")
    else:
        logger.debug("Catalog validation passed")
    return violations


def run_validation(dataset: CatalogDataset, schemas: CatalogSchemas | None = None) -> None:
    """Validate fail-fast before any artefact is written."""
    evaluate_catalog(dataset, schemas, ValidationPolicy.FAIL_FAST)


def audit_artifacts(store: Any) -> list[Violation]:
    """Collect every violation in the persisted artefacts.

    Args:
        store: ``ArtifactStore`` rooted at the output directory

    Returns:
        All violations found
    """
    dataset = CatalogDataset(
        raw_episodes=store.read_records(store.raw_episodes_path, []),
        programmatic_episodes=store.read_records(store.programmatic_episodes_path, {}),
        programmatic_series=store.read_records(store.programmatic_series_path, {}),
        episode_cache=store.read_records(store.episode_cache_path, {}),
        series_cache=store.read_records(store.series_cache_path, {}),
        public_episodes=store.read_records(store.public_episodes_path, []),
        public_series=store.read_records(store.public_series_path, []),
    )
    return evaluate_catalog(dataset, policy=ValidationPolicy.COLLECT_ALL)
