"""Tests for catalog validation."""

import pytest

from podarc.catalog.cleaning import build_programmatic_episodes
from podarc.catalog.composer import compose_catalog
from podarc.catalog.grouper import group_series
from podarc.catalog.validator import (
    CatalogDataset,
    ValidationPolicy,
    evaluate_catalog,
    load_schemas,
    run_validation,
)
from podarc.slugs.registry import assign_slugs
from podarc.utils.errors import CatalogValidationError


@pytest.fixture
def dataset(nelson_raw) -> CatalogDataset:
    """A fully valid serialized catalog built from the Nelson fixture."""
    grouped = group_series(build_programmatic_episodes(nelson_raw))
    composed = compose_catalog(nelson_raw, grouped.episodes, grouped.series, {}, {})
    assignment = assign_slugs(composed.episodes, composed.series)
    return CatalogDataset(
        raw_episodes=[r.to_record() for r in nelson_raw],
        programmatic_episodes={k: v.to_record() for k, v in grouped.episodes.items()},
        programmatic_series={k: v.to_record() for k, v in grouped.series.items()},
        public_episodes=[e.to_record() for e in assignment.episodes],
        public_series=[s.to_record() for s in assignment.series],
    )


def _episode(dataset: CatalogDataset, episode_id: str) -> dict:
    return next(e for e in dataset.public_episodes if e["id"] == episode_id)


class TestLoadSchemas:
    """Tests for the packaged schema documents."""

    def test_all_schemas_load(self) -> None:
        """Test that every packaged schema parses and targets draft 2020-12."""
        schemas = load_schemas()

        for schema in schemas:
            assert schema["$schema"] == "https://json-schema.org/draft/2020-12/schema"
            assert schema["additionalProperties"] is False


class TestEvaluateCatalog:
    """Tests for evaluate_catalog and run_validation."""

    def test_valid_catalog(self, dataset: CatalogDataset) -> None:
        """Test that a freshly composed catalog passes."""
        assert evaluate_catalog(dataset) == []
        run_validation(dataset)

    def test_membership_mismatch_fails_fast(self, dataset: CatalogDataset) -> None:
        """Test the membership rule under fail-fast."""
        dataset.public_series[0]["episodeIds"].remove("nelson-3")

        with pytest.raises(CatalogValidationError) as exc_info:
            run_validation(dataset)

        message = str(exc_info.value)
        assert "Series nelson-20250901 does not include episode nelson-3" in message
        assert len(exc_info.value.violations) == 1

    def test_collect_all_reports_everything(self, dataset: CatalogDataset) -> None:
        """Test that collect-all keeps going after the first violation."""
        _episode(dataset, "nelson-1")["slug"] = None
        _episode(dataset, "caligula")["seriesId"] = "ghost-series"
        dataset.public_series[0]["yearFrom"] = 1805
        dataset.public_series[0]["yearTo"] = 1758

        violations = evaluate_catalog(dataset, policy=ValidationPolicy.COLLECT_ALL)
        messages = [v.message for v in violations]

        assert any("Missing slug for public episode nelson-1" in m for m in messages)
        assert any("references missing series ghost-series" in m for m in messages)
        assert any("Invalid year range in public series nelson-20250901" in m for m in messages)

    def test_duplicate_slug(self, dataset: CatalogDataset) -> None:
        """Test that slugs must be unique across episodes and series."""
        _episode(dataset, "caligula")["slug"] = "nelson"

        violations = evaluate_catalog(dataset)

        assert [v.item_id for v in violations] == ["nelson-20250901"]
        assert "Duplicate slug detected for public series" in violations[0].message

    def test_duplicate_raw_ids(self, dataset: CatalogDataset) -> None:
        """Test duplicate raw episode ids."""
        dataset.raw_episodes.append(dict(dataset.raw_episodes[0]))

        violations = evaluate_catalog(dataset)

        assert violations[0].scope == "raw episodes"
        assert "nelson-1" in violations[0].message

    def test_missing_counterparts(self, dataset: CatalogDataset) -> None:
        """Test public episodes without raw or programmatic records."""
        dataset.raw_episodes = [r for r in dataset.raw_episodes if r["episodeId"] != "caligula"]
        del dataset.programmatic_episodes["caligula"]

        messages = [v.message for v in evaluate_catalog(dataset)]

        assert "Public episode caligula missing corresponding raw episode" in messages
        assert "Public episode caligula missing corresponding programmatic episode" in messages

    def test_schema_violation_details(self, dataset: CatalogDataset) -> None:
        """Test that schema errors are listed with their JSON path."""
        episode = _episode(dataset, "nelson-2")
        episode["yearConfidence"] = "certain"
        episode["unexpected"] = True

        violations = evaluate_catalog(dataset)

        assert len(violations) == 1
        message = violations[0].message
        assert message.startswith("Public episode nelson-2 failed schema validation:")
        assert "$.yearConfidence" in message
        assert "unexpected" in message

    def test_malformed_timestamps_rejected(self, dataset: CatalogDataset) -> None:
        """Test that date-time formats are enforced on public episodes."""
        episode = _episode(dataset, "nelson-1")
        episode["publishedAt"] = "not-a-date"
        episode["rssLastSeenAt"] = "yesterday"

        violations = evaluate_catalog(dataset)

        assert len(violations) == 1
        assert violations[0].item_id == "nelson-1"
        assert "$.publishedAt" in violations[0].message
        assert "$.rssLastSeenAt" in violations[0].message

    def test_malformed_timestamp_aborts_run(self, dataset: CatalogDataset) -> None:
        """Test that fail-fast validation stops on a bad timestamp."""
        _episode(dataset, "caligula")["publishedAt"] = "2025-13-45"

        with pytest.raises(CatalogValidationError, match="caligula failed schema validation"):
            run_validation(dataset)

    def test_series_member_must_exist(self, dataset: CatalogDataset) -> None:
        """Test series referencing an unknown episode."""
        dataset.public_series[0]["episodeIds"].append("nelson-9")

        violations = evaluate_catalog(dataset)

        assert [v.message for v in violations] == [
            "Series nelson-20250901 references missing public episode nelson-9"
        ]

    def test_cache_entry_schema(self, dataset: CatalogDataset) -> None:
        """Test that cache entries are validated too."""
        dataset.episode_cache = {
            "nelson-1:abc": {
                "episodeId": "nelson-1",
                "fingerprint": "abc",
                "model": "claude-sonnet-4-5",
                "promptVersion": "episode.enrichment.v2",
                "createdAt": "2025-09-20T00:00:00.000Z",
                "status": "ok",
                "keyPeople": [],
                "keyPlaces": [],
                "keyThemes": ["Naval Warfare"],
                "yearFrom": None,
                "yearTo": None,
                "yearConfidence": "unknown",
            }
        }

        violations = evaluate_catalog(dataset)

        assert len(violations) == 1
        assert violations[0].scope == "cache"
        assert violations[0].message.startswith(
            "Episode LLM cache entry nelson-1:abc failed schema validation:"
        )

    def test_fail_fast_reports_first_rule(self, dataset: CatalogDataset) -> None:
        """Test that fail-fast stops at the first violation in rule order."""
        _episode(dataset, "nelson-1")["slug"] = None
        _episode(dataset, "nelson-2")["slug"] = None

        with pytest.raises(CatalogValidationError, match="nelson-1"):
            evaluate_catalog(dataset, policy=ValidationPolicy.FAIL_FAST)
