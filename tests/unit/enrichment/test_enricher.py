"""Unit tests for the enricher."""

import json
from unittest.mock import AsyncMock, Mock

import pytest

from podarc.catalog.cleaning import build_programmatic_episodes
from podarc.catalog.grouper import group_series
from podarc.catalog.models import LlmEpisodeCacheEntry, LlmSeriesCacheEntry
from podarc.enrichment.clients import Completion
from podarc.enrichment.enricher import (
    BUDGET_MESSAGE,
    NO_CLIENT_MESSAGE,
    Enricher,
    ensure_year,
    normalise_year_confidence,
    parse_json_reply,
    sanitize_strings,
    sanitize_themes,
)
from podarc.enrichment.errors import ProviderError, ResponseParseError

FIXED_TIME = "2025-09-20T12:00:00.000Z"

EPISODE_REPLY = {
    "keyPeople": ["Horatio Nelson", " Horatio Nelson ", "Emma Hamilton", 7],
    "keyPlaces": ["Aboukir Bay"],
    "keyThemes": ["Naval Warfare", "naval_warfare", "Egypt!"],
    "yearFrom": 1798,
    "yearTo": 1798.0,
    "yearConfidence": "HIGH",
}

SERIES_REPLY = {
    "seriesTitle": "  Nelson: Britain's Greatest Hero  ",
    "narrativeSummary": "The rise and death of Horatio Nelson.",
    "tonalDescriptors": ["stirring", "tragic"],
}


def completion(payload, model: str = "claude-test") -> Completion:
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return Completion(model=model, content=content)


@pytest.fixture
def mock_client() -> Mock:
    """LLM client whose replies are set per test."""
    client = Mock()
    client.primary_model = "claude-test"
    client.complete = AsyncMock(return_value=completion(EPISODE_REPLY))
    return client


@pytest.fixture
def grouped(nelson_raw):
    return group_series(build_programmatic_episodes(nelson_raw))


def make_enricher(client, **kwargs) -> Enricher:
    return Enricher(client, clock=lambda: FIXED_TIME, **kwargs)


def error_entry(episode) -> LlmEpisodeCacheEntry:
    return LlmEpisodeCacheEntry(
        episode_id=episode.episode_id,
        fingerprint=episode.fingerprint,
        model="claude-test",
        prompt_version="episode.enrichment.v1",
        created_at=FIXED_TIME,
        status="error",
        notes="Failed to parse LLM response",
    )



class TestSanitizers:
    """Tests for reply sanitizers."""

    def test_sanitize_strings(self) -> None:
        """Test trimming, dedupe and type filtering."""
        assert sanitize_strings([" a ", "a", "", None, "b"]) == ["a", "b"]
        assert sanitize_strings("not a list") == []

    def test_sanitize_strings_cap(self) -> None:
        """Test the item cap."""
        assert len(sanitize_strings([f"name {i}" for i in range(20)])) == 12

    def test_sanitize_themes(self) -> None:
        """Test kebab-casing and the theme cap."""
        assert sanitize_themes(["Naval Warfare", "naval-warfare", "  ", "Ancient Rome!"]) == [
            "naval-warfare",
            "ancient-rome",
        ]
        assert len(sanitize_themes([f"theme {i}" for i in range(10)])) == 8

    @pytest.mark.parametrize(
        "value, expected",
        [(1805, 1805), (1805.0, 1805), (-500, -500), (10000, None), ("1805", None), (True, None), (None, None)],
    )
    def test_ensure_year(self, value, expected) -> None:
        """Test year coercion."""
        assert ensure_year(value) == expected

    def test_normalise_year_confidence(self) -> None:
        """Test confidence normalisation."""
        assert normalise_year_confidence(" Medium ") == "medium"
        assert normalise_year_confidence("certain") == "unknown"
        assert normalise_year_confidence(None) == "unknown"

    def test_parse_json_reply(self) -> None:
        """Test parsing with and without code fences."""
        assert parse_json_reply('{"a": 1}') == {"a": 1}
        assert parse_json_reply('```json\n{"a": 1}\n```') == {"a": 1}

    def test_parse_json_reply_errors(self) -> None:
        """Test non-JSON and non-object replies."""
        with pytest.raises(ResponseParseError):
            parse_json_reply("Sure! Here you go.")
        with pytest.raises(ResponseParseError, match="not a JSON object"):
            parse_json_reply("[1, 2]")


class TestEnrichEpisodes:
    """Tests for Enricher.enrich_episodes."""

    @pytest.mark.asyncio
    async def test_enriches_every_episode(self, mock_client: Mock, grouped) -> None:
        """Test a cold cache."""
        result = await make_enricher(mock_client).enrich_episodes(grouped.episodes, {})

        assert result.calls_made == 6
        assert mock_client.complete.call_count == 6
        assert result.errors == []

        episode = grouped.episodes["nelson-2"]
        entry = result.cache[f"nelson-2:{episode.fingerprint}"]
        assert entry.status == "ok"
        assert entry.model == "claude-test"
        assert entry.prompt_version == "episode.enrichment.v2"
        assert entry.created_at == FIXED_TIME
        assert entry.key_people == ["Horatio Nelson", "Emma Hamilton"]
        assert entry.key_themes == ["naval-warfare", "egypt"]
        assert (entry.year_from, entry.year_to) == (1798, 1798)
        assert entry.year_confidence == "high"

    @pytest.mark.asyncio
    async def test_cache_hits_skip_calls(self, mock_client: Mock, grouped) -> None:
        """Test that current entries are reused."""
        first = await make_enricher(mock_client).enrich_episodes(grouped.episodes, {})
        mock_client.complete.reset_mock()

        second = await make_enricher(mock_client).enrich_episodes(grouped.episodes, first.cache)

        assert second.calls_made == 0
        mock_client.complete.assert_not_called()
        assert second.cache == first.cache

    @pytest.mark.asyncio
    async def test_force_ids(self, mock_client: Mock, grouped) -> None:
        """Test forcing a single episode."""
        first = await make_enricher(mock_client).enrich_episodes(grouped.episodes, {})

        second = await make_enricher(mock_client).enrich_episodes(
            grouped.episodes, first.cache, force_ids={"caligula"}
        )

        assert second.calls_made == 1

    @pytest.mark.asyncio
    async def test_force_all(self, mock_client: Mock, grouped) -> None:
        """Test forcing every episode."""
        first = await make_enricher(mock_client).enrich_episodes(grouped.episodes, {})

        second = await make_enricher(mock_client).enrich_episodes(
            grouped.episodes, first.cache, force_all=True
        )

        assert second.calls_made == 6

    @pytest.mark.asyncio
    async def test_plan_makes_no_calls(self, mock_client: Mock, grouped) -> None:
        """Test plan mode."""
        result = await make_enricher(mock_client).enrich_episodes(grouped.episodes, {}, plan=True)

        mock_client.complete.assert_not_called()
        assert [call.item_id for call in result.planned] == [
            "nelson-1", "nelson-2", "nelson-3", "nelson-4", "nelson-5", "caligula",
        ]
        assert all(call.kind == "episode" and call.approx_tokens > 0 for call in result.planned)
        assert result.cache == {}

    @pytest.mark.asyncio
    async def test_max_calls_budget(self, mock_client: Mock, grouped) -> None:
        """Test that the call budget is honoured in publish order."""
        result = await make_enricher(mock_client).enrich_episodes(
            grouped.episodes, {}, max_calls=2
        )

        assert result.calls_made == 2
        assert {entry.episode_id for entry in result.cache.values()} == {"nelson-1", "nelson-2"}
        assert len(result.errors) == 4
        assert all(e.message == BUDGET_MESSAGE and e.level == "info" for e in result.errors)
        assert result.errors[0].item_id == "nelson-3"

    @pytest.mark.asyncio
    async def test_zero_budget(self, mock_client: Mock, grouped) -> None:
        """Test a budget of zero."""
        result = await make_enricher(mock_client).enrich_episodes(
            grouped.episodes, {}, max_calls=0
        )

        mock_client.complete.assert_not_called()
        assert len(result.errors) == 6

    @pytest.mark.asyncio
    async def test_without_client(self, grouped) -> None:
        """Test that a missing client records skips."""
        result = await make_enricher(None).enrich_episodes(grouped.episodes, {})

        assert result.calls_made == 0
        assert result.cache == {}
        assert {e.message for e in result.errors} == {NO_CLIENT_MESSAGE}

    @pytest.mark.asyncio
    async def test_reasks_on_invalid_json(self, mock_client: Mock, grouped) -> None:
        """Test the JSON-only reminder after a prose reply."""
        mock_client.complete.side_effect = [
            completion("Here is the analysis you asked for."),
            completion(EPISODE_REPLY),
        ]
        episodes = {"caligula": grouped.episodes["caligula"]}

        result = await make_enricher(mock_client).enrich_episodes(episodes, {})

        assert mock_client.complete.call_count == 2
        retry_messages = mock_client.complete.call_args_list[1].args[0]
        assert retry_messages[-2].role == "assistant"
        assert retry_messages[-1].content.startswith("Your previous reply was not valid JSON")
        assert result.calls_made == 1
        assert next(iter(result.cache.values())).status == "ok"

    @pytest.mark.asyncio
    async def test_parse_failure_records_error(self, mock_client: Mock, grouped) -> None:
        """Test three unparseable replies."""
        mock_client.complete.return_value = completion("not json")
        episodes = {"caligula": grouped.episodes["caligula"]}

        result = await make_enricher(mock_client).enrich_episodes(episodes, {})

        assert mock_client.complete.call_count == 3
        entry = next(iter(result.cache.values()))
        assert entry.status == "error"
        assert entry.key_people == []
        assert result.errors[0].message == "Failed to parse LLM response"
        assert result.errors[0].level == "error"
        assert result.errors[0].details["content"] == "not json"

    @pytest.mark.asyncio
    async def test_provider_failure_records_error(self, mock_client: Mock, grouped) -> None:
        """Test that request failures do not abort the stage."""
        mock_client.complete.side_effect = [
            ProviderError("claude API error: overloaded", provider="claude"),
            completion(EPISODE_REPLY),
        ]
        episodes = {
            "nelson-1": grouped.episodes["nelson-1"],
            "nelson-2": grouped.episodes["nelson-2"],
        }

        result = await make_enricher(mock_client).enrich_episodes(episodes, {})

        statuses = {entry.episode_id: entry.status for entry in result.cache.values()}
        assert statuses == {"nelson-1": "error", "nelson-2": "ok"}
        assert [e.message for e in result.errors] == ["LLM request failed"]

    @pytest.mark.asyncio
    async def test_existing_themes_renormalised(self, mock_client: Mock, grouped) -> None:
        """Test that cached themes are kebab-cased on load."""
        episode = grouped.episodes["caligula"]
        key = f"caligula:{episode.fingerprint}"
        cache = {
            key: LlmEpisodeCacheEntry(
                episode_id="caligula",
                fingerprint=episode.fingerprint,
                model="claude-test",
                prompt_version="episode.enrichment.v1",
                created_at=FIXED_TIME,
                status="ok",
                key_themes=["Roman Emperors", "Madness"],
            )
        }

        result = await make_enricher(mock_client).enrich_episodes({"caligula": episode}, cache)

        assert result.cache[key].key_themes == ["roman-emperors", "madness"]
        mock_client.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_error_entries_retried(self, mock_client: Mock, grouped) -> None:
        """Test that failed entries are recomputed on the next run."""
        cache = {
            f"{episode.episode_id}:{episode.fingerprint}": error_entry(episode)
            for episode in grouped.episodes.values()
        }

        result = await make_enricher(mock_client).enrich_episodes(grouped.episodes, cache)

        assert mock_client.complete.call_count == 6
        assert result.calls_made == 6
        assert {entry.status for entry in result.cache.values()} == {"ok"}

    @pytest.mark.asyncio
    async def test_error_entry_retries_count_against_budget(self, mock_client: Mock, grouped) -> None:
        """Test that retries share the call budget and unretried errors stay cached."""
        cache = {
            f"{episode.episode_id}:{episode.fingerprint}": error_entry(episode)
            for episode in grouped.episodes.values()
        }

        result = await make_enricher(mock_client).enrich_episodes(
            grouped.episodes, cache, max_calls=1
        )

        statuses = {entry.episode_id: entry.status for entry in result.cache.values()}
        assert statuses["nelson-1"] == "ok"
        assert statuses["caligula"] == "error"
        assert len([e for e in result.errors if e.message == BUDGET_MESSAGE]) == 5

    @pytest.mark.asyncio
    async def test_hosts_in_prompt(self, mock_client: Mock, grouped) -> None:
        """Test that configured hosts are excluded in the prompt."""
        enricher = make_enricher(mock_client, hosts=["Tom Holland", "Dominic Sandbrook"])

        await enricher.enrich_episodes({"caligula": grouped.episodes["caligula"]}, {})

        messages = mock_client.complete.call_args.args[0]
        assert "Do NOT include the hosts, Tom Holland and Dominic Sandbrook." in messages[1].content


class TestEnrichSeries:
    """Tests for Enricher.enrich_series."""

    @pytest.mark.asyncio
    async def test_enriches_series(self, mock_client: Mock, grouped) -> None:
        """Test a successful series reply."""
        mock_client.complete.return_value = completion(SERIES_REPLY)

        result = await make_enricher(mock_client).enrich_series(grouped.series, {})

        series = grouped.series["nelson-20250901"]
        entry = result.cache[f"nelson-20250901:{series.fingerprint}"]
        assert entry.status == "ok"
        assert entry.prompt_version == "series.enrichment.v1"
        assert entry.series_title == "Nelson: Britain's Greatest Hero"
        assert entry.narrative_summary == "The rise and death of Horatio Nelson."
        assert entry.tonal_descriptors == ["stirring", "tragic"]
        assert result.calls_made == 1

    @pytest.mark.asyncio
    async def test_missing_fields_fall_back(self, mock_client: Mock, grouped) -> None:
        """Test a reply without title or descriptors."""
        mock_client.complete.return_value = completion({"seriesTitle": " ", "narrativeSummary": ""})

        result = await make_enricher(mock_client).enrich_series(grouped.series, {})

        entry = next(iter(result.cache.values()))
        assert entry.series_title == "Nelson"
        assert entry.narrative_summary is None
        assert entry.tonal_descriptors is None

    @pytest.mark.asyncio
    async def test_year_span_from_series(self, mock_client: Mock, grouped) -> None:
        """Test that the entry carries the programmatic year span."""
        mock_client.complete.return_value = completion(SERIES_REPLY)
        series = {
            key: value.model_copy(update={"year_from": 1758, "year_to": 1805, "year_confidence": "medium"})
            for key, value in grouped.series.items()
        }

        result = await make_enricher(mock_client).enrich_series(series, {})

        entry = next(iter(result.cache.values()))
        assert (entry.year_from, entry.year_to, entry.year_confidence) == (1758, 1805, "medium")

    @pytest.mark.asyncio
    async def test_parse_failure_keeps_fallback_title(self, mock_client: Mock, grouped) -> None:
        """Test the error entry for an unparseable series reply."""
        mock_client.complete.return_value = completion("no")

        result = await make_enricher(mock_client).enrich_series(grouped.series, {})

        entry = next(iter(result.cache.values()))
        assert entry.status == "error"
        assert entry.series_title == "Nelson"

    @pytest.mark.asyncio
    async def test_error_entry_retried(self, mock_client: Mock, grouped) -> None:
        """Test that a failed series entry is recomputed."""
        mock_client.complete.return_value = completion(SERIES_REPLY)
        series = grouped.series["nelson-20250901"]
        key = f"nelson-20250901:{series.fingerprint}"
        cache = {
            key: LlmSeriesCacheEntry(
                series_id="nelson-20250901",
                fingerprint=series.fingerprint,
                model="claude-test",
                prompt_version="series.enrichment.v1",
                created_at=FIXED_TIME,
                status="error",
                series_title="Nelson",
            )
        }

        result = await make_enricher(mock_client).enrich_series(grouped.series, cache)

        assert result.calls_made == 1
        assert result.cache[key].status == "ok"
        assert result.cache[key].series_title == "Nelson: Britain's Greatest Hero"

    @pytest.mark.asyncio
    async def test_series_without_summaries(self, mock_client: Mock, grouped) -> None:
        """Test that empty series are skipped with a warning."""
        series = grouped.series["nelson-20250901"]
        empty = series.model_copy(update={"derived": series.derived.model_copy(update={"episode_summaries": []})})

        result = await make_enricher(mock_client).enrich_series({empty.series_id: empty}, {})

        mock_client.complete.assert_not_called()
        assert result.errors[0].level == "warn"
        assert result.errors[0].message == "Series lacks episode summaries; skipping enrichment"

    @pytest.mark.asyncio
    async def test_plan(self, mock_client: Mock, grouped) -> None:
        """Test series plan estimates."""
        result = await make_enricher(mock_client).enrich_series(grouped.series, {}, plan=True)

        assert len(result.planned) == 1
        assert result.planned[0].kind == "series"
        assert result.planned[0].approx_tokens == 5 * 400
        mock_client.complete.assert_not_called()
