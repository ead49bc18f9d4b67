"""Shared fixtures for podarc tests."""

from collections.abc import Callable
from pathlib import Path

import pytest

from podarc.catalog.cleaning import build_programmatic_episode, build_programmatic_episodes
from podarc.catalog.composer import compose_catalog
from podarc.catalog.grouper import group_series
from podarc.catalog.models import ProgrammaticEpisode
from podarc.feeds.models import RawEpisode, SourceMetadata
from podarc.pipeline.store import ArtifactStore
from podarc.slugs.registry import assign_slugs
from podarc.utils.retry import TEST_RETRY_CONFIG

SEEN_AT = "2024-06-01T00:00:00.000Z"


@pytest.fixture(autouse=True)
def fast_retry_config(monkeypatch):
    """Use fast retry configuration for all tests to avoid long delays."""
    monkeypatch.setattr("podarc.utils.retry.DEFAULT_RETRY_CONFIG", TEST_RETRY_CONFIG)


def make_raw(
    episode_id: str,
    title: str,
    published_at: str,
    description: str = "",
) -> RawEpisode:
    """Build a raw episode with a predictable enclosure."""
    audio_url = f"https://cdn.example.com/{episode_id}.mp3"
    return RawEpisode(
        episode_id=episode_id,
        title=title,
        published_at=published_at,
        description=description,
        audio_url=audio_url,
        rss_last_seen_at=SEEN_AT,
        source=SourceMetadata(guid=episode_id, enclosure_url=audio_url),
    )


def make_episode(
    episode_id: str,
    title: str,
    published_at: str,
    description: str = "",
) -> ProgrammaticEpisode:
    """Build an ungrouped programmatic episode."""
    return build_programmatic_episode(make_raw(episode_id, title, published_at, description))


@pytest.fixture
def raw_factory() -> Callable[..., RawEpisode]:
    return make_raw


@pytest.fixture
def episode_factory() -> Callable[..., ProgrammaticEpisode]:
    return make_episode


@pytest.fixture
def nelson_raw() -> list[RawEpisode]:
    """Five weekly Nelson parts plus one unrelated standalone."""
    return [
        make_raw("nelson-1", "608. Nelson: Britain's Greatest Hero (Part 1)", "2025-09-01T04:00:00.000Z",
                 "<p>The boyhood of Horatio Nelson.</p>"),
        make_raw("nelson-2", "609. Nelson: The Nile (Part 2)", "2025-09-04T04:00:00.000Z",
                 "<p>Victory at Aboukir Bay.</p>"),
        make_raw("nelson-3", "610. Nelson: Emma (Part 3)", "2025-09-08T04:00:00.000Z",
                 "<p>Naples and Emma Hamilton.</p>"),
        make_raw("nelson-4", "611. Nelson: Copenhagen (Part 4)", "2025-09-11T04:00:00.000Z",
                 "<p>A blind eye at Copenhagen.</p>"),
        make_raw("nelson-5", "612. Nelson: The Final Showdown (Part 5)", "2025-09-15T04:00:00.000Z",
                 "<p>The road to Trafalgar.</p><p>Producer: Theo Young-Smith</p>"),
        make_raw("caligula", "613. Caligula", "2025-09-18T04:00:00.000Z",
                 "<p>The mad emperor.</p>"),
    ]


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    path = tmp_path / "catalog"
    path.mkdir()
    return path


SAMPLE_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd">
  <channel>
    <title>History Podcast</title>
    <item>
      <title>609. Nelson: The Nile (Part 2)</title>
      <guid isPermaLink="false">guid-609</guid>
      <pubDate>Thu, 04 Sep 2025 04:00:00 GMT</pubDate>
      <description><![CDATA[<p>Victory at Aboukir Bay.</p>]]></description>
      <enclosure url="https://cdn.example.com/609.mp3" type="audio/mpeg" length="1"/>
      <itunes:episode>609</itunes:episode>
    </item>
    <item>
      <title>608. Nelson: Britain's Greatest Hero (Part 1)</title>
      <guid isPermaLink="false">guid-608</guid>
      <pubDate>Mon, 01 Sep 2025 04:00:00 GMT</pubDate>
      <description><![CDATA[<p>The boyhood of Horatio Nelson.</p>]]></description>
      <enclosure url="https://cdn.example.com/608.mp3" type="audio/mpeg" length="1"/>
    </item>
    <item>
      <title>Trailer</title>
      <guid isPermaLink="false">guid-trailer</guid>
      <pubDate>Sun, 31 Aug 2025 04:00:00 GMT</pubDate>
      <description>No audio here.</description>
    </item>
  </channel>
</rss>
"""


@pytest.fixture
def sample_feed() -> str:
    return SAMPLE_FEED


@pytest.fixture
def sample_config_dict(tmp_path: Path) -> dict:
    return {
        "version": "1",
        "feed_url": "https://example.com/feed.xml",
        "output_dir": str(tmp_path / "catalog"),
        "log_level": "INFO",
        "llm": {"provider": "claude", "primary_model": "claude-sonnet-4-5"},
        "grouping": {"max_gap_days": 14},
    }


@pytest.fixture
def published_store(output_dir: Path, nelson_raw: list[RawEpisode]) -> ArtifactStore:
    """An artefact store holding a complete, valid Nelson catalog."""
    grouped = group_series(build_programmatic_episodes(nelson_raw))
    composed = compose_catalog(nelson_raw, grouped.episodes, grouped.series, {}, {})
    assignment = assign_slugs(composed.episodes, composed.series)

    store = ArtifactStore(output_dir)
    store.save_raw_episodes(nelson_raw)
    store.save_programmatic_episodes(grouped.episodes)
    store.save_programmatic_series(grouped.series)
    store.save_episode_cache({})
    store.save_series_cache({})
    store.save_public_episodes(assignment.episodes)
    store.save_public_series(assignment.series)
    store.save_slug_registry(assignment.registry)
    return store
