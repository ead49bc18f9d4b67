"""Data models for raw feed records."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RecordModel(BaseModel):
    """Base for persisted records.

    Attributes are snake_case in Python and camelCase in the JSON artefacts.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class SourceMetadata(RecordModel):
    """Where a raw episode came from in the feed."""

    model_config = ConfigDict(frozen=True)

    guid: str
    itunes_episode: int | None = None
    platform_id: str | None = None
    enclosure_url: str


class RawEpisode(RecordModel):
    """Immutable record of one feed entry.

    Created once per fetch and appended to the raw list; ``episode_id`` is
    the trimmed feed GUID and is unique across the list.
    """

    model_config = ConfigDict(frozen=True)

    episode_id: str
    title: str
    published_at: str
    description: str = ""
    audio_url: str
    rss_last_seen_at: str
    source: SourceMetadata


class RssSnapshot(RecordModel):
    """Daily copy of what the feed returned."""

    fetched_at: str
    items: list[dict[str, Any]] = Field(default_factory=list)


class FeedFetchResult(BaseModel):
    """Outcome of one feed fetch."""

    new_episodes: list[RawEpisode] = Field(default_factory=list)
    snapshot: RssSnapshot
