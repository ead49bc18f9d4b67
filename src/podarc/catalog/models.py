"""Catalog records: programmatic, LLM cache, public and registry models."""

from typing import Any, Literal

from pydantic import Field

from podarc.feeds.models import RecordModel
from podarc.utils.dates import utc_now_iso

YearConfidence = Literal["high", "medium", "low", "unknown"]
GroupingConfidence = Literal["high", "medium", "low"]
CacheStatus = Literal["ok", "skipped", "error"]
LedgerLevel = Literal["info", "warn", "error"]
SlugType = Literal["episode", "series"]

YEAR_CONFIDENCE_RANK: dict[str, int] = {
    "high": 3,
    "medium": 2,
    "low": 1,
    "unknown": 0,
}

# Sort key for series with no dated member
FAR_FUTURE_SORT_KEY = "9999-12-31T23:59:59.999Z"


def weakest_confidence(values: list[YearConfidence | None]) -> YearConfidence:
    """Return the lowest-ranked confidence; missing values count as unknown."""
    result: YearConfidence = "high"
    for value in values:
        candidate = value or "unknown"
        if YEAR_CONFIDENCE_RANK[candidate] < YEAR_CONFIDENCE_RANK[result]:
            result = candidate
    return result


def normalise_year_range(
    year_from: int | None, year_to: int | None
) -> tuple[int | None, int | None]:
    """Swap an inverted range so that year_from <= year_to."""
    if year_from is not None and year_to is not None and year_from > year_to:
        return year_to, year_from
    return year_from, year_to


def cache_key(entity_id: str, fingerprint: str) -> str:
    """Build the ``"<id>:<fingerprint>"`` key used by both LLM caches."""
    return f"{entity_id}:{fingerprint}"


class ProgrammaticEpisode(RecordModel):
    """Episode derived from a raw record by text cleaning and grouping."""

    episode_id: str
    title: str
    published_at: str
    description: str = ""
    audio_url: str
    clean_title: str
    clean_description_markdown: str = ""
    clean_description_text: str = ""
    description_blocks: list[str] = Field(default_factory=list)
    credits: dict[str, list[str]] = Field(default_factory=dict)
    fingerprint: str
    cleanup_version: int
    part: int | None = None
    series_id: str | None = None
    series_key: str | None = None
    series_key_raw: str | None = None
    series_grouping_confidence: GroupingConfidence = "low"
    rss_last_seen_at: str
    itunes_episode: int | None = None
    year_from: int | None = None
    year_to: int | None = None
    year_confidence: YearConfidence = "unknown"


class EpisodeSummary(RecordModel):
    """Prompt input describing one member of a series."""

    part: int | None = None
    clean_title: str
    clean_description_text: str


class SeriesDerived(RecordModel):
    """Values computed from a series' members."""

    episode_count: int = 0
    episode_summaries: list[EpisodeSummary] = Field(default_factory=list)


class ProgrammaticSeries(RecordModel):
    """A grouped narrative arc."""

    series_id: str
    series_key: str | None = None
    series_key_raw: str | None = None
    series_title_fallback: str
    series_grouping_confidence: GroupingConfidence = "high"
    episode_ids: list[str] = Field(default_factory=list)
    member_episode_fingerprints: list[str] = Field(default_factory=list)
    fingerprint: str
    year_from: int | None = None
    year_to: int | None = None
    year_confidence: YearConfidence = "unknown"
    derived: SeriesDerived = Field(default_factory=SeriesDerived)
    rss_last_seen_at: str | None = None


class LlmEpisodeCacheEntry(RecordModel):
    """Cached LLM metadata for one episode fingerprint."""

    episode_id: str
    fingerprint: str
    model: str
    prompt_version: str
    created_at: str
    status: CacheStatus
    notes: str | None = None
    key_people: list[str] = Field(default_factory=list)
    key_places: list[str] = Field(default_factory=list)
    key_themes: list[str] = Field(default_factory=list)
    year_from: int | None = None
    year_to: int | None = None
    year_confidence: YearConfidence = "unknown"

    @property
    def cache_key(self) -> str:
        return cache_key(self.episode_id, self.fingerprint)


class LlmSeriesCacheEntry(RecordModel):
    """Cached LLM metadata for one series fingerprint."""

    series_id: str
    fingerprint: str
    model: str
    prompt_version: str
    created_at: str
    status: CacheStatus
    notes: str | None = None
    series_title: str | None = None
    narrative_summary: str | None = None
    tonal_descriptors: list[str] | None = None
    year_from: int | None = None
    year_to: int | None = None
    year_confidence: YearConfidence = "unknown"

    @property
    def cache_key(self) -> str:
        return cache_key(self.series_id, self.fingerprint)


class PublicEpisode(RecordModel):
    """Published episode record.

    ``slug`` stays None until the registry step assigns one.
    """

    id: str
    episode_id: str
    slug: str | None = None
    title: str
    published_at: str
    description: str
    audio_url: str
    rss_last_seen_at: str
    itunes_episode: int | None = None
    clean_title: str
    clean_description_markdown: str
    clean_description_text: str
    description_blocks: list[str] = Field(default_factory=list)
    credits: dict[str, list[str]] = Field(default_factory=dict)
    fingerprint: str
    cleanup_version: int
    part: int | None = None
    series_id: str | None = None
    series_key: str | None = None
    series_key_raw: str | None = None
    series_grouping_confidence: GroupingConfidence
    key_people: list[str] = Field(default_factory=list)
    key_places: list[str] = Field(default_factory=list)
    key_themes: list[str] = Field(default_factory=list)
    year_from: int | None = None
    year_to: int | None = None
    year_confidence: YearConfidence = "unknown"


class PublicSeries(RecordModel):
    """Published series record."""

    id: str
    series_id: str
    slug: str | None = None
    series_key: str | None = None
    series_key_raw: str | None = None
    series_grouping_confidence: GroupingConfidence
    episode_ids: list[str] = Field(default_factory=list)
    year_from: int | None = None
    year_to: int | None = None
    year_confidence: YearConfidence = "unknown"
    fingerprint: str
    member_episode_fingerprints: list[str] = Field(default_factory=list)
    derived: SeriesDerived = Field(default_factory=SeriesDerived)
    series_title: str
    narrative_summary: str | None = None
    tonal_descriptors: list[str] | None = None
    rss_last_seen_at: str | None = None


class SlugRegistryEntry(RecordModel):
    """Reverse lookup target for a slug."""

    type: SlugType
    id: str


class ErrorLedgerEntry(RecordModel):
    """One recoverable problem recorded during a run."""

    stage: str
    item_id: str
    when: str
    level: LedgerLevel
    message: str
    details: dict[str, Any] | None = None

    @classmethod
    def create(
        cls,
        stage: str,
        item_id: str,
        level: LedgerLevel,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> "ErrorLedgerEntry":
        """Build an entry stamped with the current time."""
        return cls(
            stage=stage,
            item_id=item_id,
            when=utc_now_iso(),
            level=level,
            message=message,
            details=details,
        )
