"""Artefact store: the on-disk layout of a catalog.

Layout under the output directory::

    data/episodes-raw.json            raw episodes (append-only list)
    data/episodes-programmatic.json   programmatic episodes by id
    data/series-programmatic.json     programmatic series by id
    data/episodes-llm.json            episode LLM cache by cache key
    data/series-llm.json              series LLM cache by cache key
    data/source/rss.<date>.json       daily feed snapshot
    data/errors.jsonl                 error ledger (append-only)
    public/episodes.json              public episodes
    public/series.json                public series
    public/slug-registry.json         slug -> {type, id}

Missing files read as empty.
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from podarc.catalog.models import (
    ErrorLedgerEntry,
    LlmEpisodeCacheEntry,
    LlmSeriesCacheEntry,
    ProgrammaticEpisode,
    ProgrammaticSeries,
    PublicEpisode,
    PublicSeries,
    SlugRegistryEntry,
)
from podarc.feeds.models import RawEpisode, RssSnapshot
from podarc.utils.errors import StorageError
from podarc.utils.jsonio import append_json_lines, read_json, write_json_atomic

logger = logging.getLogger(__name__)


class ArtifactStore:
    """Read and write catalog artefacts.

    Example:
        >>> store = ArtifactStore(Path("./catalog"))
        >>> raw = store.load_raw_episodes()
        >>> store.save_raw_episodes(raw)
    """

    def __init__(self, output_dir: Path):
        """Initialize the store.

        Args:
            output_dir: Directory holding ``data/`` and ``public/``
        """
        self.output_dir = Path(output_dir)

    @property
    def data_dir(self) -> Path:
        return self.output_dir / "data"

    @property
    def public_dir(self) -> Path:
        return self.output_dir / "public"

    @property
    def raw_episodes_path(self) -> Path:
        return self.data_dir / "episodes-raw.json"

    @property
    def programmatic_episodes_path(self) -> Path:
        return self.data_dir / "episodes-programmatic.json"

    @property
    def programmatic_series_path(self) -> Path:
        return self.data_dir / "series-programmatic.json"

    @property
    def episode_cache_path(self) -> Path:
        return self.data_dir / "episodes-llm.json"

    @property
    def series_cache_path(self) -> Path:
        return self.data_dir / "series-llm.json"

    @property
    def errors_path(self) -> Path:
        return self.data_dir / "errors.jsonl"

    @property
    def public_episodes_path(self) -> Path:
        return self.public_dir / "episodes.json"

    @property
    def public_series_path(self) -> Path:
        return self.public_dir / "series.json"

    @property
    def slug_registry_path(self) -> Path:
        return self.public_dir / "slug-registry.json"

    def snapshot_path(self, date: str) -> Path:
        """Path of the feed snapshot for a ``YYYY-MM-DD`` date."""
        return self.data_dir / "source" / f"rss.{date}.json"

    # Reading

    def read_records(self, path: Path, fallback: Any) -> Any:
        """Read a JSON artefact without model validation."""
        return read_json(path, fallback)

    def _load_list(self, path: Path, model: type) -> list:
        records = read_json(path, [])
        try:
            return [model.model_validate(record) for record in records]
        except ValidationError as e:
            raise StorageError(f"Invalid record in {path}: {e}") from e

    def _load_mapping(self, path: Path, model: type) -> dict:
        records = read_json(path, {})
        try:
            return {key: model.model_validate(record) for key, record in records.items()}
        except ValidationError as e:
            raise StorageError(f"Invalid record in {path}: {e}") from e

    def load_raw_episodes(self) -> list[RawEpisode]:
        return self._load_list(self.raw_episodes_path, RawEpisode)

    def load_programmatic_episodes(self) -> dict[str, ProgrammaticEpisode]:
        return self._load_mapping(self.programmatic_episodes_path, ProgrammaticEpisode)

    def load_programmatic_series(self) -> dict[str, ProgrammaticSeries]:
        return self._load_mapping(self.programmatic_series_path, ProgrammaticSeries)

    def load_episode_cache(self) -> dict[str, LlmEpisodeCacheEntry]:
        return self._load_mapping(self.episode_cache_path, LlmEpisodeCacheEntry)

    def load_series_cache(self) -> dict[str, LlmSeriesCacheEntry]:
        return self._load_mapping(self.series_cache_path, LlmSeriesCacheEntry)

    def load_public_episodes(self) -> list[PublicEpisode]:
        return self._load_list(self.public_episodes_path, PublicEpisode)

    def load_public_series(self) -> list[PublicSeries]:
        return self._load_list(self.public_series_path, PublicSeries)

    def load_slug_registry(self) -> dict[str, SlugRegistryEntry]:
        return self._load_mapping(self.slug_registry_path, SlugRegistryEntry)

    # Writing

    def _write_list(self, path: Path, records: list) -> None:
        write_json_atomic(path, [record.to_record() for record in records])
        logger.debug(f"Wrote {len(records)} records to {path}")

    def _write_mapping(self, path: Path, records: Mapping[str, Any]) -> None:
        write_json_atomic(path, {key: record.to_record() for key, record in records.items()})
        logger.debug(f"Wrote {len(records)} records to {path}")

    def save_snapshot(self, snapshot: RssSnapshot) -> Path:
        path = self.snapshot_path(snapshot.fetched_at[:10])
        write_json_atomic(path, snapshot.to_record())
        return path

    def save_raw_episodes(self, episodes: list[RawEpisode]) -> None:
        self._write_list(self.raw_episodes_path, episodes)

    def save_programmatic_episodes(self, episodes: Mapping[str, ProgrammaticEpisode]) -> None:
        self._write_mapping(self.programmatic_episodes_path, episodes)

    def save_programmatic_series(self, series: Mapping[str, ProgrammaticSeries]) -> None:
        self._write_mapping(self.programmatic_series_path, series)

    def save_episode_cache(self, cache: Mapping[str, LlmEpisodeCacheEntry]) -> None:
        self._write_mapping(self.episode_cache_path, cache)

    def save_series_cache(self, cache: Mapping[str, LlmSeriesCacheEntry]) -> None:
        self._write_mapping(self.series_cache_path, cache)

    def save_public_episodes(self, episodes: list[PublicEpisode]) -> None:
        self._write_list(self.public_episodes_path, episodes)

    def save_public_series(self, series: list[PublicSeries]) -> None:
        self._write_list(self.public_series_path, series)

    def save_slug_registry(self, registry: Mapping[str, SlugRegistryEntry]) -> None:
        self._write_mapping(self.slug_registry_path, registry)

    def append_errors(self, entries: list[ErrorLedgerEntry]) -> None:
        """Append ledger entries to ``errors.jsonl``."""
        if not entries:
            return
        append_json_lines(self.errors_path, [entry.to_record() for entry in entries])
        logger.debug(f"Appended {len(entries)} ledger entries to {self.errors_path}")
