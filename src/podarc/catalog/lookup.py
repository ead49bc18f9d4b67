"""Read-side access to the published catalog.

``CatalogContext`` loads the public artefacts on first use and keeps them
until ``invalidate()`` is called. Nothing is cached at module level, so two
contexts over different directories never interfere.
"""

import logging
from pathlib import Path

from podarc.catalog.models import PublicEpisode, PublicSeries, SlugRegistryEntry
from podarc.utils.jsonio import read_json

logger = logging.getLogger(__name__)


class CatalogContext:
    """Slug and id lookups over ``public/`` artefacts.

    Example:
        >>> context = CatalogContext(Path("public"))
        >>> episode = context.get_episode_by_slug("battle-nile")
    """

    def __init__(self, public_dir: Path):
        self.public_dir = Path(public_dir)
        self._episodes: dict[str, PublicEpisode] | None = None
        self._series: dict[str, PublicSeries] | None = None
        self._registry: dict[str, SlugRegistryEntry] | None = None

    def invalidate(self) -> None:
        """Drop loaded data so the next lookup re-reads the files."""
        self._episodes = None
        self._series = None
        self._registry = None

    @property
    def episodes(self) -> dict[str, PublicEpisode]:
        if self._episodes is None:
            records = read_json(self.public_dir / "episodes.json", [])
            self._episodes = {
                episode.id: episode for episode in (PublicEpisode.model_validate(r) for r in records)
            }
            logger.debug(f"Loaded {len(self._episodes)} public episodes")
        return self._episodes

    @property
    def series(self) -> dict[str, PublicSeries]:
        if self._series is None:
            records = read_json(self.public_dir / "series.json", [])
            self._series = {
                entry.id: entry for entry in (PublicSeries.model_validate(r) for r in records)
            }
            logger.debug(f"Loaded {len(self._series)} public series")
        return self._series

    @property
    def registry(self) -> dict[str, SlugRegistryEntry]:
        if self._registry is None:
            records = read_json(self.public_dir / "slug-registry.json", {})
            self._registry = {
                slug: SlugRegistryEntry.model_validate(record) for slug, record in records.items()
            }
        return self._registry

    def get_episode_by_id(self, episode_id: str) -> PublicEpisode | None:
        return self.episodes.get(episode_id)

    def get_series_by_id(self, series_id: str) -> PublicSeries | None:
        return self.series.get(series_id)

    def get_episode_by_slug(self, slug: str) -> PublicEpisode | None:
        """Resolve an episode slug; unknown slugs are tried as ids."""
        entry = self.registry.get(slug)
        if entry is not None:
            return self.episodes.get(entry.id) if entry.type == "episode" else None
        return self.episodes.get(slug)

    def get_series_by_slug(self, slug: str) -> PublicSeries | None:
        """Resolve a series slug; unknown slugs are tried as ids."""
        entry = self.registry.get(slug)
        if entry is not None:
            return self.series.get(entry.id) if entry.type == "series" else None
        return self.series.get(slug)

    def episodes_for_series(self, series_id: str) -> list[PublicEpisode]:
        """Return a series' members in membership order."""
        series = self.series.get(series_id)
        if series is None:
            return []
        return [self.episodes[i] for i in series.episode_ids if i in self.episodes]

    def list_episode_slugs(self) -> list[str]:
        return sorted(slug for slug, entry in self.registry.items() if entry.type == "episode")

    def list_series_slugs(self) -> list[str]:
        return sorted(slug for slug, entry in self.registry.items() if entry.type == "series")
