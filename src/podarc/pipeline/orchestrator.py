"""Pipeline orchestration: fetch, build, enrich, compose, validate, write.

Every stage before the write is pure with respect to the filesystem.
Artefacts are written only after the composed catalog passes fail-fast
validation, so a failed run leaves the previous snapshot untouched.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from podarc.catalog.cleaning import build_programmatic_episodes
from podarc.catalog.composer import apply_episode_year_spans, compose_catalog
from podarc.catalog.grouper import SeriesOverride, apply_series_year_spans, group_series
from podarc.catalog.models import ErrorLedgerEntry
from podarc.catalog.validator import CatalogDataset, run_validation
from podarc.config.schema import PipelineConfig
from podarc.enrichment.clients import BaseLLMClient
from podarc.enrichment.enricher import Enricher, PlannedCall
from podarc.feeds.models import RssSnapshot
from podarc.feeds.parser import RSSParser
from podarc.pipeline.ledger import ErrorLedger
from podarc.pipeline.store import ArtifactStore
from podarc.slugs.registry import SlugAssignment, assign_slugs
from podarc.utils.errors import ConfigError

logger = logging.getLogger(__name__)

FORCE_ALL = {"all"}
FORCE_EPISODES = {"episodes", "episode"}
FORCE_SERIES = {"series", "series-only"}


@dataclass
class PipelineOptions:
    """Per-run switches (mirrors the ``run`` command's flags)."""

    dry_run: bool = False
    plan: bool = False
    since: str | None = None
    max_llm_calls: int | None = None
    force_llm: str | None = None
    offline: bool = False


@dataclass
class ForceSelection:
    """Which cache entries a run must discard and recompute."""

    all_episodes: bool = False
    all_series: bool = False
    episode_ids: set[str] = field(default_factory=set)
    series_ids: set[str] = field(default_factory=set)


@dataclass
class PipelineReport:
    """Summary of one run."""

    status: str
    new_episodes: int = 0
    episodes: int = 0
    series: int = 0
    episode_calls: int = 0
    series_calls: int = 0
    planned: list[PlannedCall] = field(default_factory=list)
    errors: list[ErrorLedgerEntry] = field(default_factory=list)
    written: bool = False


def parse_force_llm(
    value: str | None, episode_ids: Iterable[str], series_ids: Iterable[str]
) -> ForceSelection:
    """Parse a ``--force-llm`` value.

    The value is a comma list of ``all``, ``episodes``, ``series`` or item
    ids. Ids are kept only when they name a known episode or series.
    """
    selection = ForceSelection()
    if not value:
        return selection

    known_episodes = set(episode_ids)
    known_series = set(series_ids)

    for token in (part.strip() for part in value.split(",")):
        if not token:
            continue
        lowered = token.lower()
        if lowered in FORCE_ALL:
            selection.all_episodes = selection.all_series = True
        elif lowered in FORCE_EPISODES:
            selection.all_episodes = True
        elif lowered in FORCE_SERIES:
            selection.all_series = True
        elif token in known_episodes:
            selection.episode_ids.add(token)
        elif token in known_series:
            selection.series_ids.add(token)
        else:
            logger.warning(f"Ignoring unknown --force-llm id: {token}")

    return selection


class PipelineOrchestrator:
    """Runs the catalog pipeline against one artefact store.

    Example:
        >>> orchestrator = PipelineOrchestrator(store, config, parser=parser, client=client)
        >>> report = await orchestrator.run(PipelineOptions(dry_run=True))
    """

    def __init__(
        self,
        store: ArtifactStore,
        config: PipelineConfig,
        overrides: Iterable[SeriesOverride] = (),
        parser: RSSParser | None = None,
        client: BaseLLMClient | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Artefact store to read from and write to
            config: Pipeline configuration
            overrides: Manual series corrections
            parser: Feed parser (required unless runs are offline)
            client: LLM client (None skips enrichment calls)
        """
        self.store = store
        self.config = config
        self.overrides = list(overrides)
        self.parser = parser
        self.client = client

    async def _fetch(
        self, existing: list, options: PipelineOptions
    ) -> tuple[list, RssSnapshot | None]:
        if options.offline:
            logger.info("Offline run: rebuilding from stored raw episodes")
            return [], None

        if self.parser is None:
            raise ConfigError("No feed configured; set feed_url or run with --offline")

        # feedparser is blocking
        result = await asyncio.to_thread(
            self.parser.fetch_new_episodes, existing, options.since
        )
        return result.new_episodes, result.snapshot

    async def run(self, options: PipelineOptions | None = None) -> PipelineReport:
        """Run the pipeline once.

        Args:
            options: Run switches

        Returns:
            PipelineReport describing what happened

        Raises:
            FeedError: If the feed cannot be fetched
            IntegrityError: If the layers disagree
            CatalogValidationError: If the composed catalog is invalid
        """
        options = options or PipelineOptions()
        ledger = ErrorLedger()

        existing_raw = self.store.load_raw_episodes()
        episode_cache = self.store.load_episode_cache()
        series_cache = self.store.load_series_cache()

        new_raw, snapshot = await self._fetch(existing_raw, options)
        raw_episodes = existing_raw + new_raw

        programmatic = build_programmatic_episodes(raw_episodes)
        grouping = group_series(
            programmatic, self.overrides, max_gap_days=self.config.grouping.max_gap_days
        )
        force = parse_force_llm(options.force_llm, grouping.episodes, grouping.series)

        enricher = Enricher(self.client, hosts=self.config.llm.hosts)
        episode_result = await enricher.enrich_episodes(
            grouping.episodes,
            episode_cache,
            force_ids=force.episode_ids,
            force_all=force.all_episodes,
            plan=options.plan,
            max_calls=options.max_llm_calls,
        )
        ledger.extend(episode_result.errors)

        episodes = apply_episode_year_spans(grouping.episodes, episode_result.cache)
        series = apply_series_year_spans(grouping.series, episodes)

        series_result = await enricher.enrich_series(
            series,
            series_cache,
            force_ids=force.series_ids,
            force_all=force.all_series,
            plan=options.plan,
            max_calls=options.max_llm_calls,
        )
        ledger.extend(series_result.errors)

        report = PipelineReport(
            status="plan" if options.plan else ("dry-run" if options.dry_run else "ok"),
            new_episodes=len(new_raw),
            episodes=len(episodes),
            series=len(series),
            episode_calls=episode_result.calls_made,
            series_calls=series_result.calls_made,
            planned=episode_result.planned + series_result.planned,
            errors=ledger.entries,
        )
        if options.plan:
            return report

        # Series entries for series that no longer exist are dropped
        known_series = set(series)
        series_cache = {
            key: entry
            for key, entry in series_result.cache.items()
            if entry.series_id in known_series
        }

        composed = compose_catalog(
            raw_episodes, episodes, series, episode_result.cache, series_cache
        )
        assignment = assign_slugs(composed.episodes, composed.series)

        run_validation(
            CatalogDataset(
                raw_episodes=[e.to_record() for e in raw_episodes],
                programmatic_episodes=_records(episodes),
                programmatic_series=_records(series),
                episode_cache=_records(episode_result.cache),
                series_cache=_records(series_cache),
                public_episodes=[e.to_record() for e in assignment.episodes],
                public_series=[s.to_record() for s in assignment.series],
            )
        )

        if options.dry_run:
            logger.info("Dry run: skipping filesystem writes")
            return report

        if snapshot is not None:
            self.store.save_snapshot(snapshot)
        self.store.save_raw_episodes(raw_episodes)
        self.store.save_programmatic_episodes(episodes)
        self.store.save_programmatic_series(series)
        self.store.save_episode_cache(episode_result.cache)
        self.store.save_series_cache(series_cache)
        self.store.save_public_episodes(assignment.episodes)
        self.store.save_public_series(assignment.series)
        self.store.save_slug_registry(assignment.registry)
        self.store.append_errors(ledger.entries)

        report.written = True
        logger.info(
            f"Wrote {len(assignment.episodes)} episodes and {len(assignment.series)} series "
            f"to {self.store.output_dir}"
        )
        return report


def _records(items: Mapping) -> dict:
    return {key: item.to_record() for key, item in items.items()}


def rebuild_slugs(store: ArtifactStore, dry_run: bool = False) -> SlugAssignment:
    """Reassign slugs from the persisted public artefacts.

    Args:
        store: Artefact store
        dry_run: Compute without writing

    Returns:
        The new assignment
    """
    assignment = assign_slugs(store.load_public_episodes(), store.load_public_series())
    if not dry_run:
        store.save_public_episodes(assignment.episodes)
        store.save_public_series(assignment.series)
        store.save_slug_registry(assignment.registry)
    logger.info(f"Assigned {len(assignment.registry)} slugs")
    return assignment
