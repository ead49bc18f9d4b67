"""RSS feed parser using feedparser."""

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import feedparser

from podarc.feeds.models import FeedFetchResult, RawEpisode, RssSnapshot, SourceMetadata
from podarc.utils.dates import parse_iso, to_iso, utc_now_iso
from podarc.utils.errors import FeedParseError, NetworkError
from podarc.utils.retry import ConnectionError as RetryConnectionError
from podarc.utils.retry import RetryableError, with_network_retry

logger = logging.getLogger(__name__)


class RSSParser:
    """Parses RSS feeds and extracts raw episode records.

    Example:
        parser = RSSParser("https://example.com/feed.xml")
        result = parser.fetch_new_episodes(existing_raw_episodes)
        for episode in result.new_episodes:
            print(episode.title)
    """

    USER_AGENT = "podarc/0.1 (+https://github.com/podarc)"

    def __init__(self, feed_url: str, user_agent: str | None = None) -> None:
        """Initialize the RSS parser.

        Args:
            feed_url: URL of the podcast feed
            user_agent: Custom user agent string for requests
        """
        self.feed_url = feed_url
        self.user_agent = user_agent or self.USER_AGENT

    def fetch_feed(self) -> feedparser.FeedParserDict:
        """Download and parse the feed.

        Unreachable hosts and 5xx responses are retried with backoff.

        Returns:
            Parsed feed

        Raises:
            NetworkError: If the feed host cannot be reached
            FeedParseError: If the response is not a usable feed
        """
        try:
            feed = self._download()
        except RetryableError as e:
            raise NetworkError(f"Failed to reach feed {self.feed_url}: {e}") from e

        status = feed.get("status")
        if status is not None and status >= 400:
            raise NetworkError(f"Feed request failed with HTTP {status}: {self.feed_url}")

        return self._check_feed(feed)

    @with_network_retry()
    def _download(self) -> feedparser.FeedParserDict:
        logger.info(f"Fetching feed: {self.feed_url}")
        feed = feedparser.parse(self.feed_url, agent=self.user_agent)

        status = feed.get("status")
        if status is not None and status >= 500:
            raise RetryConnectionError(f"HTTP {status}")
        if feed.bozo and not feed.entries and isinstance(feed.get("bozo_exception"), OSError):
            raise RetryConnectionError(str(feed.get("bozo_exception")))
        return feed

    def parse_string(self, content: str) -> feedparser.FeedParserDict:
        """Parse feed content that has already been downloaded."""
        return self._check_feed(feedparser.parse(content))

    def fetch_new_episodes(
        self,
        existing: list[RawEpisode],
        since: str | None = None,
        feed: feedparser.FeedParserDict | None = None,
    ) -> FeedFetchResult:
        """Fetch the feed and return entries not yet in ``existing``.

        Args:
            existing: Raw episodes already persisted
            since: Optional ISO timestamp; older entries are left out
            feed: Pre-parsed feed (skips the download)

        Returns:
            New raw episodes plus the snapshot of every feed item
        """
        if feed is None:
            feed = self.fetch_feed()

        fetched_at = utc_now_iso()
        known_guids = {episode.source.guid for episode in existing}

        since_dt = None
        if since:
            try:
                since_dt = parse_iso(since)
            except ValueError:
                logger.warning(f"Ignoring invalid --since value: {since}")

        new_episodes: list[RawEpisode] = []
        snapshot_items: list[dict[str, Any]] = []

        for entry in feed.entries:
            snapshot_items.append(self._snapshot_item(entry))

            episode = self.normalise_entry(entry, fetched_at)
            if episode is None:
                logger.debug(f"Skipping incomplete entry: {entry.get('title')}")
                continue

            if episode.source.guid in known_guids:
                continue

            if since_dt is not None and parse_iso(episode.published_at) < since_dt:
                continue

            known_guids.add(episode.source.guid)
            new_episodes.append(episode)

        logger.info(f"Feed returned {len(feed.entries)} items, {len(new_episodes)} new")

        return FeedFetchResult(
            new_episodes=new_episodes,
            snapshot=RssSnapshot(fetched_at=fetched_at, items=snapshot_items),
        )

    def normalise_entry(self, entry: feedparser.FeedParserDict, seen_at: str) -> RawEpisode | None:
        """Convert a feed entry to a RawEpisode.

        Returns None when the entry lacks a guid, a publish date or an
        enclosure.
        """
        guid = (entry.get("id") or entry.get("guid") or "").strip()
        published_at = self._published_at(entry)
        enclosure_url = self._enclosure_url(entry)

        if not guid or not published_at or not enclosure_url:
            return None

        return RawEpisode(
            episode_id=guid,
            title=entry.get("title") or "",
            published_at=published_at,
            description=self._description(entry),
            audio_url=enclosure_url,
            rss_last_seen_at=seen_at,
            source=SourceMetadata(
                guid=guid,
                itunes_episode=self._itunes_episode(entry),
                platform_id=entry.get("megaphone_id") or None,
                enclosure_url=enclosure_url,
            ),
        )

    def _check_feed(self, feed: feedparser.FeedParserDict) -> feedparser.FeedParserDict:
        if feed.bozo and not feed.entries:
            error = feed.get("bozo_exception")
            if isinstance(error, OSError):
                raise NetworkError(f"Failed to reach feed {self.feed_url}: {error}") from error
            raise FeedParseError(f"Failed to parse feed {self.feed_url}: {error}")

        if feed.bozo:
            logger.warning(f"Feed parsing warning: {feed.get('bozo_exception')}")

        return feed

    def _published_at(self, entry: feedparser.FeedParserDict) -> str | None:
        parsed = entry.get("published_parsed")
        if parsed:
            try:
                return to_iso(datetime(*parsed[:6], tzinfo=timezone.utc))
            except (TypeError, ValueError):
                pass

        published = entry.get("published")
        if published:
            try:
                return to_iso(parsedate_to_datetime(published))
            except (TypeError, ValueError):
                return None

        return None

    def _enclosure_url(self, entry: feedparser.FeedParserDict) -> str | None:
        for enclosure in entry.get("enclosures", []):
            url = enclosure.get("href") or enclosure.get("url")
            if url:
                return url

        for link in entry.get("links", []):
            if link.get("rel") == "enclosure" and link.get("href"):
                return link["href"]

        return None

    def _description(self, entry: feedparser.FeedParserDict) -> str:
        # content:encoded carries the full show notes when present
        content = entry.get("content")
        if content and content[0].get("value"):
            return content[0]["value"]
        return entry.get("description") or entry.get("summary") or ""

    def _itunes_episode(self, entry: feedparser.FeedParserDict) -> int | None:
        value = entry.get("itunes_episode")
        if value is None:
            return None
        try:
            return int(str(value).strip())
        except ValueError:
            return None

    def _snapshot_item(self, entry: feedparser.FeedParserDict) -> dict[str, Any]:
        return {
            "guid": entry.get("id") or entry.get("guid"),
            "title": entry.get("title"),
            "pubDate": entry.get("published"),
            "enclosureUrl": self._enclosure_url(entry),
            "itunesEpisode": entry.get("itunes_episode"),
            "description": self._description(entry),
        }
