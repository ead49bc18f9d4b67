"""Feed ingestion and RSS parsing for podarc."""

from podarc.feeds.models import FeedFetchResult, RawEpisode, RecordModel, RssSnapshot, SourceMetadata
from podarc.feeds.parser import RSSParser

__all__ = [
    "RecordModel",
    "RawEpisode",
    "SourceMetadata",
    "RssSnapshot",
    "FeedFetchResult",
    "RSSParser",
]
