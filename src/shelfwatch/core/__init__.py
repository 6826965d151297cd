"""核心业务逻辑."""

from shelfwatch.core.fetcher import FeedFetcher, FetchResult
from shelfwatch.core.ingest import IngestionRunner, IngestPolicy
from shelfwatch.core.store import SourceStore

__all__ = [
    "FeedFetcher",
    "FetchResult",
    "IngestPolicy",
    "IngestionRunner",
    "SourceStore",
]
