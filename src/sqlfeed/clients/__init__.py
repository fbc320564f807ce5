"""Client modules for the source database and the search index feed."""

from sqlfeed.clients.database_client import DatabaseClient, DatabaseIOError, QueryCursor
from sqlfeed.clients.feed_pusher import FeedPusher
from sqlfeed.clients.search_client import (
    AzureSearchError,
    AzureSearchFeedPusher,
    create_feed_index,
    create_search_client,
)

__all__ = [
    "DatabaseClient",
    "DatabaseIOError",
    "QueryCursor",
    "FeedPusher",
    "AzureSearchError",
    "AzureSearchFeedPusher",
    "create_feed_index",
    "create_search_client",
]
