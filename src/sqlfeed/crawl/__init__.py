"""Crawl module: listing database rows as document records."""

from sqlfeed.crawl.buffered_pusher import BufferedPusher
from sqlfeed.crawl.columns import SpecialColumn
from sqlfeed.crawl.full_crawl import CrawlError, CrawlState, FullCrawler
from sqlfeed.crawl.incremental_crawl import IncrementalCrawler
from sqlfeed.crawl.metadata_columns import AllColumns, MetadataColumns
from sqlfeed.crawl.row_mapper import RowMapper
from sqlfeed.crawl.unique_key import RowMappingError, UniqueKey

__all__ = [
    "BufferedPusher",
    "SpecialColumn",
    "CrawlError",
    "CrawlState",
    "FullCrawler",
    "IncrementalCrawler",
    "AllColumns",
    "MetadataColumns",
    "RowMapper",
    "RowMappingError",
    "UniqueKey",
]
