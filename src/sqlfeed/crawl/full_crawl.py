"""Full crawl: list every document once per cycle."""

import logging
from enum import Enum

from sqlfeed.clients.database_client import DatabaseClient, DatabaseIOError
from sqlfeed.clients.feed_pusher import FeedPusher
from sqlfeed.crawl.buffered_pusher import BufferedPusher
from sqlfeed.crawl.row_mapper import RowMapper
from sqlfeed.crawl.unique_key import RowMappingError

logger = logging.getLogger(__name__)


class CrawlState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class CrawlError(IOError):
    """Raised when a crawl cycle fails on a query or on a row."""

    pass


class FullCrawler:
    """Streams the every-doc-id query into the feed pusher."""

    def __init__(
        self,
        db_client: DatabaseClient,
        row_mapper: RowMapper,
        every_doc_id_sql: str,
        batch_size: int,
        include_metadata: bool = False,
    ):
        self._db_client = db_client
        self._row_mapper = row_mapper
        self._every_doc_id_sql = every_doc_id_sql
        self._batch_size = batch_size
        self._include_metadata = include_metadata
        self.state = CrawlState.IDLE

    def get_doc_ids(self, pusher: FeedPusher) -> int:
        """
        List all documents and push them in batches.

        Args:
            pusher: Receiver of the document record batches.

        Returns:
            Number of records pushed.

        Raises:
            CrawlError: If the query or a row fails.
        """
        self.state = CrawlState.RUNNING
        logger.info("Starting full crawl")
        outstream = BufferedPusher(pusher, self._batch_size)
        total_records = 0

        try:
            with self._db_client.open_stream(self._every_doc_id_sql) as cursor:
                for row in cursor:
                    record = self._row_mapper.to_record(row, include_metadata=self._include_metadata)
                    logger.debug(f"doc id: {record.doc_id}")
                    outstream.add(record)
                    total_records += 1
            outstream.flush()
        except (DatabaseIOError, RowMappingError) as e:
            self.state = CrawlState.FAILED
            raise CrawlError(f"Full crawl failed after {total_records} records: {e}") from e
        except Exception:
            self.state = CrawlState.FAILED
            raise

        self.state = CrawlState.DONE
        logger.info(f"Full crawl complete. Records pushed: {total_records}")
        return total_records
