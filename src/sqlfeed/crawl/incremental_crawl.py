"""Incremental crawl: list documents changed since the last cycle.

The update query receives the watermark as its only bound parameter,
`:last_update`. When the query returns a FEED_TIMESTAMP column the watermark
moves to the newest value seen; otherwise it moves to the current time.
Timestamp-based listing does not guarantee that every change is picked up;
some updates may only reach the index with the next full crawl.
"""

import logging
import threading
from datetime import date, datetime, time, timezone
from typing import Any, Callable, Optional

import pytz
from sqlalchemy.types import DateTime

from sqlfeed.clients.database_client import DatabaseClient, DatabaseIOError
from sqlfeed.clients.feed_pusher import FeedPusher
from sqlfeed.config.configuration import ConfigurationError
from sqlfeed.crawl.buffered_pusher import BufferedPusher
from sqlfeed.crawl.columns import SpecialColumn
from sqlfeed.crawl.full_crawl import CrawlError, CrawlState
from sqlfeed.crawl.row_mapper import RowMapper
from sqlfeed.crawl.unique_key import RowMappingError, parse_iso_timestamp

logger = logging.getLogger(__name__)

WATERMARK_PARAM = "last_update"


def resolve_timezone(name: str) -> Optional[pytz.BaseTzInfo]:
    """Timezone used for naive database timestamps; None means the machine's zone."""
    if not name:
        return None
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError as e:
        raise ConfigurationError(f"Unknown update timestamp timezone: {name}") from e


class IncrementalCrawler:
    """Owns the watermark of one incremental source. Runs one cycle at a time."""

    def __init__(
        self,
        db_client: DatabaseClient,
        row_mapper: RowMapper,
        update_sql: str,
        batch_size: int,
        include_metadata: bool = False,
        timezone_name: str = "",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the incremental crawler.

        Args:
            db_client: Source database client.
            row_mapper: Row to record mapper.
            update_sql: Query selecting rows changed after `:last_update`.
            batch_size: Records per pushed batch.
            include_metadata: Attach metadata to each record.
            timezone_name: Zone of naive database timestamps (empty for local).
            clock: Source of the current time, mainly for tests.
        """
        self._db_client = db_client
        self._row_mapper = row_mapper
        self._update_sql = update_sql
        self._batch_size = batch_size
        self._include_metadata = include_metadata
        self._tz = resolve_timezone(timezone_name)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._cycle_lock = threading.Lock()
        self._last_update = self._clock()
        self.state = CrawlState.IDLE
        logger.info(f"update sql: {update_sql}")
        logger.info(f"update timestamp timezone: {timezone_name or 'local'}")

    @property
    def last_update_timestamp(self) -> datetime:
        """The current watermark (timezone-aware)."""
        return self._last_update

    def get_modified_doc_ids(self, pusher: FeedPusher) -> int:
        """
        Push every document returned by the update query, marked for immediate crawl.

        Returns:
            Number of records pushed.

        Raises:
            CrawlError: If a cycle is already running, or the query or a row fails.
        """
        if not self._cycle_lock.acquire(blocking=False):
            raise CrawlError("An incremental crawl cycle is already running")
        try:
            return self._run_cycle(pusher)
        finally:
            self._cycle_lock.release()

    def _run_cycle(self, pusher: FeedPusher) -> int:
        self.state = CrawlState.RUNNING
        logger.info(f"Starting incremental crawl since {self._last_update.isoformat()}")
        outstream = BufferedPusher(pusher, self._batch_size)
        latest_timestamp: Optional[datetime] = None
        has_timestamp = False
        total_records = 0

        try:
            with self._db_client.open_stream(
                self._update_sql,
                {WATERMARK_PARAM: self._to_database_time(self._last_update)},
                bind_types={WATERMARK_PARAM: DateTime()},
            ) as cursor:
                timestamp_column = cursor.find_column(SpecialColumn.TIMESTAMP.value)
                has_timestamp = timestamp_column is not None
                logger.debug(f"hasTimestamp: {has_timestamp}")

                for row in cursor:
                    record = self._row_mapper.to_record(
                        row,
                        include_metadata=self._include_metadata,
                        crawl_immediately=True,
                    )
                    logger.debug(f"doc id: {record.doc_id}")
                    outstream.add(record)
                    total_records += 1

                    if has_timestamp:
                        ts = self._from_database_time(row[timestamp_column])
                        if ts is not None and (latest_timestamp is None or ts > latest_timestamp):
                            latest_timestamp = ts
                            logger.debug(f"latest timestamp updated: {ts.isoformat()}")
            outstream.flush()
        except (DatabaseIOError, RowMappingError) as e:
            self.state = CrawlState.FAILED
            raise CrawlError(f"Incremental crawl failed after {total_records} records: {e}") from e
        except Exception:
            self.state = CrawlState.FAILED
            raise

        # Only reached after a successful flush
        if not has_timestamp:
            self._advance_to(self._clock())
        elif latest_timestamp is not None:
            self._advance_to(latest_timestamp)

        self.state = CrawlState.DONE
        logger.info(
            f"Incremental crawl complete. Records pushed: {total_records}, "
            f"last update timestamp: {self._last_update.isoformat()}"
        )
        return total_records

    def _advance_to(self, candidate: datetime) -> None:
        if candidate > self._last_update:
            self._last_update = candidate

    def _to_database_time(self, value: datetime) -> datetime:
        """Naive wall-clock time in the database's timezone."""
        if self._tz is None:
            return value.astimezone().replace(tzinfo=None)
        return value.astimezone(self._tz).replace(tzinfo=None)

    def _from_database_time(self, value: Any) -> Optional[datetime]:
        """Timezone-aware datetime for a FEED_TIMESTAMP value."""
        if value is None:
            return None
        if isinstance(value, str):
            try:
                value = parse_iso_timestamp(value)
            except ValueError as e:
                raise RowMappingError(f"Invalid {SpecialColumn.TIMESTAMP} value: {value!r}") from e
        elif isinstance(value, date) and not isinstance(value, datetime):
            value = datetime.combine(value, time())
        elif not isinstance(value, datetime):
            raise RowMappingError(f"Invalid {SpecialColumn.TIMESTAMP} value: {value!r}")

        if value.tzinfo is not None:
            return value
        if self._tz is None:
            return value.astimezone()
        return self._tz.localize(value)
