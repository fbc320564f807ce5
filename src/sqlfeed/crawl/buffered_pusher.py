"""Batches document records before they reach the feed pusher."""

import logging
from typing import List

from sqlfeed.clients.feed_pusher import FeedPusher
from sqlfeed.models.document import DocumentRecord

logger = logging.getLogger(__name__)


class BufferedPusher:
    """Accepts a stream of records and sends them in batches of `batch_size`.

    The caller must call flush() once the stream ends to send the last,
    partial batch.
    """

    def __init__(self, pusher: FeedPusher, batch_size: int):
        if pusher is None:
            raise ValueError("pusher is required")
        if batch_size <= 0:
            raise ValueError("batch_size needs to be positive")
        self._pusher = pusher
        self._batch_size = batch_size
        self._saved: List[DocumentRecord] = []

    @property
    def pending(self) -> int:
        """Number of records buffered but not yet sent."""
        return len(self._saved)

    def add(self, record: DocumentRecord) -> None:
        self._saved.append(record)
        if len(self._saved) >= self._batch_size:
            self.flush()

    def flush(self) -> None:
        """Send everything buffered as one batch, then empty the buffer."""
        if not self._saved:
            return
        batch = list(self._saved)
        self._pusher.push_records(batch)
        logger.debug(f"sent {len(batch)} doc ids to pusher")
        self._saved.clear()

    def __del__(self):
        if getattr(self, "_saved", None):
            logger.warning(f"still have {len(self._saved)} saved records that weren't sent")
