"""Interface for the downstream consumer of listed document records."""

from abc import ABC, abstractmethod
from typing import Sequence

from sqlfeed.models.document import DocumentRecord


class FeedPusher(ABC):
    """Accepts batches of document records. May block; owns its own retries."""

    @abstractmethod
    def push_records(self, records: Sequence[DocumentRecord]) -> None:
        """Deliver one batch of records, in order."""
