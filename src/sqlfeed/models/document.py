"""Document models passed between the crawlers, the pusher and the content service."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlfeed.models.acl import Acl


@dataclass(frozen=True)
class MetadataPair:
    """One metadata entry: mapped column name and the value as text."""

    name: str
    value: str


@dataclass(frozen=True)
class DocumentRecord:
    """A listed document, sent to the feed pusher exactly once.

    Built per result row during a crawl and immutable afterwards.
    """

    doc_id: str
    metadata: Tuple[MetadataPair, ...] = ()
    crawl_immediately: bool = False  # Asks the feed consumer to prioritize this document


@dataclass
class DocumentResponse:
    """Response being assembled for a single document content request."""

    doc_id: str
    not_found: bool = False
    metadata: List[MetadataPair] = field(default_factory=list)
    acl: Optional[Acl] = None
    no_follow: bool = False
    content_type: Optional[str] = None
    content: bytes = b""

    def add_metadata(self, name: str, value: str) -> None:
        self.metadata.append(MetadataPair(name=name, value=value))

    def respond_not_found(self) -> None:
        self.not_found = True

    def write(self, data: bytes) -> None:
        """Append bytes to the response body."""
        self.content += data
