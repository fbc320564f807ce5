"""Feed pusher that writes listed documents into an Azure AI Search index."""

import base64
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError
from azure.search.documents import SearchClient
from azure.search.documents.indexes import SearchIndexClient
from azure.search.documents.indexes.models import (
    ComplexField,
    SearchField,
    SearchFieldDataType,
    SearchIndex,
)

from sqlfeed.clients.feed_pusher import FeedPusher
from sqlfeed.config.configuration import AzureAISearchConfig, ConfigurationError
from sqlfeed.models.document import DocumentRecord

logger = logging.getLogger(__name__)


class AzureSearchError(Exception):
    """Custom exception for Azure Search upload failures."""

    pass


def _require_search_config(search_config: Optional[AzureAISearchConfig]) -> AzureAISearchConfig:
    if search_config is None:
        raise ConfigurationError(
            "Section 'azure_ai_search' is required to push documents to Azure AI Search"
        )
    return search_config


def create_search_client(search_config: Optional[AzureAISearchConfig]) -> SearchClient:
    """Create Azure AI Search client using configuration."""
    search_config = _require_search_config(search_config)
    return SearchClient(
        endpoint=search_config.endpoint,
        index_name=search_config.index_name,
        credential=AzureKeyCredential(search_config.api_key),
    )


def make_search_key(doc_id: str) -> str:
    """Turn a doc id into a valid index key (letters, digits, '-', '_', '=')."""
    return base64.urlsafe_b64encode(doc_id.encode("utf-8")).decode("ascii")


def record_to_search_document(record: DocumentRecord, date_pushed: datetime) -> dict:
    """
    Build the index document for one listed record.

    Args:
        record: Listed document record.
        date_pushed: Timestamp stamped on every document of the batch.

    Returns:
        Dictionary matching the fields created by create_feed_index.
    """
    return {
        "id": make_search_key(record.doc_id),
        "doc_id": record.doc_id,
        "metadata": [{"name": pair.name, "value": pair.value} for pair in record.metadata],
        "crawl_immediately": record.crawl_immediately,
        "date_pushed": date_pushed.isoformat(),
    }


class AzureSearchFeedPusher(FeedPusher):
    """Upserts every pushed record as one search document."""

    def __init__(self, search_client: SearchClient):
        self._search_client = search_client

    @classmethod
    def from_config(cls, search_config: Optional[AzureAISearchConfig]) -> "AzureSearchFeedPusher":
        return cls(create_search_client(search_config))

    def push_records(self, records: Sequence[DocumentRecord]) -> None:
        """
        Upload a batch of records to Azure AI Search.

        Args:
            records: Records to upsert, in order.

        Raises:
            AzureSearchError: If the upload request fails.
        """
        if not records:
            return

        date_pushed = datetime.now(timezone.utc)
        documents = [record_to_search_document(record, date_pushed) for record in records]

        try:
            results = self._search_client.merge_or_upload_documents(documents=documents)
        except AzureError as e:
            raise AzureSearchError(f"Failed to upload {len(documents)} documents: {e}") from e

        failed = [r for r in results if not r.succeeded]
        for r in failed:
            logger.error(f"Document {r.key} was rejected by the index: {r.error_message}")
        logger.info(f"Uploaded {len(documents) - len(failed)}/{len(documents)} documents to search index")


def create_feed_index(search_config: Optional[AzureAISearchConfig]) -> None:
    """
    Create Azure AI Search index for listed database documents.

    The index has the following fields:
    - id: URL-safe encoding of the doc id (index key)
    - doc_id: Document identifier as listed
    - metadata: Collection of name/value pairs taken from row columns
    - crawl_immediately: Whether the document came from an incremental crawl
    - date_pushed: Timestamp of the push

    Raises:
        AzureError: If index creation fails.
    """
    search_config = _require_search_config(search_config)

    index_client = SearchIndexClient(
        endpoint=search_config.endpoint,
        credential=AzureKeyCredential(search_config.api_key),
    )

    fields = [
        SearchField(
            name="id",
            type=SearchFieldDataType.String,
            key=True,
            filterable=True,
        ),
        SearchField(
            name="doc_id",
            type=SearchFieldDataType.String,
            searchable=True,
            filterable=True,
            sortable=True,
        ),
        ComplexField(
            name="metadata",
            collection=True,
            fields=[
                SearchField(
                    name="name",
                    type=SearchFieldDataType.String,
                    filterable=True,
                    facetable=True,
                ),
                SearchField(
                    name="value",
                    type=SearchFieldDataType.String,
                    searchable=True,
                    filterable=True,
                ),
            ],
        ),
        SearchField(
            name="crawl_immediately",
            type=SearchFieldDataType.Boolean,
            filterable=True,
        ),
        SearchField(
            name="date_pushed",
            type=SearchFieldDataType.DateTimeOffset,
            filterable=True,
            sortable=True,
        ),
    ]

    index = SearchIndex(name=search_config.index_name, fields=fields)

    try:
        result = index_client.create_or_update_index(index)
        logger.info(f"Index '{result.name}' created/updated successfully")
    except AzureError as e:
        logger.error(f"Failed to create index: {e}")
        raise
