"""Connector facade wiring every component from configuration."""

import logging
from typing import Dict, Iterable, Optional

from sqlalchemy.engine import Engine

from sqlfeed.clients.database_client import DatabaseClient
from sqlfeed.clients.feed_pusher import FeedPusher
from sqlfeed.config.configuration import AppConfig, ConfigurationError
from sqlfeed.crawl.full_crawl import FullCrawler
from sqlfeed.crawl.incremental_crawl import IncrementalCrawler
from sqlfeed.crawl.metadata_columns import MetadataColumns
from sqlfeed.crawl.row_mapper import RowMapper
from sqlfeed.crawl.unique_key import UniqueKey
from sqlfeed.models.acl import AuthnIdentity, AuthzStatus
from sqlfeed.models.document import DocumentResponse
from sqlfeed.services.acl_service import AclReader
from sqlfeed.services.authorization_service import AccessChecker, AllPublic, AuthzAuthority
from sqlfeed.services.content_service import DocumentContentService
from sqlfeed.services.response_renderers import load_response_renderer

logger = logging.getLogger(__name__)


class SqlFeedConnector:
    """Lists, serves and authorizes documents of one source database."""

    def __init__(
        self,
        db_client: DatabaseClient,
        full_crawler: FullCrawler,
        incremental_crawler: Optional[IncrementalCrawler],
        authority: AuthzAuthority,
        content_service: DocumentContentService,
    ):
        self._db_client = db_client
        self._full_crawler = full_crawler
        self._incremental_crawler = incremental_crawler
        self._authority = authority
        self._content_service = content_service

    @classmethod
    def from_config(cls, config: AppConfig, engine: Optional[Engine] = None) -> "SqlFeedConnector":
        """
        Build the connector and all of its components.

        Args:
            config: Application configuration.
            engine: Pre-built SQLAlchemy engine, mainly for tests.

        Raises:
            ConfigurationError: If the unique key, metadata mapping or renderer is invalid.
        """
        crawl = config.crawl
        db_client = DatabaseClient.from_config(config, engine=engine)

        unique_key = UniqueKey(
            crawl.unique_key,
            content_sql_columns=crawl.single_doc_content_sql_parameters,
            acl_sql_columns=config.acl.sql_parameters,
            encoded_ids=crawl.encode_doc_id,
        )
        metadata_columns = MetadataColumns.from_config(
            crawl.metadata_columns, crawl.include_all_columns_as_metadata
        )
        logger.info(f"metadata columns: {metadata_columns!r}")
        row_mapper = RowMapper(unique_key, metadata_columns, crawl.encode_doc_id)

        renderer = load_response_renderer(
            crawl.mode_of_operation, config.renderers.get(crawl.mode_of_operation)
        )

        full_crawler = FullCrawler(
            db_client,
            row_mapper,
            crawl.every_doc_id_sql,
            crawl.batch_size,
            include_metadata=crawl.lists_metadata,
        )

        incremental_crawler = None
        if crawl.update_sql:
            incremental_crawler = IncrementalCrawler(
                db_client,
                row_mapper,
                crawl.update_sql,
                crawl.batch_size,
                include_metadata=crawl.lists_metadata,
                timezone_name=crawl.update_timestamp_timezone,
            )

        acl_reader = None
        if config.acl.sql:
            acl_reader = AclReader(
                db_client,
                unique_key,
                config.acl.sql,
                config.acl.principal_delimiter,
                config.acl.namespace,
            )
            authority: AuthzAuthority = AccessChecker(db_client, acl_reader)
        else:
            logger.info("no acl sql configured, all documents are public")
            authority = AllPublic()

        content_service = DocumentContentService(
            db_client,
            unique_key,
            row_mapper,
            renderer,
            crawl.single_doc_content_sql,
            acl_reader=acl_reader,
            lister_only=crawl.doc_id_is_url,
        )

        return cls(db_client, full_crawler, incremental_crawler, authority, content_service)

    @property
    def full_crawler(self) -> FullCrawler:
        return self._full_crawler

    @property
    def incremental_crawler(self) -> Optional[IncrementalCrawler]:
        return self._incremental_crawler

    def get_doc_ids(self, pusher: FeedPusher) -> int:
        """Run one full crawl cycle."""
        return self._full_crawler.get_doc_ids(pusher)

    def get_modified_doc_ids(self, pusher: FeedPusher) -> int:
        """Run one incremental crawl cycle.

        Raises:
            ConfigurationError: If no update query is configured.
        """
        if self._incremental_crawler is None:
            raise ConfigurationError("Incremental crawl needs 'crawl.update_sql' to be set")
        return self._incremental_crawler.get_modified_doc_ids(pusher)

    def is_user_authorized(
        self,
        identity: Optional[AuthnIdentity],
        doc_ids: Iterable[str],
    ) -> Dict[str, AuthzStatus]:
        return self._authority.is_user_authorized(identity, doc_ids)

    def get_doc_content(self, doc_id: str) -> DocumentResponse:
        return self._content_service.get_doc_content(doc_id)

    def close(self) -> None:
        """Release all pooled database connections."""
        self._db_client.dispose()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
