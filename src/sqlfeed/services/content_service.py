"""Serves a single document: metadata, ACL and rendered body."""

import logging
from typing import Optional

from sqlfeed.clients.database_client import DatabaseClient, DatabaseIOError
from sqlfeed.crawl.row_mapper import RowMapper
from sqlfeed.crawl.unique_key import RowMappingError, UniqueKey
from sqlfeed.models.document import DocumentResponse
from sqlfeed.services.acl_service import AclReader
from sqlfeed.services.response_renderers import ResponseRenderer

logger = logging.getLogger(__name__)


class DocumentContentService:
    """Looks a document up by id with the single-document content query."""

    def __init__(
        self,
        db_client: DatabaseClient,
        unique_key: UniqueKey,
        row_mapper: RowMapper,
        renderer: ResponseRenderer,
        content_sql: Optional[str],
        acl_reader: Optional[AclReader] = None,
        lister_only: bool = False,
    ):
        self._db_client = db_client
        self._unique_key = unique_key
        self._row_mapper = row_mapper
        self._renderer = renderer
        self._content_sql = content_sql
        self._acl_reader = acl_reader
        self._lister_only = lister_only or not content_sql

    def get_doc_content(self, doc_id: str) -> DocumentResponse:
        """
        Build the response for one document.

        Args:
            doc_id: Document id as listed by a crawl.

        Returns:
            DocumentResponse; `not_found` is set when there is nothing to serve.

        Raises:
            DatabaseIOError: If a query fails or the row does not fit the renderer.
        """
        response = DocumentResponse(doc_id=doc_id)
        if self._lister_only:
            # ids are URLs served elsewhere
            response.respond_not_found()
            return response

        try:
            params = self._unique_key.bind_content_query_params(doc_id)
        except RowMappingError as e:
            logger.warning(f"Not a valid doc id: {e}")
            response.respond_not_found()
            return response

        with self._db_client.connect() as conn:
            logger.debug(f"about to get doc: {doc_id}")
            with self._db_client.query(conn, self._content_sql, params) as cursor:
                row = next(iter(cursor), None)
                logger.debug("got doc")
                if row is None:
                    response.respond_not_found()
                    return response

                for pair in self._row_mapper.to_metadata(row):
                    response.add_metadata(pair.name, pair.value)

                if self._acl_reader is not None:
                    response.acl = self._acl_reader.read_acl(conn, doc_id)

                # One record is one document; links in the body are not followed
                response.no_follow = True
                try:
                    self._renderer.render(row, response)
                except RowMappingError as e:
                    raise DatabaseIOError(f"Failed to render doc {doc_id}: {e}") from e

        return response
