"""Database client with deterministic connection and cursor cleanup.

Queries run through SQLAlchemy Core. Crawl queries are either streamed
(server-side cursor with a fetch-size hint) or fully materialized on the
client, depending on configuration; every other query is executed normally.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

from sqlalchemy import bindparam, create_engine, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.types import TypeEngine

from sqlfeed.config.configuration import AppConfig

logger = logging.getLogger(__name__)


class DatabaseIOError(IOError):
    """Raised when a connection, query or fetch against the source database fails."""

    pass


class QueryCursor:
    """Rows and column names of one executed query.

    Iterating yields one mapping (column name -> value) per row.
    """

    def __init__(self, result, materialize: bool = False):
        self._result = result
        self.columns: List[str] = list(result.keys())
        self._rows: Optional[List[Mapping[str, Any]]] = None
        if materialize:
            self._rows = list(result.mappings())

    def find_column(self, name: str) -> Optional[str]:
        """Return the result's spelling of a column name, matched case-insensitively."""
        wanted = name.lower()
        for column in self.columns:
            if column.lower() == wanted:
                return column
        return None

    def has_column(self, name: str) -> bool:
        return self.find_column(name) is not None

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        if self._rows is not None:
            yield from self._rows
            return
        try:
            for row in self._result.mappings():
                yield row
        except SQLAlchemyError as e:
            raise DatabaseIOError(f"Failed to fetch rows: {e}") from e

    def close(self) -> None:
        self._result.close()


class DatabaseClient:
    """Opens connections and queries against the source database."""

    def __init__(
        self,
        url: str,
        batch_size: int,
        disable_streaming: bool = False,
        user: Optional[str] = None,
        password: Optional[str] = None,
        engine: Optional[Engine] = None,
    ):
        """Initialize the database client.

        Args:
            url: SQLAlchemy database URL.
            batch_size: Fetch-size hint for streamed crawl queries.
            disable_streaming: Buffer whole crawl results client-side instead.
            user: Optional user name overriding the URL's.
            password: Optional password overriding the URL's.
            engine: Pre-built engine, mainly for tests.
        """
        self._batch_size = batch_size
        self._disable_streaming = disable_streaming
        if engine is None:
            engine = create_engine(self._make_url(url, user, password))
        self._engine = engine

    @classmethod
    def from_config(cls, config: AppConfig, engine: Optional[Engine] = None) -> "DatabaseClient":
        """Create a database client using configuration."""
        return cls(
            url=config.database.url,
            batch_size=config.crawl.batch_size,
            disable_streaming=config.database.disable_streaming,
            user=config.database.user,
            password=config.database.password,
            engine=engine,
        )

    @staticmethod
    def _make_url(url: str, user: Optional[str], password: Optional[str]):
        db_url = make_url(url)
        if user:
            db_url = db_url.set(username=user)
        if password:
            db_url = db_url.set(password=password)
        return db_url

    @property
    def engine(self) -> Engine:
        """Get the underlying SQLAlchemy engine."""
        return self._engine

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Open a connection that is closed when the block exits."""
        logger.debug("about to connect")
        try:
            conn = self._engine.connect()
        except SQLAlchemyError as e:
            raise DatabaseIOError(f"Failed to connect to database: {e}") from e
        logger.debug("connected")
        try:
            yield conn
        finally:
            _try_closing_connection(conn)

    @contextmanager
    def query(
        self,
        connection: Connection,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
        bind_types: Optional[Dict[str, TypeEngine]] = None,
    ) -> Iterator[QueryCursor]:
        """Run a query on an open connection; the cursor is closed on exit."""
        cursor = self._execute(connection, sql, params, bind_types, stream=False, materialize=False)
        try:
            yield cursor
        finally:
            _try_closing_cursor(cursor)

    @contextmanager
    def open_stream(
        self,
        sql: str,
        params: Optional[Dict[str, Any]] = None,
        bind_types: Optional[Dict[str, TypeEngine]] = None,
    ) -> Iterator[QueryCursor]:
        """Open a connection and run a crawl query on it.

        Both the cursor and the connection are released when the block exits,
        whether iteration completed or failed.
        """
        with self.connect() as conn:
            cursor = self._execute(
                conn,
                sql,
                params,
                bind_types,
                stream=not self._disable_streaming,
                materialize=self._disable_streaming,
            )
            try:
                yield cursor
            finally:
                _try_closing_cursor(cursor)

    def _execute(
        self,
        connection: Connection,
        sql: str,
        params: Optional[Dict[str, Any]],
        bind_types: Optional[Dict[str, TypeEngine]],
        stream: bool,
        materialize: bool,
    ) -> QueryCursor:
        execution_options: Dict[str, Any] = {}
        if stream:
            # Forward-only, read-only server-side cursor where the driver supports one
            execution_options = {"stream_results": True, "yield_per": self._batch_size}
        logger.debug(f"about to query: {sql}")
        try:
            statement = text(sql)
            if bind_types:
                statement = statement.bindparams(
                    *[bindparam(name, type_=type_) for name, type_ in bind_types.items()]
                )
            result = connection.execute(statement, params or {}, execution_options=execution_options)
            cursor = QueryCursor(result, materialize=materialize)
        except SQLAlchemyError as e:
            raise DatabaseIOError(f"Query failed: {e}") from e
        logger.debug("queried")
        return cursor

    def dispose(self) -> None:
        """Close all pooled connections."""
        self._engine.dispose()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with cleanup."""
        self.dispose()
        return False


def _try_closing_cursor(cursor: QueryCursor) -> None:
    try:
        cursor.close()
    except SQLAlchemyError:
        logger.warning("result close failed", exc_info=True)


def _try_closing_connection(conn: Connection) -> None:
    try:
        conn.close()
    except SQLAlchemyError:
        logger.warning("connection close failed", exc_info=True)
