"""Shared fixtures: temporary SQLite databases and recording feed pushers."""

import os
import tempfile
from typing import List, Sequence

import pytest
from sqlalchemy import create_engine, text

from sqlfeed.clients.database_client import DatabaseClient
from sqlfeed.clients.feed_pusher import FeedPusher
from sqlfeed.models.document import DocumentRecord


class RecordingPusher(FeedPusher):
    """Keeps every pushed batch for inspection."""

    def __init__(self):
        self.batches: List[List[DocumentRecord]] = []

    def push_records(self, records: Sequence[DocumentRecord]) -> None:
        self.batches.append(list(records))

    @property
    def records(self) -> List[DocumentRecord]:
        return [record for batch in self.batches for record in batch]

    @property
    def doc_ids(self) -> List[str]:
        return [record.doc_id for record in self.records]


class FailingPusher(FeedPusher):
    """Rejects every batch."""

    def push_records(self, records):
        raise RuntimeError("feed unavailable")


@pytest.fixture
def temp_db_path():
    """Create a temporary database file for testing."""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    # Cleanup
    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def engine(temp_db_path):
    """SQLAlchemy engine on the temporary database."""
    eng = create_engine(f"sqlite:///{temp_db_path}")
    yield eng
    eng.dispose()


@pytest.fixture
def run_sql(engine):
    """Run setup statements in one committed transaction."""

    def _run(*statements, params=None):
        with engine.begin() as conn:
            for statement in statements:
                if params is not None:
                    conn.execute(text(statement), params)
                else:
                    conn.execute(text(statement))

    return _run


@pytest.fixture
def items_db(run_sql):
    """Items table with seven rows, ids 1..7."""
    run_sql("CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT, modified TEXT)")
    run_sql(
        "INSERT INTO items (id, name, modified) VALUES (:id, :name, :modified)",
        params=[
            {"id": i, "name": f"item {i}", "modified": f"2024-01-0{i} 00:00:00"}
            for i in range(1, 8)
        ],
    )


@pytest.fixture
def db_client(engine):
    """Streaming database client."""
    return DatabaseClient(url=str(engine.url), batch_size=3, engine=engine)


@pytest.fixture
def materialized_db_client(engine):
    """Database client that buffers whole crawl results."""
    return DatabaseClient(url=str(engine.url), batch_size=3, disable_streaming=True, engine=engine)


@pytest.fixture
def recording_pusher():
    return RecordingPusher()


@pytest.fixture
def failing_pusher():
    return FailingPusher()
