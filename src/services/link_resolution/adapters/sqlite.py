"""
SQLite relation adapter.

Each worker thread holds its own read-only connection, lookups run through
asyncio.to_thread so concurrent requests never share a connection.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any
from urllib.parse import quote

from ..errors import RelationConnectionError, RelationLookupError
from ..schema import RelationSpec
from .base import SqlRelation

logger = logging.getLogger(__name__)


def sqlite_uri(connect: str) -> str:
    """
    Turn a `sqlite:` connection descriptor into a read-only SQLite URI.

    Accepts `sqlite://path/to.db`, `sqlite:path/to.db` and
    `sqlite:///abs/path.db`, with optional `?key=value` parameters.

    Raises:
        ValueError: If the descriptor is not a SQLite descriptor
    """
    if not connect.startswith("sqlite:"):
        raise ValueError("not a sqlite connection descriptor")
    rest = connect[len("sqlite:"):]
    if rest.startswith("//"):
        rest = rest[2:]
    path, _, params = rest.partition("?")
    if not path or path == ":memory:":
        raise ValueError("a database file path is required")

    options = [p for p in params.split("&") if p and not p.startswith("mode=")]
    options.insert(0, "mode=ro")
    return f"file:{quote(path)}?{'&'.join(options)}"


class SqliteRelation(SqlRelation):
    """Relation backed by a table in a SQLite database file."""

    placeholder = "?"

    def __init__(self, spec: RelationSpec, timeout_seconds: float = 30.0):
        super().__init__(spec)
        self._uri = sqlite_uri(spec.connect)
        self._timeout_seconds = timeout_seconds

        # Thread-local storage for connections
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: list[sqlite3.Connection] = []

    @classmethod
    async def open(cls, spec: RelationSpec, timeout_seconds: float = 30.0) -> SqliteRelation:
        """
        Open the relation and check the database is reachable.

        Raises:
            RelationConnectionError: If the database cannot be opened
        """
        if not spec.fields:
            raise RelationConnectionError(spec.name, spec.connect, "relation does not have any field")
        try:
            relation = cls(spec, timeout_seconds=timeout_seconds)
        except ValueError as e:
            raise RelationConnectionError(spec.name, spec.connect, str(e)) from e
        try:
            await asyncio.to_thread(relation._probe)
        except sqlite3.Error as e:
            await relation.close()
            raise RelationConnectionError(spec.name, spec.connect, str(e)) from e

        logger.info(f"Opened sqlite relation {spec.name} ({Path(relation.database_path).name})")
        return relation

    @property
    def database_path(self) -> str:
        return self._uri[len("file:"):].partition("?")[0]

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create a thread-local database connection."""
        try:
            connection: sqlite3.Connection = self._local.connection
            return connection
        except AttributeError:
            conn = sqlite3.connect(
                self._uri,
                uri=True,
                check_same_thread=False,
                timeout=self._timeout_seconds,
            )
            self._local.connection = conn
            with self._lock:
                self._connections.append(conn)
            return conn

    def _probe(self) -> None:
        conn = self._get_connection()
        # A file that is not a database only fails on first read
        conn.execute("SELECT count(*) FROM sqlite_master").fetchone()

    def _query(self, sql: str, value: str) -> list[list[tuple[str, Any]]]:
        conn = self._get_connection()
        cursor = conn.execute(sql, (value,))
        columns = [d[0] for d in cursor.description]
        return [list(zip(columns, row)) for row in cursor.fetchall()]

    async def lookup(self, field: str, value: str) -> list[dict[str, str]]:
        sql = self.build_query(field)
        logger.debug(f"SQL: {sql}")
        try:
            rows = await asyncio.to_thread(self._query, sql, value)
        except sqlite3.Error as e:
            raise RelationLookupError(self.name, field, value, str(e)) from e
        return self.convert_rows(rows, field, value)

    async def health(self) -> dict[str, Any]:
        try:
            await asyncio.to_thread(self._probe)
            return {"connected": True, "backend": "sqlite"}
        except sqlite3.Error as e:
            logger.error(f"Health check failed for relation {self.name}: {e}")
            return {"connected": False, "backend": "sqlite", "error": str(e)}

    async def close(self) -> None:
        """Close all database connections across all threads."""
        with self._lock:
            for conn in self._connections:
                with contextlib.suppress(sqlite3.ProgrammingError):
                    conn.close()
            self._connections.clear()
