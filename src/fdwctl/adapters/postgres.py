"""Async PostgreSQL database adapter.

Provides ``AsyncPostgresAdapter``, an implementation of the
``DatabaseClient`` protocol on top of a single ``psycopg.AsyncConnection``,
and ``connect()``, an async context manager that opens and always closes it.

The connection runs in autocommit mode, so every object-level operation is
committed on its own.  Server notices and warnings (``NOTICE: schema
"x" already exists, skipping`` ...) are forwarded to the module logger.

Usage:
    from fdwctl.adapters.postgres import connect

    async with connect("postgres://admin@localhost:5432/fdw") as db:
        rows = await db.fetch("SELECT extname FROM pg_extension")
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Sequence
from urllib.parse import urlsplit

import psycopg
from psycopg import AsyncConnection
from psycopg.abc import Query
from psycopg.conninfo import conninfo_to_dict

from fdwctl.conninfo import sanitize_connection_string
from fdwctl.errors import DatabaseConnectionError

logger = logging.getLogger(__name__)

_NOTICE_LEVELS = {
    "DEBUG": logging.DEBUG,
    "LOG": logging.DEBUG,
    "INFO": logging.INFO,
    "NOTICE": logging.INFO,
    "WARNING": logging.WARNING,
}


def _with_connect_timeout(conninfo: str, seconds: int) -> str:
    """Append ``connect_timeout`` unless the connection string already sets it."""
    try:
        params = conninfo_to_dict(conninfo)
    except psycopg.ProgrammingError:
        # Left for AsyncConnection.connect to report
        return conninfo
    if "connect_timeout" in params:
        return conninfo
    if "://" in conninfo:
        separator = "&" if urlsplit(conninfo).query else "?"
        return f"{conninfo}{separator}connect_timeout={seconds}"
    return f"{conninfo} connect_timeout={seconds}"


def _log_notice(diag: psycopg.errors.Diagnostic) -> None:
    """Forward a server notice to the logger at a matching level."""
    level = _NOTICE_LEVELS.get(diag.severity_nonlocalized or "", logging.INFO)
    logger.log(level, "server %s: %s", diag.severity, diag.message_primary)


class AsyncPostgresAdapter:
    """Async PostgreSQL implementation of the ``DatabaseClient`` protocol.

    Wraps an already-open ``AsyncConnection``.  Use ``open()`` (or the
    ``connect()`` context manager) to create one from a connection string.

    Args:
        conn: An open psycopg async connection.

    Example:
        adapter = await AsyncPostgresAdapter.open("postgres://u@h:5432/db")
        try:
            await adapter.execute("CREATE EXTENSION IF NOT EXISTS postgres_fdw")
        finally:
            await adapter.close()
    """

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn: AsyncConnection | None = conn

    @classmethod
    async def open(
        cls,
        conninfo: str,
        connect_timeout: int = 10,
    ) -> "AsyncPostgresAdapter":
        """Open a new autocommit connection.

        Args:
            conninfo: URL-style or keyword-style connection string.
            connect_timeout: Seconds to wait for the server to accept.

        Raises:
            DatabaseConnectionError: If the string is empty or connecting fails.
        """
        if not conninfo:
            raise DatabaseConnectionError(
                "database connection string is required", operation="connect"
            )
        safe = sanitize_connection_string(conninfo)
        logger.debug("opening database connection to %s", safe)
        try:
            conn = await AsyncConnection.connect(
                _with_connect_timeout(conninfo, connect_timeout),
                autocommit=True,
            )
        except psycopg.Error as e:
            raise DatabaseConnectionError(
                f"error connecting to database {safe}: {e}",
                operation="connect",
                name=safe,
            ) from e
        conn.add_notice_handler(_log_notice)
        return cls(conn)

    # ------------------------------------------------------------------
    # DatabaseClient
    # ------------------------------------------------------------------

    async def fetch(
        self,
        sql: Query,
        params: Sequence[Any] | None = None,
    ) -> list[tuple]:
        """Run a query and return all rows."""
        async with self._connection().cursor() as cur:
            await cur.execute(sql, params)
            return await cur.fetchall()

    async def execute(self, sql: Query, params: Sequence[Any] | None = None) -> None:
        """Execute a statement; committed immediately (autocommit)."""
        async with self._connection().cursor() as cur:
            await cur.execute(sql, params)

    async def close(self) -> None:
        """Close the connection.  Safe to call more than once."""
        if self._conn is None:
            return
        logger.debug("closing database connection")
        try:
            await self._conn.close()
        except psycopg.Error as e:
            raise DatabaseConnectionError(
                f"error closing database connection: {e}", operation="close"
            ) from e
        finally:
            self._conn = None

    # ------------------------------------------------------------------
    # Connection Test
    # ------------------------------------------------------------------

    async def test_connection(self) -> bool:
        """Run ``SELECT 1`` to verify the connection is alive."""
        rows = await self.fetch("SELECT 1")
        return bool(rows) and rows[0][0] == 1

    def _connection(self) -> AsyncConnection:
        if self._conn is None:
            raise DatabaseConnectionError(
                "database connection is closed", operation="use"
            )
        return self._conn


@asynccontextmanager
async def connect(
    conninfo: str,
    connect_timeout: int = 10,
) -> AsyncIterator[AsyncPostgresAdapter]:
    """Open a connection for the duration of an ``async with`` block.

    The connection is closed on exit, including when the block raises or is
    cancelled.
    """
    adapter = await AsyncPostgresAdapter.open(conninfo, connect_timeout)
    try:
        yield adapter
    finally:
        await adapter.close()
