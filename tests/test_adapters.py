"""Tests for the async PostgreSQL adapter."""

import inspect
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import psycopg
import pytest

from fdwctl.adapters.base import DatabaseClient
from fdwctl.adapters.postgres import (
    AsyncPostgresAdapter,
    _log_notice,
    _with_connect_timeout,
    connect,
)
from fdwctl.errors import DatabaseConnectionError


def _mock_connection(rows: list[tuple] | None = None) -> tuple[MagicMock, AsyncMock]:
    conn = MagicMock()
    cursor = AsyncMock()
    cursor.fetchall.return_value = rows or []
    conn.cursor.return_value.__aenter__.return_value = cursor
    conn.close = AsyncMock()
    return conn, cursor


# ============================================================================
# Test: Protocol
# ============================================================================


class TestDatabaseClientProtocol:
    @pytest.mark.parametrize("method", ["fetch", "execute", "close"])
    def test_protocol_methods_are_async(self, method: str) -> None:
        assert inspect.iscoroutinefunction(getattr(DatabaseClient, method))
        assert inspect.iscoroutinefunction(getattr(AsyncPostgresAdapter, method))


# ============================================================================
# Test: Connect Timeout
# ============================================================================


class TestConnectTimeout:
    def test_url_without_query(self) -> None:
        assert _with_connect_timeout("postgres://u@h/db", 10) == "postgres://u@h/db?connect_timeout=10"

    def test_url_with_query(self) -> None:
        assert (
            _with_connect_timeout("postgres://u@h/db?sslmode=disable", 5)
            == "postgres://u@h/db?sslmode=disable&connect_timeout=5"
        )

    def test_keywords(self) -> None:
        assert _with_connect_timeout("host=h dbname=db", 10) == "host=h dbname=db connect_timeout=10"

    def test_existing_timeout_kept(self) -> None:
        assert _with_connect_timeout("host=h connect_timeout=3", 10) == "host=h connect_timeout=3"

    def test_existing_url_timeout_kept(self) -> None:
        assert _with_connect_timeout("postgres://u@h/db?connect_timeout=3", 10) == "postgres://u@h/db?connect_timeout=3"

    def test_timeout_text_in_password_ignored(self) -> None:
        assert (
            _with_connect_timeout("postgres://u:connect_timeout@h/db", 10)
            == "postgres://u:connect_timeout@h/db?connect_timeout=10"
        )
        assert (
            _with_connect_timeout("host=h password=connect_timeout", 10)
            == "host=h password=connect_timeout connect_timeout=10"
        )


# ============================================================================
# Test: Open / Close
# ============================================================================


class TestOpen:
    """Verify connection opening and error wrapping."""

    @pytest.mark.asyncio
    async def test_empty_conninfo_raises(self) -> None:
        with pytest.raises(DatabaseConnectionError, match="required"):
            await AsyncPostgresAdapter.open("")

    @pytest.mark.asyncio
    async def test_opens_autocommit_connection(self) -> None:
        conn, _ = _mock_connection()
        with patch(
            "fdwctl.adapters.postgres.AsyncConnection.connect", new=AsyncMock(return_value=conn)
        ) as mock_connect:
            adapter = await AsyncPostgresAdapter.open("postgres://u@h:5432/db")

        assert isinstance(adapter, AsyncPostgresAdapter)
        args, kwargs = mock_connect.call_args
        assert args[0] == "postgres://u@h:5432/db?connect_timeout=10"
        assert kwargs["autocommit"] is True
        conn.add_notice_handler.assert_called_once_with(_log_notice)

    @pytest.mark.asyncio
    async def test_connect_failure_wrapped_and_sanitized(self) -> None:
        with patch(
            "fdwctl.adapters.postgres.AsyncConnection.connect",
            new=AsyncMock(side_effect=psycopg.OperationalError("connection refused")),
        ):
            with pytest.raises(DatabaseConnectionError) as exc_info:
                await AsyncPostgresAdapter.open("postgres://u:topsecret@h:5432/db")

        assert "topsecret" not in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, psycopg.OperationalError)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        conn, _ = _mock_connection()
        adapter = AsyncPostgresAdapter(conn)
        await adapter.close()
        await adapter.close()
        conn.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_use_after_close_raises(self) -> None:
        conn, _ = _mock_connection()
        adapter = AsyncPostgresAdapter(conn)
        await adapter.close()
        with pytest.raises(DatabaseConnectionError, match="closed"):
            await adapter.fetch("SELECT 1")

    @pytest.mark.asyncio
    async def test_context_manager_closes_on_error(self) -> None:
        conn, _ = _mock_connection()
        with patch("fdwctl.adapters.postgres.AsyncConnection.connect", new=AsyncMock(return_value=conn)):
            with pytest.raises(RuntimeError):
                async with connect("postgres://u@h:5432/db"):
                    raise RuntimeError("boom")
        conn.close.assert_awaited_once()


# ============================================================================
# Test: Queries
# ============================================================================


class TestQueries:
    @pytest.mark.asyncio
    async def test_fetch_returns_rows(self) -> None:
        conn, cursor = _mock_connection([("postgres_fdw", "1.1")])
        adapter = AsyncPostgresAdapter(conn)

        rows = await adapter.fetch("SELECT extname, extversion FROM pg_extension WHERE extname = %s", ("postgres_fdw",))

        assert rows == [("postgres_fdw", "1.1")]
        cursor.execute.assert_awaited_once_with(
            "SELECT extname, extversion FROM pg_extension WHERE extname = %s", ("postgres_fdw",)
        )

    @pytest.mark.asyncio
    async def test_execute(self) -> None:
        conn, cursor = _mock_connection()
        await AsyncPostgresAdapter(conn).execute('CREATE SCHEMA "x"')
        cursor.execute.assert_awaited_once_with('CREATE SCHEMA "x"', None)

    @pytest.mark.asyncio
    async def test_test_connection(self) -> None:
        conn, _ = _mock_connection([(1,)])
        assert await AsyncPostgresAdapter(conn).test_connection()


class TestNotices:
    def test_notice_logged_at_matching_level(self, caplog: pytest.LogCaptureFixture) -> None:
        diag = MagicMock(severity_nonlocalized="WARNING", severity="WARNING", message_primary="careful")
        with caplog.at_level(logging.DEBUG, logger="fdwctl.adapters.postgres"):
            _log_notice(diag)
        assert caplog.records[-1].levelno == logging.WARNING
        assert "careful" in caplog.records[-1].getMessage()
