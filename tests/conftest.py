"""Shared fixtures: a recording in-memory DatabaseClient."""

from collections.abc import Callable
from typing import Any, Sequence

import psycopg
import pytest
from psycopg import sql
from psycopg.abc import Query

Rows = list[tuple] | Callable[[str, Sequence[Any] | None], list[tuple]]


def _text(query: Query) -> str:
    if isinstance(query, sql.Composable):
        return query.as_string(None)
    return query.decode() if isinstance(query, bytes) else query


class FakeDatabase:
    """DatabaseClient double that records statements and serves canned rows.

    ``on(fragment, rows)`` answers any query containing ``fragment`` with
    ``rows`` (or ``rows(sql, params)`` when callable); the first registered
    match wins and unmatched queries return no rows.  ``fail(fragment)``
    makes any query or statement containing ``fragment`` raise a
    ``psycopg.Error``.  Composed ``psycopg.sql`` statements are rendered
    without a connection; successful ones are appended to ``executed``.
    """

    def __init__(self) -> None:
        self.responses: list[tuple[str, Rows]] = []
        self.failures: list[str] = []
        self.queries: list[tuple[str, Sequence[Any] | None]] = []
        self.executed: list[str] = []
        self.closed = False

    def on(self, fragment: str, rows: Rows) -> "FakeDatabase":
        self.responses.append((fragment, rows))
        return self

    def fail(self, fragment: str) -> "FakeDatabase":
        self.failures.append(fragment)
        return self

    def _check(self, sql: str) -> None:
        for fragment in self.failures:
            if fragment in sql:
                raise psycopg.OperationalError(f"simulated failure on {fragment}")

    async def fetch(self, query: Query, params: Sequence[Any] | None = None) -> list[tuple]:
        sql = _text(query)
        self.queries.append((sql, params))
        self._check(sql)
        for fragment, rows in self.responses:
            if fragment in sql:
                return rows(sql, params) if callable(rows) else list(rows)
        return []

    async def execute(self, query: Query, params: Sequence[Any] | None = None) -> None:
        sql = _text(query)
        self._check(sql)
        self.executed.append(sql)

    async def close(self) -> None:
        self.closed = True

    def executed_matching(self, prefix: str) -> list[str]:
        return [sql for sql in self.executed if sql.startswith(prefix)]


@pytest.fixture
def db() -> FakeDatabase:
    """Empty fake database: every query returns no rows."""
    return FakeDatabase()
