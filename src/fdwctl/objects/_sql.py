"""SQL helpers shared by the object accessors.

DDL statements (``CREATE SERVER``, ``IMPORT FOREIGN SCHEMA`` ...) do not
accept bind parameters for identifiers or option values, so those are
composed with ``psycopg.sql`` (``sql.Identifier``, ``sql.Literal``) and
quoted by the driver.  Introspection queries use ``%s`` parameters instead.
"""

import logging
from typing import Any, Sequence

import psycopg
from psycopg import sql
from psycopg.abc import Query

from fdwctl.adapters.base import DatabaseClient
from fdwctl.errors import MutationError, QueryError

logger = logging.getLogger(__name__)

REDACTED = sql.SQL("'<redacted>'")


def render(query: Query) -> str:
    """Statement text for logs and error messages.

    Composed statements are rendered without a connection.

    Example:
        >>> render(sql.SQL("DROP SCHEMA {}").format(sql.Identifier('my "odd" name')))
        'DROP SCHEMA "my ""odd"" name"'
    """
    if isinstance(query, sql.Composable):
        return query.as_string(None)
    if isinstance(query, bytes):
        return query.decode()
    return str(query)


async def run_query(
    db: DatabaseClient,
    query: Query,
    params: Sequence[Any] | None = None,
    *,
    operation: str,
    name: str = "",
) -> list[tuple]:
    """Run an introspection query, wrapping driver errors in ``QueryError``."""
    logger.debug("query: %s params=%s", " ".join(render(query).split()), params)
    try:
        return await db.fetch(query, params)
    except psycopg.Error as e:
        raise QueryError(f"{operation} failed: {e}", operation=operation, name=name) from e


async def run_mutation(
    db: DatabaseClient,
    statement: Query,
    params: Sequence[Any] | None = None,
    *,
    operation: str,
    name: str = "",
    log_sql: Query | None = None,
) -> None:
    """Execute a DDL/DML statement, wrapping driver errors in ``MutationError``.

    ``log_sql`` replaces the logged statement text when ``statement`` embeds
    a password.
    """
    logger.debug("statement: %s", render(log_sql if log_sql is not None else statement))
    try:
        await db.execute(statement, params)
    except psycopg.Error as e:
        raise MutationError(f"{operation} failed: {e}", operation=operation, name=name) from e
