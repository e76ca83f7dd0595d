"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol that every accessor in
``fdwctl.objects`` talks to.  All methods are ``async def``.

Accessors never hold a module-level handle: the client is passed explicitly
as the first argument of every call.

Usage:
    from fdwctl.adapters.base import DatabaseClient

    async def list_names(client: DatabaseClient) -> list[str]:
        rows = await client.fetch("SELECT srvname FROM pg_foreign_server")
        return [row[0] for row in rows]
"""

from typing import Any, Protocol, Sequence

from psycopg.abc import Query


class DatabaseClient(Protocol):
    """Database client interface that the object accessors depend on.

    Statements are committed as they run (autocommit): there is no
    transaction spanning more than one call.
    """

    async def fetch(
        self,
        sql: Query,
        params: Sequence[Any] | None = None,
    ) -> list[tuple]:
        """Run a query and return all rows as tuples.

        Args:
            sql: Query text using ``%s`` placeholders, or a composed
                ``psycopg.sql`` statement.
            params: Optional positional parameters.

        Returns:
            List of row tuples.  Empty list if no rows matched.

        Example:
            rows = await client.fetch(
                "SELECT 1 FROM pg_user WHERE usename = %s", ("alice",)
            )
        """
        ...

    async def execute(self, sql: Query, params: Sequence[Any] | None = None) -> None:
        """Execute a statement that returns no rows (DDL, GRANT, ...).

        Args:
            sql: Statement text or a composed ``psycopg.sql`` statement.
            params: Optional positional parameters.

        Example:
            await client.execute('CREATE SCHEMA "reporting"')
        """
        ...

    async def close(self) -> None:
        """Close the connection and release resources."""
        ...
