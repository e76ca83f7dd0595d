"""Imported foreign schema accessors.

A "schema" here is a local schema holding the foreign tables imported from
one remote schema through one foreign server.  Importing runs, in order:

1. ``ensure_schema`` for the local schema
2. enum cloning (only with ``import_enums``)
3. ``IMPORT FOREIGN SCHEMA``
4. grants

Usage:
    from fdwctl.objects.schema import import_schema

    await import_schema(db, "remote", Schema(localschema="remote_public", remoteschema="public"))
"""

import logging

from psycopg import sql

from fdwctl.adapters.base import DatabaseClient
from fdwctl.errors import EnumConnectionRequiredError, IdentityNotFoundError
from fdwctl.models import Schema
from fdwctl.objects._sql import run_mutation, run_query

logger = logging.getLogger(__name__)

_GET_SCHEMAS_SQL = """
SELECT DISTINCT ft.foreign_table_schema,
                ft.foreign_server_name,
                fto.option_value
FROM information_schema.foreign_tables ft
JOIN information_schema.foreign_table_options fto
  ON fto.foreign_table_schema = ft.foreign_table_schema
 AND fto.foreign_table_catalog = ft.foreign_table_catalog
 AND fto.foreign_table_name = ft.foreign_table_name
 AND fto.option_name = 'schema_name'
"""


async def get_schemas(db: DatabaseClient, server_name: str | None = None) -> list[Schema]:
    """Return the local schemas that hold foreign tables.

    Each result carries the foreign server and the remote schema its tables
    were imported from.  Grants and enum settings are not introspected.
    """
    query = _GET_SCHEMAS_SQL
    params = None
    if server_name:
        query += "WHERE ft.foreign_server_name = %s\n"
        params = (server_name,)
    query += "ORDER BY ft.foreign_table_schema"
    rows = await run_query(db, query, params, operation="get_schemas", name=server_name or "")
    return [
        Schema(server_name=server, local_schema=local, remote_schema=remote or "")
        for local, server, remote in rows
    ]


async def schema_exists(db: DatabaseClient, name: str) -> bool:
    rows = await run_query(
        db,
        "SELECT 1 FROM information_schema.schemata WHERE schema_name = %s",
        (name,),
        operation="schema_exists",
        name=name,
    )
    return bool(rows)


async def ensure_schema(db: DatabaseClient, name: str) -> None:
    """Create the local schema ``name`` unless it already exists."""
    if await schema_exists(db, name):
        logger.debug("schema %s already exists", name)
        return
    await run_mutation(
        db,
        sql.SQL("CREATE SCHEMA {}").format(sql.Identifier(name)),
        operation="ensure_schema",
        name=name,
    )
    logger.info("schema %s created", name)


async def drop_schema(db: DatabaseClient, schema: Schema, cascade: bool = False) -> None:
    """Drop the local schema, with ``cascade`` including its foreign tables."""
    stmt = sql.SQL("DROP SCHEMA {}").format(sql.Identifier(schema.local_schema))
    if cascade:
        stmt += sql.SQL(" CASCADE")
    await run_mutation(db, stmt, operation="drop_schema", name=schema.local_schema)
    logger.info("schema %s dropped", schema.local_schema)


async def import_schema(db: DatabaseClient, server_name: str, schema: Schema) -> None:
    """Import ``schema.remote_schema`` from ``server_name`` into ``schema.local_schema``.

    Args:
        db: Target database.
        server_name: Foreign server to import through.
        schema: Local/remote schema pair, enum and grant settings.

    Raises:
        IdentityNotFoundError: If ``server_name`` is empty.
        EnumConnectionRequiredError: If ``import_enums`` is set without an
            ``enum_connection``.
        MutationError: If any statement fails.  Statements already run are
            not undone.
    """
    # Deferred: enums imports ensure_schema from this module
    from fdwctl.objects.enums import clone_schema_enums

    if not server_name:
        raise IdentityNotFoundError(
            f"server name is required to import schema {schema.local_schema}",
            operation="import_schema",
            name=schema.local_schema,
        )
    if schema.import_enums and not schema.enum_connection:
        raise EnumConnectionRequiredError(
            f"enum connection is required to import enums for schema {schema.local_schema}",
            operation="import_schema",
            name=schema.local_schema,
        )

    await ensure_schema(db, schema.local_schema)

    if schema.import_enums:
        await clone_schema_enums(db, schema)

    stmt = sql.SQL("IMPORT FOREIGN SCHEMA {} FROM SERVER {} INTO {}").format(
        sql.Identifier(schema.remote_schema),
        sql.Identifier(server_name),
        sql.Identifier(schema.local_schema),
    )
    await run_mutation(db, stmt, operation="import_schema", name=schema.local_schema)
    logger.info(
        "schema %s imported from %s on server %s",
        schema.local_schema,
        schema.remote_schema,
        server_name,
    )

    await apply_grants(db, schema)


async def apply_grants(db: DatabaseClient, schema: Schema) -> None:
    """Grant schema permissions to each listed user, in order.

    The first failing grant stops the remaining ones.
    """
    target = sql.Identifier(schema.local_schema)
    for grant in schema.grants:
        user = sql.Identifier(grant.user)
        if grant.permissions.usage:
            await run_mutation(
                db,
                sql.SQL("GRANT USAGE ON SCHEMA {} TO {}").format(target, user),
                operation="apply_grants",
                name=f"{schema.local_schema}:{grant.user}",
            )
        if grant.permissions.select:
            await run_mutation(
                db,
                sql.SQL("GRANT SELECT ON ALL TABLES IN SCHEMA {} TO {}").format(target, user),
                operation="apply_grants",
                name=f"{schema.local_schema}:{grant.user}",
            )
        logger.info("granted %s access to schema %s", grant.user, schema.local_schema)
