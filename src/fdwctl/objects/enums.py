"""Enum type cloning for foreign schema imports.

``IMPORT FOREIGN SCHEMA`` fails for tables whose columns use an enum type
that does not exist locally.  ``clone_schema_enums`` copies those types,
with their labels in sort order, from the remote database before the
import runs.

Enums are identified by ``(schema, name)``.  The owning schema is created
locally when it is missing.
"""

import logging

from psycopg import sql

from fdwctl.adapters.base import DatabaseClient
from fdwctl.adapters.postgres import connect
from fdwctl.conninfo import resolve_connection_string
from fdwctl.models import Schema, SchemaEnum
from fdwctl.objects._sql import run_mutation, run_query
from fdwctl.objects.schema import ensure_schema

logger = logging.getLogger(__name__)

_LOCAL_ENUMS_SQL = """
SELECT n.nspname, t.typname
FROM pg_type t
JOIN pg_namespace n ON n.oid = t.typnamespace
WHERE t.typtype = 'e'
ORDER BY n.nspname, t.typname
"""

_USED_ENUMS_SQL = """
SELECT DISTINCT n.nspname, t.typname
FROM information_schema.column_udt_usage cu
JOIN pg_namespace n ON n.nspname = cu.udt_schema
JOIN pg_type t ON t.typname = cu.udt_name AND t.typnamespace = n.oid
WHERE t.typtype = 'e'
  AND cu.table_schema = %s
ORDER BY n.nspname, t.typname
"""

_ENUM_LABELS_SQL = """
SELECT e.enumlabel
FROM pg_enum e
JOIN pg_type t ON t.oid = e.enumtypid
JOIN pg_namespace n ON n.oid = t.typnamespace
WHERE n.nspname = %s
  AND t.typname = %s
ORDER BY e.enumsortorder
"""


async def get_enums(db: DatabaseClient) -> list[SchemaEnum]:
    """Return every enum type defined in ``db``."""
    rows = await run_query(db, _LOCAL_ENUMS_SQL, operation="get_enums")
    return [SchemaEnum(schema=schema, name=name) for schema, name in rows]


async def get_used_enums(db: DatabaseClient, table_schema: str) -> list[SchemaEnum]:
    """Return the enum types used by columns of tables in ``table_schema``."""
    rows = await run_query(
        db, _USED_ENUMS_SQL, (table_schema,), operation="get_used_enums", name=table_schema
    )
    return [SchemaEnum(schema=schema, name=name) for schema, name in rows]


async def get_enum_labels(db: DatabaseClient, enum: SchemaEnum) -> list[str]:
    """Return the labels of ``enum`` ordered by their sort order."""
    rows = await run_query(
        db,
        _ENUM_LABELS_SQL,
        (enum.schema, enum.name),
        operation="get_enum_labels",
        name=str(enum),
    )
    return [row[0] for row in rows]


async def create_enum(db: DatabaseClient, enum: SchemaEnum, labels: list[str]) -> None:
    """Create ``enum`` with ``labels``, creating its schema first if needed."""
    await ensure_schema(db, enum.schema)
    stmt = sql.SQL("CREATE TYPE {} AS ENUM ({})").format(
        sql.Identifier(enum.schema, enum.name),
        sql.SQL(", ").join([sql.Literal(label) for label in labels]),
    )
    await run_mutation(db, stmt, operation="create_enum", name=str(enum))
    logger.info("enum %s created", enum)


async def clone_schema_enums(db: DatabaseClient, schema: Schema) -> list[SchemaEnum]:
    """Copy the remote enums used by ``schema.remote_schema`` into ``db``.

    Opens a second connection from ``schema.enum_connection`` (with
    ``schema.enum_secret`` as the password) and closes it before returning,
    including on error.

    Args:
        db: Target database.
        schema: Schema being imported.

    Returns:
        The enums that were created, in creation order.
    """
    conninfo = await resolve_connection_string(schema.enum_connection, schema.enum_secret)
    created: list[SchemaEnum] = []
    async with connect(conninfo) as remote:
        used = await get_used_enums(remote, schema.remote_schema)
        existing = set(await get_enums(db))
        for enum in used:
            if enum in existing:
                logger.debug("enum %s already exists", enum)
                continue
            labels = await get_enum_labels(remote, enum)
            await create_enum(db, enum, labels)
            created.append(enum)
    return created
