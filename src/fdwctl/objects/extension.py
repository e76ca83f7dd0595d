"""Extension accessors."""

import logging

from psycopg import sql

from fdwctl.adapters.base import DatabaseClient
from fdwctl.models import Extension
from fdwctl.objects._sql import run_mutation, run_query

logger = logging.getLogger(__name__)


async def get_extensions(db: DatabaseClient) -> list[Extension]:
    """Return every installed extension with its version."""
    rows = await run_query(
        db,
        "SELECT extname, extversion FROM pg_extension ORDER BY extname",
        operation="get_extensions",
    )
    return [Extension(name=name, version=version or "") for name, version in rows]


async def create_extension(db: DatabaseClient, ext: Extension) -> None:
    """Install ``ext`` unless it is already installed."""
    await run_mutation(
        db,
        sql.SQL("CREATE EXTENSION IF NOT EXISTS {}").format(sql.Identifier(ext.name)),
        operation="create_extension",
        name=ext.name,
    )
    logger.info("extension %s created", ext.name)


async def drop_extension(db: DatabaseClient, ext: Extension) -> None:
    """Remove ``ext`` if it is installed."""
    await run_mutation(
        db,
        sql.SQL("DROP EXTENSION IF EXISTS {}").format(sql.Identifier(ext.name)),
        operation="drop_extension",
        name=ext.name,
    )
    logger.info("extension %s dropped", ext.name)
