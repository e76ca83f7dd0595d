"""Local database user accessors (only what user mappings need)."""

import logging

from psycopg import sql

from fdwctl.adapters.base import DatabaseClient
from fdwctl.objects._sql import REDACTED, run_mutation, run_query

logger = logging.getLogger(__name__)


async def user_exists(db: DatabaseClient, name: str) -> bool:
    rows = await run_query(
        db,
        "SELECT 1 FROM pg_user WHERE usename = %s",
        (name,),
        operation="user_exists",
        name=name,
    )
    return bool(rows)


async def ensure_user(db: DatabaseClient, name: str, password: str = "") -> None:
    """Create the local user ``name`` if it does not exist yet.

    An existing user is left alone; its password is not changed.
    """
    if await user_exists(db, name):
        logger.debug("user %s already exists", name)
        return
    create = sql.SQL("CREATE USER {} WITH PASSWORD {}")
    await run_mutation(
        db,
        create.format(sql.Identifier(name), sql.Literal(password)),
        operation="ensure_user",
        name=name,
        log_sql=create.format(sql.Identifier(name), REDACTED),
    )
    logger.info("user %s created", name)


async def drop_user(db: DatabaseClient, name: str) -> None:
    await run_mutation(
        db,
        sql.SQL("DROP USER IF EXISTS {}").format(sql.Identifier(name)),
        operation="drop_user",
        name=name,
    )
    logger.info("user %s dropped", name)
