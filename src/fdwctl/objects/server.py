"""Foreign server accessors.

Servers are always created with the ``postgres_fdw`` wrapper.  Their
``host``, ``port`` and ``dbname`` live in ``information_schema.foreign_server_options``.

Usage:
    from fdwctl.objects.server import create_server, get_servers

    await create_server(db, ForeignServer(name="remote", host="db", port=5432, db="app"))
    servers = await get_servers(db)
"""

import logging

from psycopg import sql

from fdwctl.adapters.base import DatabaseClient
from fdwctl.models import DEFAULT_WRAPPER, ForeignServer
from fdwctl.objects._sql import run_mutation, run_query

logger = logging.getLogger(__name__)

_GET_SERVERS_SQL = """
SELECT fs.foreign_server_name,
       fs.foreign_data_wrapper_name,
       fs.authorization_identifier,
       fsoh.option_value,
       fsop.option_value::int,
       fsod.option_value
FROM information_schema.foreign_servers fs
LEFT JOIN information_schema.foreign_server_options fsoh
       ON fsoh.foreign_server_name = fs.foreign_server_name
      AND fsoh.option_name = 'host'
LEFT JOIN information_schema.foreign_server_options fsop
       ON fsop.foreign_server_name = fs.foreign_server_name
      AND fsop.option_name = 'port'
LEFT JOIN information_schema.foreign_server_options fsod
       ON fsod.foreign_server_name = fs.foreign_server_name
      AND fsod.option_name = 'dbname'
ORDER BY fs.foreign_server_name
"""


async def get_servers(db: DatabaseClient) -> list[ForeignServer]:
    """Return every foreign server with its connection options.

    Options that are not set come back as ``""`` (host, dbname) or ``0``
    (port).  User mappings and schemas are not populated.
    """
    rows = await run_query(db, _GET_SERVERS_SQL, operation="get_servers")
    return [
        ForeignServer(
            name=name,
            wrapper=wrapper or DEFAULT_WRAPPER,
            owner=owner or "",
            host=host or "",
            port=port or 0,
            db=dbname or "",
        )
        for name, wrapper, owner, host, port, dbname in rows
    ]


async def create_server(db: DatabaseClient, server: ForeignServer) -> None:
    """Create ``server`` using the postgres_fdw wrapper."""
    stmt = sql.SQL(
        "CREATE SERVER {name} FOREIGN DATA WRAPPER {wrapper} "
        "OPTIONS (host {host}, port {port}, dbname {dbname})"
    ).format(
        name=sql.Identifier(server.name),
        wrapper=sql.SQL(DEFAULT_WRAPPER),
        host=sql.Literal(server.host),
        port=sql.Literal(str(server.port)),
        dbname=sql.Literal(server.db),
    )
    await run_mutation(db, stmt, operation="create_server", name=server.name)
    logger.info("server %s created", server.name)


def _set_options(server: ForeignServer) -> list[sql.Composable]:
    options = []
    if server.host:
        options.append(sql.SQL("SET host {}").format(sql.Literal(server.host)))
    if server.port:
        options.append(sql.SQL("SET port {}").format(sql.Literal(str(server.port))))
    if server.db:
        options.append(sql.SQL("SET dbname {}").format(sql.Literal(server.db)))
    return options


async def update_server(db: DatabaseClient, server: ForeignServer) -> None:
    """Update the non-empty connection options of ``server``.

    Empty ``host``/``db`` and a zero ``port`` are left untouched on the live
    server.  If nothing is set, no statement is issued.
    """
    options = _set_options(server)
    if not options:
        logger.debug("no options to update on server %s", server.name)
        return
    stmt = sql.SQL("ALTER SERVER {} OPTIONS ({})").format(
        sql.Identifier(server.name), sql.SQL(", ").join(options)
    )
    await run_mutation(db, stmt, operation="update_server", name=server.name)
    logger.info("server %s updated", server.name)


async def rename_server(db: DatabaseClient, server: ForeignServer, new_name: str) -> None:
    """Rename ``server`` to ``new_name``."""
    stmt = sql.SQL("ALTER SERVER {} RENAME TO {}").format(
        sql.Identifier(server.name), sql.Identifier(new_name)
    )
    await run_mutation(db, stmt, operation="rename_server", name=server.name)
    logger.info("server %s renamed to %s", server.name, new_name)


async def drop_server(db: DatabaseClient, name: str, cascade: bool = False) -> None:
    """Drop the server called ``name``.

    With ``cascade`` the user mappings and foreign tables that depend on it
    are dropped as well.
    """
    stmt = sql.SQL("DROP SERVER {}").format(sql.Identifier(name))
    if cascade:
        stmt += sql.SQL(" CASCADE")
    await run_mutation(db, stmt, operation="drop_server", name=name)
    logger.info("server %s dropped", name)
