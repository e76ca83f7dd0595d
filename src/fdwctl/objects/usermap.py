"""User mapping accessors.

A user mapping stores the remote credentials a local user presents to a
foreign server.  Creating one also creates the local user when it is
missing; dropping one can drop the local user too.

Statements embedding a password are logged with the password redacted.
"""

import logging

from psycopg import sql

from fdwctl.adapters.base import DatabaseClient
from fdwctl.errors import IdentityNotFoundError
from fdwctl.models import Secret, UserMap
from fdwctl.objects._sql import REDACTED, run_mutation, run_query
from fdwctl.objects.user import drop_user, ensure_user
from fdwctl.secrets import get_secret, secret_is_defined

logger = logging.getLogger(__name__)

_GET_USERMAPS_SQL = """
WITH remote_user AS (
    SELECT authorization_identifier, foreign_server_name, option_value
    FROM information_schema.user_mapping_options
    WHERE option_name = 'user'
), remote_password AS (
    SELECT authorization_identifier, foreign_server_name, option_value
    FROM information_schema.user_mapping_options
    WHERE option_name = 'password'
)
SELECT ru.foreign_server_name,
       ru.authorization_identifier,
       ru.option_value,
       rp.option_value
FROM remote_user ru
LEFT JOIN remote_password rp
       ON rp.authorization_identifier = ru.authorization_identifier
      AND rp.foreign_server_name = ru.foreign_server_name
"""


async def get_usermaps(db: DatabaseClient, server_name: str | None = None) -> list[UserMap]:
    """Return user mappings, optionally only those on ``server_name``.

    The stored remote password is returned as ``remote_secret.value``.
    """
    query = _GET_USERMAPS_SQL
    params: tuple = ()
    if server_name:
        query += "WHERE ru.foreign_server_name = %s\n"
        params = (server_name,)
    query += "ORDER BY ru.foreign_server_name, ru.authorization_identifier"
    rows = await run_query(
        db, query, params or None, operation="get_usermaps", name=server_name or ""
    )
    return [
        UserMap(
            server_name=server,
            local_user=local_user,
            remote_user=remote_user or "",
            remote_secret=Secret(value=password or ""),
        )
        for server, local_user, remote_user, password in rows
    ]


def _require_server(usermap: UserMap, operation: str) -> None:
    if not usermap.server_name:
        raise IdentityNotFoundError(
            f"server name is required for user mapping {usermap.local_user}",
            operation=operation,
            name=usermap.local_user,
        )


def _mapping_target(usermap: UserMap) -> sql.Composed:
    return sql.SQL("FOR {} SERVER {}").format(
        sql.Identifier(usermap.local_user), sql.Identifier(usermap.server_name)
    )


async def _resolve_password(usermap: UserMap) -> str:
    if not secret_is_defined(usermap.remote_secret):
        return ""
    return await get_secret(usermap.remote_secret)


async def create_usermap(db: DatabaseClient, usermap: UserMap) -> None:
    """Create ``usermap``, creating its local user first if needed.

    An undefined remote secret results in an empty password.

    Raises:
        IdentityNotFoundError: If ``usermap.server_name`` is empty.
        SecretUnresolvedError: If the defined secret cannot be resolved.
        MutationError: If a statement fails.
    """
    _require_server(usermap, "create_usermap")
    password = await _resolve_password(usermap)
    await ensure_user(db, usermap.local_user, password)
    create = sql.SQL("CREATE USER MAPPING {target} OPTIONS (user {user}, password {password})")
    target = _mapping_target(usermap)
    remote_user = sql.Literal(usermap.remote_user)
    await run_mutation(
        db,
        create.format(target=target, user=remote_user, password=sql.Literal(password)),
        operation="create_usermap",
        name=usermap.local_user,
        log_sql=create.format(target=target, user=remote_user, password=REDACTED),
    )
    logger.info("user mapping %s on server %s created", usermap.local_user, usermap.server_name)


async def update_usermap(db: DatabaseClient, usermap: UserMap) -> None:
    """Set the remote user and/or password of an existing mapping.

    Only defined fields are set; with neither set no statement is issued.
    """
    _require_server(usermap, "update_usermap")
    options: list[sql.Composable] = []
    logged: list[sql.Composable] = []
    if usermap.remote_user:
        option = sql.SQL("SET user {}").format(sql.Literal(usermap.remote_user))
        options.append(option)
        logged.append(option)
    if secret_is_defined(usermap.remote_secret):
        password = await get_secret(usermap.remote_secret)
        options.append(sql.SQL("SET password {}").format(sql.Literal(password)))
        logged.append(sql.SQL("SET password {}").format(REDACTED))
    if not options:
        logger.debug("no options to update on user mapping %s", usermap.local_user)
        return
    alter = sql.SQL("ALTER USER MAPPING {} OPTIONS ({})")
    target = _mapping_target(usermap)
    await run_mutation(
        db,
        alter.format(target, sql.SQL(", ").join(options)),
        operation="update_usermap",
        name=usermap.local_user,
        log_sql=alter.format(target, sql.SQL(", ").join(logged)),
    )
    logger.info("user mapping %s on server %s updated", usermap.local_user, usermap.server_name)


async def drop_usermap(
    db: DatabaseClient,
    usermap: UserMap,
    drop_local_user: bool = False,
) -> None:
    """Drop ``usermap`` and, with ``drop_local_user``, its local user."""
    _require_server(usermap, "drop_usermap")
    await run_mutation(
        db,
        sql.SQL("DROP USER MAPPING IF EXISTS {}").format(_mapping_target(usermap)),
        operation="drop_usermap",
        name=usermap.local_user,
    )
    logger.info("user mapping %s on server %s dropped", usermap.local_user, usermap.server_name)
    if drop_local_user:
        await drop_user(db, usermap.local_user)
