"""Desired-state reconciliation.

Converges the live database toward a ``DesiredState`` in strict order:

1. Extensions: missing ones are created; extra ones are never dropped
2. Servers: removed, created, then updated where they differ
3. For every desired server:
   a. User mappings: removed, created, then updated where they differ
   b. Schemas: removed, imported, and re-imported only on request

Every statement commits on its own.  The first failure stops the run and is
raised as ``ReconcileError`` naming the stage and object; nothing that
already ran is rolled back.

Usage:
    from fdwctl.adapters import connect
    from fdwctl.state import ReconcileOptions, apply_desired_state

    async with connect(conninfo) as db:
        result = await apply_desired_state(db, config.desired_state)
    for action in result.actions:
        print(action)
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from fdwctl.adapters.base import DatabaseClient
from fdwctl.errors import FdwError, IdentityNotFoundError, ReconcileError
from fdwctl.models import DesiredState, ForeignServer, Secret, UserMap
from fdwctl.objects.extension import create_extension, get_extensions
from fdwctl.objects.schema import drop_schema, get_schemas, import_schema
from fdwctl.objects.server import create_server, drop_server, get_servers, update_server
from fdwctl.objects.usermap import create_usermap, drop_usermap, get_usermaps, update_usermap
from fdwctl.secrets import get_secret, secret_is_defined
from fdwctl.state.diff import (
    DiffResult,
    diff_extensions,
    diff_schemas,
    diff_servers,
    diff_usermaps,
    find_server,
    find_usermap,
)

logger = logging.getLogger(__name__)


@dataclass
class ReconcileOptions:
    """Switches for ``apply_desired_state``.

    Attributes:
        cascade: Drop removed servers with CASCADE.
        drop_local_users: Drop the local user along with a removed mapping.
        recreate_schemas: Drop and re-import schemas that already exist.
        dry_run: Record actions without executing any mutation.
    """

    cascade: bool = True
    drop_local_users: bool = True
    recreate_schemas: bool = False
    dry_run: bool = False


@dataclass(frozen=True)
class Action:
    """One mutation performed (or planned) by the reconciler."""

    kind: str
    verb: str
    name: str
    server: str = ""

    def __str__(self) -> str:
        target = f"{self.server}/{self.name}" if self.server else self.name
        return f"{self.verb} {self.kind} {target}"


@dataclass
class ReconcileResult:
    """Ordered record of the actions of one run."""

    actions: list[Action] = field(default_factory=list)
    dry_run: bool = False

    def record(self, kind: str, verb: str, name: str, server: str = "") -> None:
        action = Action(kind=kind, verb=verb, name=name, server=server)
        logger.info("%s%s", "(dry run) " if self.dry_run else "", action)
        self.actions.append(action)

    def count(self, verb: str) -> int:
        return sum(1 for action in self.actions if action.verb == verb)

    @property
    def changed(self) -> bool:
        return bool(self.actions)


@contextmanager
def _stage(stage: str, name: str = "") -> Iterator[None]:
    """Re-raise any fdwctl error from the block as ``ReconcileError``."""
    try:
        yield
    except ReconcileError:
        raise
    except FdwError as e:
        target = e.name or name
        raise ReconcileError(
            f"{stage} failed for {target or 'desired state'}: {e}",
            stage=stage,
            operation=e.operation,
            name=target,
        ) from e


# ============================================================================
# Stages
# ============================================================================


async def _reconcile_extensions(
    db: DatabaseClient,
    desired: DesiredState,
    options: ReconcileOptions,
    result: ReconcileResult,
) -> None:
    with _stage("extensions"):
        diff = diff_extensions(desired.extensions, await get_extensions(db))
    if diff.remove:
        logger.debug(
            "leaving extensions not in desired state: %s",
            ", ".join(ext.name for ext in diff.remove),
        )
    for ext in diff.add:
        with _stage("extensions", ext.name):
            if not options.dry_run:
                await create_extension(db, ext)
            result.record("extension", "create", ext.name)


async def _reconcile_servers(
    db: DatabaseClient,
    desired: DesiredState,
    options: ReconcileOptions,
    result: ReconcileResult,
) -> DiffResult[ForeignServer]:
    with _stage("servers"):
        live = await get_servers(db)
    diff = diff_servers(desired.servers, live)

    for server in diff.remove:
        with _stage("servers", server.name):
            if not options.dry_run:
                await drop_server(db, server.name, cascade=options.cascade)
            result.record("server", "drop", server.name)

    for server in diff.add:
        with _stage("servers", server.name):
            if not options.dry_run:
                await create_server(db, server)
            result.record("server", "create", server.name)

    for server in diff.modify:
        with _stage("servers", server.name):
            current = find_server(live, server.name)
            if current is None:
                raise IdentityNotFoundError(
                    f"live server {server.name} not found",
                    operation="update_server",
                    name=server.name,
                )
            if server.equals(current):
                logger.debug("server %s is up to date", server.name)
                continue
            if not options.dry_run:
                await update_server(db, server)
            result.record("server", "update", server.name)

    return diff


async def _resolved(usermap: UserMap) -> UserMap:
    """Copy of ``usermap`` whose secret is replaced by its resolved value."""
    if not secret_is_defined(usermap.remote_secret):
        return usermap
    password = await get_secret(usermap.remote_secret)
    return usermap.model_copy(update={"remote_secret": Secret(value=password)})


async def _reconcile_usermaps(
    db: DatabaseClient,
    server: ForeignServer,
    options: ReconcileOptions,
    result: ReconcileResult,
) -> None:
    desired = [
        usermap.model_copy(update={"server_name": server.name}) for usermap in server.user_maps
    ]
    with _stage("usermaps", server.name):
        live = await get_usermaps(db, server.name)
    diff = diff_usermaps(desired, live)

    for usermap in diff.remove:
        with _stage("usermaps", usermap.local_user):
            if not options.dry_run:
                await drop_usermap(db, usermap, drop_local_user=options.drop_local_users)
            result.record("usermap", "drop", usermap.local_user, server.name)

    for usermap in diff.add:
        with _stage("usermaps", usermap.local_user):
            if not options.dry_run:
                await create_usermap(db, usermap)
            result.record("usermap", "create", usermap.local_user, server.name)

    for usermap in diff.modify:
        with _stage("usermaps", usermap.local_user):
            current = find_usermap(live, usermap.local_user)
            if current is None:
                raise IdentityNotFoundError(
                    f"live user mapping {usermap.local_user} not found on server {server.name}",
                    operation="update_usermap",
                    name=usermap.local_user,
                )
            resolved = await _resolved(usermap)
            if resolved.equals(current):
                logger.debug("user mapping %s is up to date", usermap.local_user)
                continue
            if not options.dry_run:
                await update_usermap(db, resolved)
            result.record("usermap", "update", usermap.local_user, server.name)


async def _reconcile_schemas(
    db: DatabaseClient,
    server: ForeignServer,
    options: ReconcileOptions,
    result: ReconcileResult,
) -> None:
    with _stage("schemas", server.name):
        live = await get_schemas(db, server.name)
    diff = diff_schemas(server.schemas, live)

    for schema in diff.remove:
        with _stage("schemas", schema.local_schema):
            if not options.dry_run:
                await drop_schema(db, schema, cascade=True)
            result.record("schema", "drop", schema.local_schema, server.name)

    for schema in diff.add:
        with _stage("schemas", schema.local_schema):
            if not options.dry_run:
                await import_schema(db, server.name, schema)
            result.record("schema", "import", schema.local_schema, server.name)

    for schema in diff.modify:
        if not options.recreate_schemas:
            logger.debug("schema %s already imported; skipping", schema.local_schema)
            continue
        with _stage("schemas", schema.local_schema):
            if not options.dry_run:
                await drop_schema(db, schema, cascade=True)
                await import_schema(db, server.name, schema)
            result.record("schema", "recreate", schema.local_schema, server.name)


# ============================================================================
# Entry point
# ============================================================================


async def apply_desired_state(
    db: DatabaseClient,
    desired: DesiredState,
    options: ReconcileOptions | None = None,
) -> ReconcileResult:
    """Converge ``db`` toward ``desired``.

    Args:
        db: Target database (autocommit).
        desired: Declared extensions and servers.
        options: Reconciliation switches; defaults to ``ReconcileOptions()``.

    Returns:
        ReconcileResult listing every action in the order it ran.

    Raises:
        ReconcileError: On the first failure.  ``__cause__`` holds the
            original error; earlier actions stay applied.
    """
    options = options or ReconcileOptions()
    result = ReconcileResult(dry_run=options.dry_run)

    await _reconcile_extensions(db, desired, options, result)
    servers = await _reconcile_servers(db, desired, options, result)

    for server in servers.add + servers.modify:
        await _reconcile_usermaps(db, server, options, result)
        await _reconcile_schemas(db, server, options, result)

    logger.info(
        "desired state %s: %d action(s)",
        "planned" if options.dry_run else "applied",
        len(result.actions),
    )
    return result
