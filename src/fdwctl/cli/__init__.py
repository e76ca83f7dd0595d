"""CLI module for managing postgres_fdw foreign servers and their objects.

Provides commands to apply a desired state, list live objects, and create,
drop or edit individual servers, user mappings, schemas and extensions.

Usage:
    fdwctl apply --dry-run
    fdwctl list server
    fdwctl list usermap remotedb
    fdwctl create server --host db.example.com --port 5432 --dbname app
    fdwctl create usermap remotedb reporting --remote-user app_ro --remote-password s3cret
    fdwctl create schema remotedb remote_public --remote-schema public --grant reporting
    fdwctl drop server remotedb --cascade
    fdwctl edit server remotedb --host db2.example.com --new-name remotedb2

Commands:
    apply    - Converge the database toward the configured desired state
    list     - Show live servers, extensions, user mappings or schemas
    create   - Create a server, extension, user mapping or schema
    drop     - Drop a server, extension, user mapping or schema
    edit     - Update a server or user mapping in place

Global options (``--config``, ``--connection``, ``--log-level``,
``--log-format``, ``--timeout``, ``--no-logo``) go before the command.
"""

import argparse
import asyncio
import sys
from collections.abc import Awaitable, Callable

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fdwctl import __version__
from fdwctl.adapters.base import DatabaseClient
from fdwctl.adapters.postgres import connect
from fdwctl.config.loader import load_config
from fdwctl.config.models import AppConfig
from fdwctl.errors import FdwError, IdentityNotFoundError
from fdwctl.log import FORMATS, LEVELS, setup_logging
from fdwctl.models import (
    DEFAULT_WRAPPER,
    Extension,
    ForeignServer,
    Grant,
    Schema,
    Secret,
    UserMap,
)
from fdwctl.objects.extension import create_extension, drop_extension, get_extensions
from fdwctl.objects.schema import drop_schema, get_schemas, import_schema
from fdwctl.objects.server import (
    create_server,
    drop_server,
    get_servers,
    rename_server,
    update_server,
)
from fdwctl.objects.usermap import create_usermap, drop_usermap, get_usermaps, update_usermap
from fdwctl.state.diff import find_server, find_usermap
from fdwctl.state.reconcile import ReconcileOptions, ReconcileResult, apply_desired_state

console = Console()

CommandBody = Callable[[DatabaseClient, AppConfig, argparse.Namespace], Awaitable[int]]


# ============================================================================
# Helpers
# ============================================================================


def default_server_name(host: str, port: int, dbname: str) -> str:
    """Name used for ``create server`` when ``--name`` is not given.

    Example:
        >>> default_server_name("db.example.com", 5432, "app")
        'db-example-com_5432_app'
    """
    return f"{host.replace('.', '-')}_{port}_{dbname}"


def _load_config(args: argparse.Namespace) -> AppConfig:
    config = load_config(args.config)
    if args.connection:
        config.fdw_connection = args.connection
    return config


async def _with_database(args: argparse.Namespace, body: CommandBody) -> int:
    """Load config, open one connection, run ``body``, always close."""
    config = _load_config(args)
    async with asyncio.timeout(args.timeout):
        conninfo = await config.database_connection_string()
        async with connect(conninfo) as db:
            return await body(db, config, args)


def _run(args: argparse.Namespace, body: CommandBody) -> int:
    """Run an async command body, turning errors into exit code 1."""
    if not args.no_logo:
        console.print(f"[bold cyan]fdwctl[/bold cyan] [dim]v{__version__}[/dim]")
    try:
        return asyncio.run(_with_database(args, body))
    except FdwError as e:
        console.print(f"[bold red]x[/bold red] {escape(str(e))}")
        return 1
    except TimeoutError:
        console.print(f"[bold red]x[/bold red] Timed out after {args.timeout}s")
        return 1


def _print_actions(result: ReconcileResult) -> None:
    if not result.actions:
        console.print("[green]v[/green] Database already matches the desired state")
        return

    title = "Planned Actions (dry run)" if result.dry_run else "Applied Actions"
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Action")
    table.add_column("Kind")
    table.add_column("Server")
    table.add_column("Name", style="cyan")
    for i, action in enumerate(result.actions, 1):
        table.add_row(str(i), action.verb, action.kind, action.server, action.name)
    console.print(table)


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_apply(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    """Apply the configured desired state.

    Returns:
        0 on success.  Failures propagate as ``ReconcileError``.
    """
    options = ReconcileOptions(
        cascade=not args.no_cascade,
        drop_local_users=not args.keep_local_users,
        recreate_schemas=args.recreate_schemas,
        dry_run=args.dry_run,
    )
    result = await apply_desired_state(db, config.desired_state, options)
    _print_actions(result)
    return 0


async def _async_list(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    server_name = getattr(args, "server", None)

    if args.object == "server":
        table = Table(title="Foreign Servers", show_header=True, header_style="bold")
        for column in ("Name", "Wrapper", "Owner", "Host", "Port", "DB"):
            table.add_column(column)
        for server in await get_servers(db):
            table.add_row(
                f"[cyan]{server.name}[/cyan]",
                server.wrapper,
                server.owner,
                server.host,
                str(server.port) if server.port else "",
                server.db,
            )
    elif args.object == "extension":
        table = Table(title="Extensions", show_header=True, header_style="bold")
        table.add_column("Name")
        table.add_column("Version")
        for ext in await get_extensions(db):
            table.add_row(f"[cyan]{ext.name}[/cyan]", ext.version)
    elif args.object == "usermap":
        table = Table(title="User Mappings", show_header=True, header_style="bold")
        for column in ("Server", "Local User", "Remote User"):
            table.add_column(column)
        for usermap in await get_usermaps(db, server_name):
            table.add_row(usermap.server_name, f"[cyan]{usermap.local_user}[/cyan]", usermap.remote_user)
    else:
        table = Table(title="Imported Schemas", show_header=True, header_style="bold")
        for column in ("Server", "Local Schema", "Remote Schema"):
            table.add_column(column)
        for schema in await get_schemas(db, server_name):
            table.add_row(schema.server_name, f"[cyan]{schema.local_schema}[/cyan]", schema.remote_schema)

    console.print(table)
    return 0


async def _async_create_server(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    name = args.name or default_server_name(args.host, args.port, args.dbname)
    server = ForeignServer(
        name=name, host=args.host, port=args.port, db=args.dbname, wrapper=DEFAULT_WRAPPER
    )
    await create_server(db, server)
    console.print(f"[bold green]v[/bold green] Server [bold cyan]{name}[/bold cyan] created")
    return 0


async def _async_create_extension(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    await create_extension(db, Extension(name=args.name))
    console.print(f"[bold green]v[/bold green] Extension [bold cyan]{args.name}[/bold cyan] created")
    return 0


async def _async_create_usermap(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    usermap = UserMap(
        server_name=args.server,
        local_user=args.localuser,
        remote_user=args.remote_user,
        remote_secret=Secret(value=args.remote_password or ""),
    )
    await create_usermap(db, usermap)
    console.print(
        f"[bold green]v[/bold green] User mapping [bold cyan]{args.localuser}[/bold cyan] "
        f"on server [bold]{args.server}[/bold] created"
    )
    return 0


async def _async_create_schema(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    schema = Schema(
        server_name=args.server,
        local_schema=args.localschema,
        remote_schema=args.remote_schema,
        import_enums=args.import_enums,
        enum_connection=args.enum_connection or "",
        grants=[Grant(user=user) for user in args.grant],
    )
    await import_schema(db, args.server, schema)
    console.print(
        f"[bold green]v[/bold green] Schema [bold cyan]{args.localschema}[/bold cyan] "
        f"imported from [bold]{args.server}[/bold]"
    )
    return 0


async def _async_drop_extension(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    await drop_extension(db, Extension(name=args.name))
    console.print(f"[bold green]v[/bold green] Extension [bold cyan]{args.name}[/bold cyan] dropped")
    return 0


async def _async_drop_server(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    await drop_server(db, args.name, cascade=args.cascade)
    console.print(f"[bold green]v[/bold green] Server [bold cyan]{args.name}[/bold cyan] dropped")
    return 0


async def _async_drop_usermap(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    usermap = UserMap(server_name=args.server, local_user=args.localuser)
    await drop_usermap(db, usermap, drop_local_user=args.drop_local)
    console.print(
        f"[bold green]v[/bold green] User mapping [bold cyan]{args.localuser}[/bold cyan] "
        f"on server [bold]{args.server}[/bold] dropped"
    )
    return 0


async def _async_drop_schema(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    await drop_schema(db, Schema(local_schema=args.name), cascade=args.cascade)
    console.print(f"[bold green]v[/bold green] Schema [bold cyan]{args.name}[/bold cyan] dropped")
    return 0


async def _async_edit_server(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    """Partially update a server, then rename it if ``--new-name`` differs."""
    if find_server(await get_servers(db), args.name) is None:
        raise IdentityNotFoundError(
            f"server {args.name} not found", operation="edit_server", name=args.name
        )
    server = ForeignServer(
        name=args.name,
        host=args.host or "",
        port=args.port or 0,
        db=args.dbname or "",
    )
    await update_server(db, server)
    if args.new_name and args.new_name != args.name:
        await rename_server(db, server, args.new_name)
    console.print(f"[bold green]v[/bold green] Server [bold cyan]{args.name}[/bold cyan] updated")
    return 0


async def _async_edit_usermap(db: DatabaseClient, config: AppConfig, args: argparse.Namespace) -> int:
    if find_usermap(await get_usermaps(db, args.server), args.localuser) is None:
        raise IdentityNotFoundError(
            f"user mapping {args.localuser} not found on server {args.server}",
            operation="edit_usermap",
            name=args.localuser,
        )
    usermap = UserMap(
        server_name=args.server,
        local_user=args.localuser,
        remote_user=args.remote_user or "",
        remote_secret=Secret(value=args.remote_password or ""),
    )
    await update_usermap(db, usermap)
    console.print(
        f"[bold green]v[/bold green] User mapping [bold cyan]{args.localuser}[/bold cyan] "
        f"on server [bold]{args.server}[/bold] updated"
    )
    return 0


# ============================================================================
# Command wrappers
# ============================================================================


def cmd_apply(args: argparse.Namespace) -> int:
    """Apply the desired state from the config file.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return _run(args, _async_apply)


def cmd_list(args: argparse.Namespace) -> int:
    return _run(args, _async_list)


def cmd_create_server(args: argparse.Namespace) -> int:
    return _run(args, _async_create_server)


def cmd_create_extension(args: argparse.Namespace) -> int:
    return _run(args, _async_create_extension)


def cmd_create_usermap(args: argparse.Namespace) -> int:
    return _run(args, _async_create_usermap)


def cmd_create_schema(args: argparse.Namespace) -> int:
    return _run(args, _async_create_schema)


def cmd_drop_extension(args: argparse.Namespace) -> int:
    return _run(args, _async_drop_extension)


def cmd_drop_server(args: argparse.Namespace) -> int:
    return _run(args, _async_drop_server)


def cmd_drop_usermap(args: argparse.Namespace) -> int:
    return _run(args, _async_drop_usermap)


def cmd_drop_schema(args: argparse.Namespace) -> int:
    return _run(args, _async_drop_schema)


def cmd_edit_server(args: argparse.Namespace) -> int:
    return _run(args, _async_edit_server)


def cmd_edit_usermap(args: argparse.Namespace) -> int:
    return _run(args, _async_edit_usermap)


# ============================================================================
# Argument parser
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="fdwctl",
        description="Manage postgres_fdw foreign servers, user mappings and schemas",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config file (default: $XDG_CONFIG_HOME/fdwctl/config.yaml)",
    )
    parser.add_argument(
        "--connection",
        default="",
        help="Database connection string (overrides FDWConnection from config)",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=list(LEVELS),
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--log-format",
        default="text",
        choices=FORMATS,
        help="Log output format (default: text)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Abort the command after this many seconds",
    )
    parser.add_argument(
        "--no-logo",
        action="store_true",
        help="Do not print the banner",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # apply command
    p_apply = subparsers.add_parser(
        "apply",
        help="Converge the database toward the configured desired state",
    )
    p_apply.add_argument(
        "--recreate-schemas",
        action="store_true",
        help="Drop and re-import schemas that are already imported",
    )
    p_apply.add_argument(
        "--no-cascade",
        action="store_true",
        help="Drop removed servers without CASCADE",
    )
    p_apply.add_argument(
        "--keep-local-users",
        action="store_true",
        help="Keep the local user when its user mapping is removed",
    )
    p_apply.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without making changes",
    )
    p_apply.set_defaults(func=cmd_apply)

    # list command
    p_list = subparsers.add_parser("list", help="List live objects")
    list_sub = p_list.add_subparsers(dest="object", required=True)
    list_sub.add_parser("server", help="List foreign servers").set_defaults(func=cmd_list)
    list_sub.add_parser("extension", help="List extensions").set_defaults(func=cmd_list)
    p_list_usermap = list_sub.add_parser("usermap", help="List user mappings")
    p_list_usermap.add_argument("server", nargs="?", help="Only mappings on this server")
    p_list_usermap.set_defaults(func=cmd_list)
    p_list_schema = list_sub.add_parser("schema", help="List imported schemas")
    p_list_schema.add_argument("server", nargs="?", help="Only schemas from this server")
    p_list_schema.set_defaults(func=cmd_list)

    # create command
    p_create = subparsers.add_parser("create", help="Create an object")
    create_sub = p_create.add_subparsers(dest="object", required=True)

    p_create_server = create_sub.add_parser("server", help="Create a foreign server")
    p_create_server.add_argument("--host", required=True, help="Remote host")
    p_create_server.add_argument("--port", type=int, required=True, help="Remote port")
    p_create_server.add_argument("--dbname", required=True, help="Remote database")
    p_create_server.add_argument(
        "--name",
        default="",
        help="Server name (default: <host-with-dashes>_<port>_<dbname>)",
    )
    p_create_server.set_defaults(func=cmd_create_server)

    p_create_ext = create_sub.add_parser("extension", help="Create an extension")
    p_create_ext.add_argument("name", nargs="?", default=DEFAULT_WRAPPER, help="Extension name")
    p_create_ext.set_defaults(func=cmd_create_extension)

    p_create_usermap = create_sub.add_parser("usermap", help="Create a user mapping")
    p_create_usermap.add_argument("server", help="Foreign server name")
    p_create_usermap.add_argument("localuser", help="Local user")
    p_create_usermap.add_argument("--remote-user", required=True, help="Remote user")
    p_create_usermap.add_argument("--remote-password", default="", help="Remote password")
    p_create_usermap.set_defaults(func=cmd_create_usermap)

    p_create_schema = create_sub.add_parser("schema", help="Import a foreign schema")
    p_create_schema.add_argument("server", help="Foreign server name")
    p_create_schema.add_argument("localschema", help="Local schema to import into")
    p_create_schema.add_argument("--remote-schema", required=True, help="Remote schema to import")
    p_create_schema.add_argument(
        "--import-enums",
        action="store_true",
        help="Clone remote enum types before importing",
    )
    p_create_schema.add_argument(
        "--enum-connection",
        default="",
        help="Connection string of the remote database (required with --import-enums)",
    )
    p_create_schema.add_argument(
        "--grant",
        action="append",
        default=[],
        metavar="USER",
        help="Grant usage and select to USER (repeatable)",
    )
    p_create_schema.set_defaults(func=cmd_create_schema)

    # drop command
    p_drop = subparsers.add_parser("drop", help="Drop an object")
    drop_sub = p_drop.add_subparsers(dest="object", required=True)

    p_drop_ext = drop_sub.add_parser("extension", help="Drop an extension")
    p_drop_ext.add_argument("name", help="Extension name")
    p_drop_ext.set_defaults(func=cmd_drop_extension)

    p_drop_server = drop_sub.add_parser("server", help="Drop a foreign server")
    p_drop_server.add_argument("name", help="Server name")
    p_drop_server.add_argument("--cascade", action="store_true", help="Drop dependent objects")
    p_drop_server.set_defaults(func=cmd_drop_server)

    p_drop_usermap = drop_sub.add_parser("usermap", help="Drop a user mapping")
    p_drop_usermap.add_argument("server", help="Foreign server name")
    p_drop_usermap.add_argument("localuser", help="Local user")
    p_drop_usermap.add_argument(
        "--drop-local",
        action="store_true",
        help="Also drop the local user",
    )
    p_drop_usermap.set_defaults(func=cmd_drop_usermap)

    p_drop_schema = drop_sub.add_parser("schema", help="Drop an imported schema")
    p_drop_schema.add_argument("name", help="Local schema name")
    p_drop_schema.add_argument("--cascade", action="store_true", help="Drop foreign tables too")
    p_drop_schema.set_defaults(func=cmd_drop_schema)

    # edit command
    p_edit = subparsers.add_parser("edit", help="Update an object in place")
    edit_sub = p_edit.add_subparsers(dest="object", required=True)

    p_edit_server = edit_sub.add_parser("server", help="Edit a foreign server")
    p_edit_server.add_argument("name", help="Server name")
    p_edit_server.add_argument("--host", default="", help="New remote host")
    p_edit_server.add_argument("--port", type=int, default=0, help="New remote port")
    p_edit_server.add_argument("--dbname", default="", help="New remote database")
    p_edit_server.add_argument("--new-name", default="", help="Rename the server")
    p_edit_server.set_defaults(func=cmd_edit_server)

    p_edit_usermap = edit_sub.add_parser("usermap", help="Edit a user mapping")
    p_edit_usermap.add_argument("server", help="Foreign server name")
    p_edit_usermap.add_argument("localuser", help="Local user")
    p_edit_usermap.add_argument("--remote-user", default="", help="New remote user")
    p_edit_usermap.add_argument("--remote-password", default="", help="New remote password")
    p_edit_usermap.set_defaults(func=cmd_edit_usermap)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments, configures logging and dispatches to the
    appropriate handler.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, args.log_format)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
