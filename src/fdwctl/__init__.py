"""fdwctl: declarative management of postgres_fdw foreign servers.

Reconciles foreign servers, user mappings, imported schemas (with cloned
enum types) and extensions in a PostgreSQL database against a declared
desired state.

Usage:
    from fdwctl import connect, load_config, apply_desired_state

    config = load_config()
    async with connect(await config.database_connection_string()) as db:
        result = await apply_desired_state(db, config.desired_state)
"""

__version__ = "0.1.0"

from fdwctl.adapters import AsyncPostgresAdapter, DatabaseClient, connect
from fdwctl.config import AppConfig, load_config
from fdwctl.conninfo import resolve_connection_string
from fdwctl.errors import (
    ConfigError,
    DatabaseConnectionError,
    EnumConnectionRequiredError,
    FdwError,
    IdentityNotFoundError,
    MutationError,
    QueryError,
    ReconcileError,
    SecretUnresolvedError,
)
from fdwctl.models import (
    DesiredState,
    Extension,
    ForeignServer,
    Grant,
    Schema,
    SchemaEnum,
    Secret,
    SecretK8s,
    UserMap,
)
from fdwctl.secrets import get_secret
from fdwctl.state import ReconcileOptions, ReconcileResult, apply_desired_state

__all__ = [
    "__version__",
    # Adapters
    "DatabaseClient",
    "AsyncPostgresAdapter",
    "connect",
    # Config
    "AppConfig",
    "load_config",
    # Secrets and connection strings
    "get_secret",
    "resolve_connection_string",
    # Models
    "DesiredState",
    "Extension",
    "ForeignServer",
    "Grant",
    "Schema",
    "SchemaEnum",
    "Secret",
    "SecretK8s",
    "UserMap",
    # Reconciliation
    "ReconcileOptions",
    "ReconcileResult",
    "apply_desired_state",
    # Errors
    "FdwError",
    "DatabaseConnectionError",
    "QueryError",
    "MutationError",
    "SecretUnresolvedError",
    "EnumConnectionRequiredError",
    "IdentityNotFoundError",
    "ConfigError",
    "ReconcileError",
]
