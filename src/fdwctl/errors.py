"""Exception hierarchy for fdwctl.

Every error raised by the accessors, resolvers and the reconciler derives
from ``FdwError`` and carries the failing ``operation`` plus the ``name`` of
the object involved, so callers can report *what* failed on *which* object
without parsing messages.

Usage:
    from fdwctl.errors import FdwError, MutationError

    try:
        await create_server(db, server)
    except MutationError as e:
        print(e.operation, e.name)
"""


class FdwError(Exception):
    """Base class for all fdwctl errors."""

    def __init__(self, message: str, operation: str = "", name: str = "") -> None:
        super().__init__(message)
        self.operation = operation
        self.name = name


class DatabaseConnectionError(FdwError):
    """Raised when a database handle cannot be opened or closed."""


class QueryError(FdwError):
    """Raised when an introspection query (or reading its rows) fails."""


class MutationError(FdwError):
    """Raised when a DDL/DML statement fails."""


class SecretUnresolvedError(FdwError):
    """Raised when no secret source produced a value."""


class EnumConnectionRequiredError(FdwError):
    """Raised when enum import is requested without an enum connection string."""


class IdentityNotFoundError(FdwError):
    """Raised when a referenced server, user mapping or schema is absent."""


class ConfigError(FdwError):
    """Raised when the configuration file cannot be read or validated."""


class ReconcileError(FdwError):
    """Raised by the reconciler to report the stage and object that failed.

    The original exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, stage: str, operation: str = "", name: str = "") -> None:
        super().__init__(message, operation=operation, name=name)
        self.stage = stage
