"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the psycopg-backed
``AsyncPostgresAdapter``.

Usage:
    from fdwctl.adapters import DatabaseClient, AsyncPostgresAdapter, connect
"""

from fdwctl.adapters.base import DatabaseClient
from fdwctl.adapters.postgres import AsyncPostgresAdapter, connect

__all__ = [
    "DatabaseClient",
    "AsyncPostgresAdapter",
    "connect",
]
