"""Object accessors: introspection and mutation of foreign-data objects.

Every function takes the ``DatabaseClient`` explicitly as its first
argument.

Usage:
    from fdwctl.objects import get_servers, create_server
"""

from fdwctl.objects.enums import clone_schema_enums, get_enum_labels, get_enums, get_used_enums
from fdwctl.objects.extension import create_extension, drop_extension, get_extensions
from fdwctl.objects.schema import (
    apply_grants,
    drop_schema,
    ensure_schema,
    get_schemas,
    import_schema,
)
from fdwctl.objects.server import (
    create_server,
    drop_server,
    get_servers,
    rename_server,
    update_server,
)
from fdwctl.objects.user import drop_user, ensure_user
from fdwctl.objects.usermap import create_usermap, drop_usermap, get_usermaps, update_usermap

__all__ = [
    # Extensions
    "get_extensions",
    "create_extension",
    "drop_extension",
    # Servers
    "get_servers",
    "create_server",
    "update_server",
    "rename_server",
    "drop_server",
    # Users
    "ensure_user",
    "drop_user",
    # User mappings
    "get_usermaps",
    "create_usermap",
    "update_usermap",
    "drop_usermap",
    # Schemas
    "get_schemas",
    "ensure_schema",
    "drop_schema",
    "import_schema",
    "apply_grants",
    # Enums
    "get_enums",
    "get_used_enums",
    "get_enum_labels",
    "clone_schema_enums",
]
