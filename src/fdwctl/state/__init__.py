"""Desired-state diffing and reconciliation."""

from fdwctl.state.diff import (
    DiffResult,
    diff_by_key,
    diff_extensions,
    diff_schemas,
    diff_servers,
    diff_usermaps,
    find_schema,
    find_server,
    find_usermap,
)
from fdwctl.state.reconcile import (
    Action,
    ReconcileOptions,
    ReconcileResult,
    apply_desired_state,
)

__all__ = [
    "DiffResult",
    "diff_by_key",
    "diff_extensions",
    "diff_servers",
    "diff_usermaps",
    "diff_schemas",
    "find_server",
    "find_usermap",
    "find_schema",
    "Action",
    "ReconcileOptions",
    "ReconcileResult",
    "apply_desired_state",
]
