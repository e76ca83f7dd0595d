"""Desired-vs-live diffing.

One generic function, ``diff_by_key``, partitions two lists by a string
key into items to remove (live only), add (desired only) and modify (in
both; the desired side is returned).  Keys are compared exactly, with no
trimming or case folding.

Usage:
    from fdwctl.state.diff import diff_servers

    result = diff_servers(desired.servers, await get_servers(db))
    for server in result.add:
        ...
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from fdwctl.models import Extension, ForeignServer, Schema, UserMap

T = TypeVar("T")


@dataclass
class DiffResult(Generic[T]):
    """Partition of desired and live items.

    Attributes:
        remove: Live items whose key is absent from desired.
        add: Desired items whose key is absent from live.
        modify: Desired items whose key is present in live.
    """

    remove: list[T] = field(default_factory=list)
    add: list[T] = field(default_factory=list)
    modify: list[T] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """True if anything has to be added or removed."""
        return bool(self.remove or self.add)

    def kept(self, live: Iterable[T], key: Callable[[T], str]) -> list[T]:
        """Return the ``live`` items that are not scheduled for removal."""
        removed = {key(item) for item in self.remove}
        return [item for item in live if key(item) not in removed]


def diff_by_key(
    desired: Sequence[T],
    live: Sequence[T],
    key: Callable[[T], str],
) -> DiffResult[T]:
    """Partition ``desired`` and ``live`` by ``key``.

    Args:
        desired: Declared items.
        live: Introspected items.
        key: Identity of an item.

    Returns:
        DiffResult whose lists keep the input order.

    Example:
        >>> r = diff_by_key(["a", "b"], ["b", "c"], key=str)
        >>> r.remove, r.add, r.modify
        (['c'], ['a'], ['b'])
    """
    live_keys = [key(item) for item in live]
    desired_keys = [key(item) for item in desired]
    result: DiffResult[T] = DiffResult()
    for item, item_key in zip(live, live_keys):
        if item_key not in desired_keys:
            result.remove.append(item)
    for item, item_key in zip(desired, desired_keys):
        if item_key in live_keys:
            result.modify.append(item)
        else:
            result.add.append(item)
    return result


# ============================================================================
# Per-kind wrappers
# ============================================================================


def extension_key(ext: Extension) -> str:
    return ext.name


def server_key(server: ForeignServer) -> str:
    return server.name


def usermap_key(usermap: UserMap) -> str:
    return usermap.local_user


def schema_key(schema: Schema) -> str:
    return schema.local_schema


def diff_extensions(desired: Sequence[Extension], live: Sequence[Extension]) -> DiffResult[Extension]:
    return diff_by_key(desired, live, extension_key)


def diff_servers(
    desired: Sequence[ForeignServer], live: Sequence[ForeignServer]
) -> DiffResult[ForeignServer]:
    return diff_by_key(desired, live, server_key)


def diff_usermaps(desired: Sequence[UserMap], live: Sequence[UserMap]) -> DiffResult[UserMap]:
    """Diff user mappings of a single server by local user."""
    return diff_by_key(desired, live, usermap_key)


def diff_schemas(desired: Sequence[Schema], live: Sequence[Schema]) -> DiffResult[Schema]:
    return diff_by_key(desired, live, schema_key)


# ============================================================================
# Lookups
# ============================================================================


def _find(items: Iterable[T], key: Callable[[T], str], value: str) -> T | None:
    for item in items:
        if key(item) == value:
            return item
    return None


def find_server(servers: Iterable[ForeignServer], name: str) -> ForeignServer | None:
    return _find(servers, server_key, name)


def find_usermap(usermaps: Iterable[UserMap], local_user: str) -> UserMap | None:
    return _find(usermaps, usermap_key, local_user)


def find_schema(schemas: Iterable[Schema], local_schema: str) -> Schema | None:
    return _find(schemas, schema_key, local_schema)
