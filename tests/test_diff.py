"""Tests for desired-vs-live diffing."""

import pytest

from fdwctl.models import Extension, ForeignServer, Schema, UserMap
from fdwctl.state.diff import (
    diff_by_key,
    diff_extensions,
    diff_schemas,
    diff_servers,
    diff_usermaps,
    find_schema,
    find_server,
    find_usermap,
    server_key,
)


def _servers(*names: str) -> list[ForeignServer]:
    return [ForeignServer(name=name) for name in names]


# ============================================================================
# Test: Partitioning
# ============================================================================


class TestDiffByKey:
    """Verify the generic partition is complete, disjoint and ordered."""

    @pytest.mark.parametrize(
        "desired,live",
        [
            ([], []),
            (["a"], []),
            ([], ["a"]),
            (["a", "b", "c"], ["b", "c", "d"]),
            (["x", "y"], ["x", "y"]),
        ],
    )
    def test_partition_is_complete_and_disjoint(self, desired: list, live: list) -> None:
        result = diff_by_key(desired, live, str)

        assert set(result.add).isdisjoint(result.modify)
        assert set(result.add) | set(result.modify) == set(desired)
        assert set(result.remove) == set(live) - set(desired)
        assert set(result.modify) == set(desired) & set(live)

    def test_order_follows_inputs(self) -> None:
        result = diff_by_key(["c", "a", "b"], ["z", "b", "y"], str)
        assert result.add == ["c", "a"]
        assert result.modify == ["b"]
        assert result.remove == ["z", "y"]

    def test_keys_compared_exactly(self) -> None:
        result = diff_by_key(["Remote"], ["remote", "remote "], str)
        assert result.add == ["Remote"]
        assert result.remove == ["remote", "remote "]

    def test_modify_returns_desired_side(self) -> None:
        desired = [ForeignServer(name="s", host="new")]
        live = [ForeignServer(name="s", host="old")]
        result = diff_servers(desired, live)
        assert result.modify[0].host == "new"

    def test_idempotent_after_convergence(self) -> None:
        """Applying add/remove to live and re-diffing yields no changes."""
        desired = _servers("a", "b", "c")
        live = _servers("b", "d")
        first = diff_servers(desired, live)

        converged = first.kept(live, server_key) + first.add
        second = diff_servers(desired, converged)

        assert second.add == []
        assert second.remove == []
        assert not second.has_changes
        assert sorted(s.name for s in second.modify) == ["a", "b", "c"]

    def test_kept_excludes_removed(self) -> None:
        live = _servers("a", "b", "c")
        result = diff_servers(_servers("b"), live)
        assert [s.name for s in result.kept(live, server_key)] == ["b"]


class TestPerKindDiff:
    """Verify each wrapper uses the right identity."""

    def test_extensions_by_name(self) -> None:
        result = diff_extensions(
            [Extension(name="postgres_fdw")],
            [Extension(name="plpgsql", version="1.0"), Extension(name="postgres_fdw", version="1.1")],
        )
        assert [e.name for e in result.remove] == ["plpgsql"]
        assert [e.name for e in result.modify] == ["postgres_fdw"]

    def test_usermaps_by_local_user(self) -> None:
        result = diff_usermaps(
            [UserMap(local_user="alice", remote_user="new")],
            [UserMap(local_user="alice", remote_user="old"), UserMap(local_user="bob")],
        )
        assert [u.local_user for u in result.modify] == ["alice"]
        assert [u.local_user for u in result.remove] == ["bob"]

    def test_schemas_by_local_schema(self) -> None:
        result = diff_schemas(
            [Schema(local_schema="l1", remote_schema="public")],
            [Schema(local_schema="l1", remote_schema="other"), Schema(local_schema="l2")],
        )
        assert [s.local_schema for s in result.modify] == ["l1"]
        assert [s.local_schema for s in result.remove] == ["l2"]


# ============================================================================
# Test: Lookups
# ============================================================================


class TestFind:
    def test_find_server(self) -> None:
        servers = _servers("a", "b")
        assert find_server(servers, "b").name == "b"
        assert find_server(servers, "missing") is None

    def test_find_usermap(self) -> None:
        usermaps = [UserMap(local_user="alice"), UserMap(local_user="bob")]
        assert find_usermap(usermaps, "bob").local_user == "bob"
        assert find_usermap(usermaps, "carol") is None

    def test_find_schema(self) -> None:
        schemas = [Schema(local_schema="l1")]
        assert find_schema(schemas, "l1").local_schema == "l1"
        assert find_schema([], "l1") is None
