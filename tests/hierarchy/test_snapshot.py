"""Tests for level-by-level tree snapshots."""

from unittest.mock import AsyncMock

import pytest

from delegation_tree.hierarchy import (
    Address,
    DelegationNotFoundError,
    NodeHandle,
    UpstreamUnavailableError,
)
from delegation_tree.sources.memory import InMemoryHierarchy


def _ids(level):
    return [member.node.id for member in level]


class TestSnapshotScenarios:
    @pytest.mark.asyncio
    async def test_childless_root_is_single_level(self, make_engine):
        source = InMemoryHierarchy()
        source.add_root("r", "alice", "bob", votes=12)
        engine = make_engine(source)

        snapshot = await engine.build_snapshot(NodeHandle("r"))

        assert snapshot.depth == 1
        assert len(snapshot.level(0)) == 1
        only = snapshot.level(0)[0]
        assert only.node == NodeHandle("r")
        assert only.votes == 12

    @pytest.mark.asyncio
    async def test_root_with_two_leaves(self, make_engine):
        source = InMemoryHierarchy()
        source.add_root("r", "alice", "bob", votes=50)
        source.add_child("r", "c1", "bob", "carol", votes=20)
        source.add_child("r", "c2", "bob", "dave", votes=15)
        source.balance_of = AsyncMock(side_effect=source.balance_of)
        engine = make_engine(source)

        snapshot = await engine.build_snapshot(NodeHandle("r"))

        assert [_ids(level) for level in snapshot.levels] == [["r"], ["c1", "c2"]]
        assert [m.votes for m in snapshot.level(1)] == [20, 15]
        awaited = [c.args[0] for c in source.balance_of.await_args_list]
        assert awaited == [NodeHandle("r"), NodeHandle("c1"), NodeHandle("c2")]

    @pytest.mark.asyncio
    async def test_chain_at_bound_produces_max_levels(self, chain_factory, make_engine):
        source = chain_factory(5)
        source.children = AsyncMock(side_effect=source.children)
        engine = make_engine(source)

        snapshot = await engine.build_snapshot(NodeHandle("n0"))

        assert snapshot.depth == 5
        assert [_ids(level) for level in snapshot.levels] == [
            ["n0"],
            ["n1"],
            ["n2"],
            ["n3"],
            ["n4"],
        ]
        enumerated = [c.args[0] for c in source.children.await_args_list]
        assert NodeHandle("n4") not in enumerated

    @pytest.mark.asyncio
    async def test_deeper_tree_is_capped(self, make_engine):
        source = InMemoryHierarchy()
        source.add_root("n0", "a0", "a1")
        for i in range(1, 5):
            source.add_child(f"n{i-1}", f"n{i}", f"a{i}", f"a{i+1}")
        engine = make_engine(source, max_chain_length=3)

        snapshot = await engine.build_snapshot(NodeHandle("n0"))

        assert snapshot.depth == 3
        assert _ids(snapshot.level(2)) == ["n2"]


class TestSnapshotShape:
    @pytest.mark.asyncio
    async def test_levels_grouped_by_parent_order(self, engine):
        snapshot = await engine.build_snapshot(NodeHandle("r"))

        assert [_ids(level) for level in snapshot.levels] == [
            ["r"],
            ["c1", "c2"],
            ["g1", "g2", "g3"],
        ]
        assert snapshot.root.node == NodeHandle("r")
        assert snapshot.total_votes == 192

    @pytest.mark.asyncio
    async def test_level_size_matches_children_counts(self, engine, hierarchy):
        snapshot = await engine.build_snapshot(NodeHandle("r"))

        for depth in range(1, snapshot.depth):
            expected = 0
            for parent in snapshot.level(depth - 1):
                expected += len(await hierarchy.children(parent.node))
            assert len(snapshot.level(depth)) == expected

    @pytest.mark.asyncio
    async def test_stops_at_first_empty_level(self, engine, hierarchy):
        snapshot = await engine.build_snapshot(NodeHandle("r"))

        assert snapshot.depth == 3
        assert all(len(level) > 0 for level in snapshot.levels)
        for member in snapshot.level(2):
            assert await hierarchy.children(member.node) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("start", ["c1", "g2", "g3"])
    async def test_any_member_yields_same_snapshot(self, engine, start):
        from_root = await engine.build_snapshot(NodeHandle("r"))
        assert await engine.build_snapshot(NodeHandle(start)) == from_root

    @pytest.mark.asyncio
    async def test_concurrent_siblings_same_result(self, hierarchy, make_engine):
        sequential = await make_engine(hierarchy).build_snapshot(NodeHandle("r"))
        concurrent = await make_engine(hierarchy, sibling_concurrency=4).build_snapshot(
            NodeHandle("r")
        )
        assert concurrent == sequential

    @pytest.mark.asyncio
    async def test_votes_read_at_build_time(self, engine, hierarchy):
        hierarchy.set_votes("g3", 99)
        snapshot = await engine.build_snapshot(NodeHandle("r"))
        assert snapshot.level(2)[2].votes == 99


class TestSnapshotForPair:
    @pytest.mark.asyncio
    async def test_pair_resolves_to_tree(self, engine):
        by_pair = await engine.build_snapshot_for_pair(Address("dave"), Address("gina"))
        assert by_pair == await engine.build_snapshot(NodeHandle("r"))

    @pytest.mark.asyncio
    async def test_unknown_pair_not_found(self, engine):
        with pytest.raises(DelegationNotFoundError):
            await engine.build_snapshot_for_pair(Address("bob"), Address("alice"))


class TestSnapshotFailures:
    @pytest.mark.asyncio
    async def test_balance_failure_propagates(self, hierarchy, make_engine):
        original_balance = hierarchy.balance_of

        async def failing_balance(node):
            if node == NodeHandle("g1"):
                raise ConnectionError("token service unavailable")
            return await original_balance(node)

        hierarchy.balance_of = AsyncMock(side_effect=failing_balance)
        engine = make_engine(hierarchy)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await engine.build_snapshot(NodeHandle("r"))

        assert exc_info.value.operation == "balance_of"

    @pytest.mark.asyncio
    async def test_annotate_single_delegation(self, engine):
        root = await engine.locate_root(NodeHandle("c2"))
        annotated = await engine.annotate(root)
        assert annotated.votes == 100
        assert annotated.delegation == root

    @pytest.mark.asyncio
    async def test_annotate_level_keeps_order(self, hierarchy, make_engine):
        engine = make_engine(hierarchy, sibling_concurrency=3)
        children = await engine.enumerate_children(NodeHandle("c1"))

        level = await engine.annotate_level(children)

        assert [m.node.id for m in level] == ["g1", "g2"]
        assert [m.votes for m in level] == [10, 5]
