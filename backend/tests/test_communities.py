import asyncio

import pytest
from fakes import FakeGraphStore, YieldingGraphStore

from flowsentry.communities import CommunityDetector, UnionFind
from flowsentry.config import CommunitySettings
from flowsentry.models import GraphNode

NODES = ["A", "B", "C", "D"]
EDGES = [("A", "B"), ("C", "D")]


def _grouped(nodes):
    by_community: dict = {}
    for node in nodes:
        by_community.setdefault(node.community_id, []).append(node.id)
    return sorted(sorted(members) for members in by_community.values())


def test_union_find_merges_and_compresses():
    uf = UnionFind(["a", "b", "c", "d"])
    uf.union("a", "b")
    uf.union("c", "d")
    uf.union("b", "d")
    root = uf.find("d")
    assert {uf.find(x) for x in "abcd"} == {root}
    # every element now points straight at the root
    assert all(uf.parent[x] == root for x in "abcd")


def test_union_find_equal_rank_attaches_second_under_first():
    uf = UnionFind(["x", "y"])
    uf.union("x", "y")
    assert uf.find("y") == "x"
    assert uf.rank["x"] == 1


def test_union_find_lower_rank_goes_under_higher():
    uf = UnionFind(["a", "b", "c"])
    uf.union("a", "b")
    uf.union("c", "a")
    assert uf.find("c") == "a"
    assert uf.rank["a"] == 1


def test_union_find_registers_unknown_element():
    uf = UnionFind([])
    assert uf.find("ghost") == "ghost"
    assert uf.rank["ghost"] == 0


def test_union_find_handles_long_chains():
    ids = [f"n{i}" for i in range(20_000)]
    uf = UnionFind(ids)
    # force a deep chain by hand
    for child, parent in zip(ids[1:], ids):
        uf.parent[child] = parent
    assert uf.find(ids[-1]) == "n0"


@pytest.mark.anyio
async def test_compute_groups_weakly_connected_components(clock):
    detector = CommunityDetector(FakeGraphStore(nodes=NODES, edges=EDGES), clock=clock)
    await detector.compute_communities()
    nodes = await detector.augment_nodes_with_communities([GraphNode(id=n) for n in NODES])

    assert _grouped(nodes) == [["A", "B"], ["C", "D"]]
    assert len({n.community_id for n in nodes}) == 2
    assert detector.groups() == {"c1": ["A", "B"], "c2": ["C", "D"]}


@pytest.mark.anyio
async def test_labels_follow_node_iteration_order(clock):
    store = FakeGraphStore(nodes=["D", "C", "B", "A", "E"], edges=EDGES)
    detector = CommunityDetector(store, clock=clock)
    await detector.compute_communities()
    assert detector.labels_by_entity == {"D": "c1", "C": "c1", "B": "c2", "A": "c2", "E": "c3"}


@pytest.mark.anyio
async def test_edge_direction_is_ignored(clock):
    store = FakeGraphStore(nodes=["A", "B", "C"], edges=[("A", "B"), ("C", "B")])
    detector = CommunityDetector(store, clock=clock)
    await detector.compute_communities()
    assert detector.groups() == {"c1": ["A", "B", "C"]}


@pytest.mark.anyio
async def test_recompute_on_empty_cache_then_every_n(clock):
    store = FakeGraphStore(nodes=NODES, edges=EDGES)
    detector = CommunityDetector(
        store,
        CommunitySettings(recompute_every_n_tx=2, recompute_interval_millis=99_999_999),
        clock,
    )

    assert await detector.maybe_recompute_communities()
    assert (store.node_calls, store.edge_calls) == (1, 1)

    assert not await detector.maybe_recompute_communities()
    assert (store.node_calls, store.edge_calls) == (1, 1)

    assert await detector.maybe_recompute_communities()
    assert (store.node_calls, store.edge_calls) == (2, 2)
    assert detector.transactions_since_compute == 0


@pytest.mark.anyio
async def test_recompute_when_interval_elapses(clock):
    store = FakeGraphStore(nodes=NODES, edges=EDGES)
    detector = CommunityDetector(
        store,
        CommunitySettings(recompute_every_n_tx=100, recompute_interval_millis=30_000),
        clock,
    )
    await detector.initialize_communities_on_startup()

    clock.advance(29_999)
    assert not await detector.maybe_recompute_communities()
    clock.advance(1)
    assert await detector.maybe_recompute_communities()
    assert store.node_calls == 2


@pytest.mark.anyio
async def test_augment_bootstraps_empty_cache(clock):
    store = FakeGraphStore(nodes=NODES, edges=EDGES)
    detector = CommunityDetector(store, clock=clock)
    nodes = await detector.augment_nodes_with_communities([GraphNode(id="A")])
    assert store.node_calls == 1
    assert nodes[0].community_id == "c1"

    await detector.augment_nodes_with_communities([GraphNode(id="A")])
    assert store.node_calls == 1


@pytest.mark.anyio
async def test_nodes_added_after_compute_have_no_label(clock):
    detector = CommunityDetector(FakeGraphStore(nodes=NODES, edges=EDGES), clock=clock)
    await detector.compute_communities()
    [late] = await detector.augment_nodes_with_communities([GraphNode(id="NEW")])
    assert late.community_id is None


@pytest.mark.anyio
async def test_store_failure_propagates_and_keeps_cache(clock):
    store = FakeGraphStore(nodes=NODES, edges=EDGES)
    detector = CommunityDetector(store, clock=clock)
    await detector.compute_communities()
    store.fail = True
    with pytest.raises(ConnectionError):
        await detector.compute_communities()
    assert detector.groups() == {"c1": ["A", "B"], "c2": ["C", "D"]}


@pytest.mark.anyio
async def test_reset_empties_cache(clock):
    detector = CommunityDetector(FakeGraphStore(nodes=NODES, edges=EDGES), clock=clock)
    await detector.compute_communities()
    detector.reset()
    assert detector.labels_by_entity == {}
    assert detector.transactions_since_compute == 0


@pytest.mark.anyio
async def test_concurrent_recompute_checks_are_serialized(clock):
    store = YieldingGraphStore(nodes=NODES, edges=EDGES)
    settings = CommunitySettings(recompute_every_n_tx=3, recompute_interval_millis=99_999_999)
    detector = CommunityDetector(store, settings, clock)

    results = await asyncio.gather(*(detector.maybe_recompute_communities() for _ in range(4)))

    # only the first call sees an empty cache; the fourth reaches the count threshold
    assert results == [True, False, False, True]
    assert store.node_calls == 2
    assert detector.transactions_since_compute == 0
