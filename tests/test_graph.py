import numpy as np

from jilattice.model.graph import LatticeGraph, LatticeStore, make_edge_id


def test_store_returns_existing_node(make_node):
    store = LatticeStore()
    first = store.add_node(make_node("a", 0.0))
    second = store.add_node(make_node("a", 50.0))
    assert second is first
    assert len(store) == 1
    assert "a" in store


def test_edges_unique_on_unordered_pair():
    store = LatticeStore()
    edge = store.add_edge("a", "b", 3, 0)
    assert edge is not None and edge.id == make_edge_id("a", "b") == "a~b"
    assert store.add_edge("b", "a", 5, 1) is None
    assert store.add_edge("a", "a", 3, 0) is None
    assert store.has_edge("b", "a")
    assert len(store.edges()) == 1


def test_without_nodes_drops_touching_edges(make_node):
    store = LatticeStore()
    for node_id in ("a", "b", "c"):
        store.add_node(make_node(node_id, 0.0))
    store.add_edge("a", "b", 3, 0)
    store.add_edge("b", "c", 3, 0)
    graph = store.to_graph().without_nodes(["b"])
    assert graph.node_ids() == {"a", "c"}
    assert graph.edges == []


def test_positions_array_is_flat(make_node):
    graph = LatticeGraph([make_node("a", 0.0, position=(1, 2, 3)), make_node("b", 0.0, position=(4, 5, 6))])
    positions = graph.positions_array()
    assert positions.dtype == np.float64
    assert positions.tolist() == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
