import pytest
from orchestria.core.errors import CycleError
from orchestria.core.graph import DependencyGraph

def _index(phases):
    return {n: i for i, phase in enumerate(phases) for n in phase}

def test_phases_respect_dependencies():
    edges = [("a", "b"), ("a", "c"), ("b", "d"), ("c", "d"), ("e", "d"), ("d", "f")]
    g = DependencyGraph.from_edges(["a", "b", "c", "d", "e", "f", "g"], edges)
    phases = g.to_phases()
    idx = _index(phases)
    for src, dst in edges:
        assert idx[dst] > idx[src]
    flat = [n for p in phases for n in p]
    assert sorted(flat) == sorted(g.nodes())
    assert len(flat) == len(set(flat))
    assert phases[0] == ["a", "e", "g"]
    assert phases == [["a", "e", "g"], ["b", "c"], ["d"], ["f"]]

def test_add_node_and_edge_are_idempotent():
    g = DependencyGraph()
    g.add_node("a")
    g.add_node("a")
    g.add_edge("a", "b")
    g.add_edge("a", "b")
    assert len(g) == 2
    assert g.edges() == [("a", "b")]
    assert g.to_phases() == [["a"], ["b"]]
    assert g.predecessors("b") == ["a"]
    assert g.successors("a") == ["b"]

def test_to_phases_can_be_called_twice():
    g = DependencyGraph.from_edges(["x", "y"], [("x", "y")])
    assert g.to_phases() == g.to_phases()

def test_cycle_raises_and_names_nodes():
    g = DependencyGraph.from_edges(["a", "b", "c", "d"], [("a", "b"), ("b", "c"), ("c", "b"), ("c", "d")])
    with pytest.raises(CycleError) as exc:
        g.to_phases()
    assert "b" in exc.value.nodes and "c" in exc.value.nodes
    assert "a" not in exc.value.nodes
    assert "b" in str(exc.value)

def test_self_edge_is_a_cycle():
    g = DependencyGraph()
    g.add_edge("solo", "solo")
    with pytest.raises(CycleError):
        g.to_phases()

def test_rebuild_from_same_edges_gives_same_partition():
    nodes = ["n1", "n2", "n3", "n4", "n5"]
    edges = [("n1", "n3"), ("n2", "n3"), ("n3", "n5"), ("n4", "n5")]
    first = DependencyGraph.from_edges(nodes, edges).to_phases()
    g = DependencyGraph.from_edges(nodes, edges)
    again = DependencyGraph.from_edges(g.nodes(), g.edges()).to_phases()
    assert first == again
