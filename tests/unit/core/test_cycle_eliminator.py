"""
Unit tests for core/cycle_eliminator.py - Greedy DFS-gated insertion

Uses rustworkx.is_directed_acyclic_graph as an independent oracle.
"""
import random

import msgspec
import pytest
import rustworkx as rx

from core.cycle_eliminator import CycleEliminator, eliminate_cycles


class Link(msgspec.Struct, frozen=True):
    source: str
    target: str


def _is_acyclic(node_ids, links) -> bool:
    graph = rx.PyDiGraph()
    index = {node_id: graph.add_node(node_id) for node_id in node_ids}
    for link in links:
        graph.add_edge(index[link.source], index[link.target], None)
    return rx.is_directed_acyclic_graph(graph)


# =============================================================================
# CYCLE ELIMINATOR
# =============================================================================

class TestCycleEliminator:
    """Incremental acceptance over a fixed node set."""

    def test_triangle_last_edge_rejected(self):
        """A -> B, B -> C accepted; C -> A would close the cycle."""
        eliminator = CycleEliminator(["A", "B", "C"])

        assert eliminator.offer("A", "B")
        assert eliminator.offer("B", "C")
        assert not eliminator.offer("C", "A")
        assert eliminator.accepted_edges() == {("A", "B"), ("B", "C")}

    def test_two_cycle_rejected(self):
        eliminator = CycleEliminator(["A", "B"])

        assert eliminator.offer("A", "B")
        assert not eliminator.offer("B", "A")
        assert eliminator.edge_count == 1

    def test_reoffering_accepted_edge(self):
        eliminator = CycleEliminator(["A", "B"])
        eliminator.offer("A", "B")

        assert eliminator.offer("A", "B")
        assert eliminator.edge_count == 1

    def test_unknown_endpoint_and_self_loop_not_insertable(self):
        eliminator = CycleEliminator(["A"])

        assert not eliminator.can_insert("A", "Z")
        assert not eliminator.can_insert("A", "A")
        assert not eliminator.offer("A", "A")
        assert "A" in eliminator
        assert "Z" not in eliminator

    def test_rejection_does_not_disturb_graph(self):
        eliminator = CycleEliminator(["A", "B", "C", "D"])
        eliminator.offer("A", "B")
        eliminator.offer("B", "C")
        eliminator.offer("C", "A")

        assert not eliminator.has_cycle()
        assert eliminator.offer("C", "D")
        assert eliminator.accepted_edges() == {("A", "B"), ("B", "C"), ("C", "D")}


# =============================================================================
# ELIMINATE_CYCLES
# =============================================================================

def test_eliminate_cycles_scenario_b(caplog):
    """A -> B -> C -> A: the last processed link is rejected and logged."""
    links = [Link("A", "B"), Link("B", "C"), Link("C", "A")]

    with caplog.at_level("WARNING", logger="reasonflow.cycles"):
        result = eliminate_cycles(links, ["A", "B", "C"])

    assert result.accepted == [Link("A", "B"), Link("B", "C")]
    assert result.rejected == [Link("C", "A")]
    assert "Skipping link C -> A to prevent cycle" in caplog.text


def test_eliminate_cycles_order_dependent():
    """Greedy: earlier candidates win, whatever their weight."""
    links = [Link("C", "A"), Link("A", "B"), Link("B", "C")]
    result = eliminate_cycles(links, ["A", "B", "C"])

    assert result.rejected == [Link("B", "C")]


def test_eliminate_cycles_skips_unknown_nodes():
    result = eliminate_cycles([Link("A", "X"), Link("A", "A")], ["A"])

    assert result.accepted == []
    assert result.rejected == []
    assert len(result.skipped) == 2


def test_eliminate_cycles_empty():
    result = eliminate_cycles([], [])
    assert result.accepted == [] and result.rejected == []


@pytest.mark.parametrize("seed", range(30))
def test_accepted_set_acyclic_and_maximal_random(seed):
    """Accepted set is a DAG, and every rejected link would close a cycle."""
    rng = random.Random(seed)
    node_ids = [f"N{i}" for i in range(rng.randint(2, 9))]
    links = [Link(rng.choice(node_ids), rng.choice(node_ids)) for _ in range(rng.randint(0, 30))]

    result = eliminate_cycles(links, node_ids)

    assert _is_acyclic(node_ids, result.accepted)
    for rejected in result.rejected:
        assert not _is_acyclic(node_ids, list(result.accepted) + [rejected])
    assert len(result.accepted) + len(result.rejected) + len(result.skipped) == len(links)


def test_long_chain_beyond_recursion_limit():
    """A chain deeper than Python's default recursion limit is still checked."""
    node_ids = [f"D{i}" for i in range(1500)]
    links = [Link(a, b) for a, b in zip(node_ids, node_ids[1:])]
    links.append(Link(node_ids[-1], node_ids[0]))

    result = eliminate_cycles(links, node_ids)

    assert len(result.accepted) == 1499
    assert result.rejected == [Link(node_ids[-1], node_ids[0])]
