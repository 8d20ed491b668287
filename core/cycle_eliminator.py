"""
REASONFLOW CYCLE ELIMINATOR - Keeping the Flow Diagram a DAG

A proportional-flow diagram cannot draw a loop. Candidate links are
inserted one at a time into a working rustworkx graph; after each
tentative insertion a full white/gray/black depth-first search runs over
every node. If the insertion closed a cycle the edge is removed again and
the link is rejected.

Properties:
- Greedy and order-dependent: earlier candidates win. This is NOT the
  maximum acyclic subset.
- The accepted set is acyclic at every step, not just at the end.
- Rejections are a designed outcome (logged at WARNING), never an error.

Architecture (same bridge pattern as a string-keyed graph store):
  _node_map: Dict[str, int]   (node id -> rustworkx index)
  _graph:    rx.PyDiGraph     (indices only, no payloads needed)
"""
import logging
import msgspec
import rustworkx as rx
from typing import Dict, List, Iterable, Any, Sequence, Set, Tuple

logger = logging.getLogger("reasonflow.cycles")


class EliminationResult(msgspec.Struct, kw_only=True):
    """Outcome of running candidates through the eliminator."""
    accepted: List[Any] = msgspec.field(default_factory=list)
    rejected: List[Any] = msgspec.field(default_factory=list)   # would have closed a cycle
    skipped: List[Any] = msgspec.field(default_factory=list)    # unknown endpoint or self-loop


class CycleEliminator:
    """
    Incremental, DFS-gated edge acceptor over a fixed node set.

    Usage:
        eliminator = CycleEliminator(["A", "B", "C"])
        eliminator.offer("A", "B")   # True
        eliminator.offer("B", "C")   # True
        eliminator.offer("C", "A")   # False - would close A -> B -> C -> A
    """

    def __init__(self, node_ids: Iterable[str]):
        self._graph: rx.PyDiGraph = rx.PyDiGraph(multigraph=False)
        self._node_map: Dict[str, int] = {}
        for node_id in node_ids:
            if node_id not in self._node_map:
                self._node_map[node_id] = self._graph.add_node(node_id)

    @property
    def edge_count(self) -> int:
        return self._graph.num_edges()

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._node_map

    def can_insert(self, source_id: str, target_id: str) -> bool:
        """True if both endpoints are known and the edge is not a self-loop."""
        return (
            source_id in self._node_map
            and target_id in self._node_map
            and source_id != target_id
        )

    def offer(self, source_id: str, target_id: str) -> bool:
        """
        Tentatively insert source -> target.

        Returns:
            True if the edge is now part of the accepted set, False if it
            was rejected (cycle) or cannot be inserted (see can_insert).
        """
        if not self.can_insert(source_id, target_id):
            return False

        src_idx = self._node_map[source_id]
        tgt_idx = self._node_map[target_id]

        if self._graph.has_edge(src_idx, tgt_idx):
            return True  # already accepted

        edge_idx = self._graph.add_edge(src_idx, tgt_idx, None)
        if self.has_cycle():
            self._graph.remove_edge_from_index(edge_idx)
            return False
        return True

    def has_cycle(self) -> bool:
        """Full white/gray/black DFS over every node of the working graph."""
        WHITE, GRAY, BLACK = 0, 1, 2
        graph = self._graph
        color = {idx: WHITE for idx in graph.node_indices()}

        for root in graph.node_indices():
            if color[root] != WHITE:
                continue
            # Explicit stack of (node, successor iterator); depth is unbounded
            color[root] = GRAY
            stack = [(root, iter(graph.successor_indices(root)))]
            while stack:
                node, successors = stack[-1]
                for succ in successors:
                    if color[succ] == GRAY:
                        return True
                    if color[succ] == WHITE:
                        color[succ] = GRAY
                        stack.append((succ, iter(graph.successor_indices(succ))))
                        break
                else:
                    color[node] = BLACK
                    stack.pop()
        return False

    def accepted_edges(self) -> Set[Tuple[str, str]]:
        """Currently accepted (source_id, target_id) pairs."""
        return {
            (self._graph[src], self._graph[tgt])
            for src, tgt in self._graph.edge_list()
        }


def eliminate_cycles(links: Sequence[Any], node_ids: Iterable[str]) -> EliminationResult:
    """
    Filter candidate links down to an acyclic subset, in the given order.

    Args:
        links: Candidate links exposing `.source` and `.target` ids
        node_ids: The node set links must connect

    Returns:
        EliminationResult with accepted, rejected and skipped links
    """
    eliminator = CycleEliminator(node_ids)
    result = EliminationResult()

    for link in links:
        source_id, target_id = link.source, link.target
        if not eliminator.can_insert(source_id, target_id):
            result.skipped.append(link)
            continue
        if eliminator.offer(source_id, target_id):
            result.accepted.append(link)
        else:
            logger.warning(f"Skipping link {source_id} -> {target_id} to prevent cycle")
            result.rejected.append(link)

    if result.rejected:
        logger.info(
            f"Cycle elimination kept {len(result.accepted)} link(s), "
            f"rejected {len(result.rejected)}"
        )
    return result
