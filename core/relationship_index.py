"""
REASONFLOW RELATIONSHIP INDEX - The Bridge Between Declarations and Edges

Relationships are declared ON nodes ("this symptom supports D3, outgoing").
Every derivation wants them as EDGES ("S1 -> D3, supports"). This module
scans every node's relationship list once and builds:

- node_types: id -> NodeKind value
- forward:    id -> ordered set of ForwardEdge (who this node points at)
- reverse:    id -> ordered set of ReverseEdge (who points at this node)

Two-pass build:
  Pass 1 registers every id -> type.
  Pass 2 walks the relationships. A node may reference another that appears
  later in the payload, so far-endpoint types are only resolved once the
  type map is complete.

Orientation (relative to the declaring node D and its target T):
  outgoing       -> D -> T
  incoming       -> T -> D
  bidirectional  -> both

Invariant (transpose-complete):
  (a -> b, rel) in forward  <=>  (b <- a, rel) in reverse

The index is the sole source consulted by link derivation and path
derivation. It is never patched: any change to the session rebuilds it.
"""
import logging
import msgspec
from typing import Dict, List, Tuple, Set, Iterator, Optional, Any, Iterable

from core.ontology import Direction
from core.schemas import SessionGraph, relationships_of

logger = logging.getLogger("reasonflow.index")


# =============================================================================
# INDEX ENTRIES
# =============================================================================

class ForwardEdge(msgspec.Struct, frozen=True):
    """An edge leaving the indexed node."""
    target_id: str
    relationship: str
    target_type: str
    direction: str           # Direction as declared (not as oriented)
    strength: float
    reasoning: Optional[str] = None


class ReverseEdge(msgspec.Struct, frozen=True):
    """An edge arriving at the indexed node."""
    source_id: str
    relationship: str
    source_type: str
    direction: str
    strength: float
    reasoning: Optional[str] = None


# =============================================================================
# RELATIONSHIP INDEX
# =============================================================================

class RelationshipIndex:
    """
    Read-only adjacency view over one SessionGraph snapshot.

    Entries are set-semantics (a repeated declaration is stored once) but
    kept in first-seen order so every consumer iterates deterministically.
    """

    def __init__(
        self,
        node_types: Dict[str, str],
        forward: Dict[str, Tuple[ForwardEdge, ...]],
        reverse: Dict[str, Tuple[ReverseEdge, ...]],
        source: Optional[SessionGraph] = None,
    ):
        self.node_types = node_types
        self.forward = forward
        self.reverse = reverse
        self._source = source

    def is_current_for(self, session: SessionGraph) -> bool:
        """True if this index was built from exactly this session object."""
        return self._source is session

    @property
    def source(self) -> Optional[SessionGraph]:
        """The session this index was built from (None for hand-built indexes)."""
        return self._source

    def type_of(self, node_id: str) -> Optional[str]:
        return self.node_types.get(node_id)

    def outgoing(
        self,
        node_id: str,
        labels: Optional[Iterable[str]] = None,
        target_type: Optional[str] = None,
    ) -> Iterator[ForwardEdge]:
        """Forward edges of a node, optionally filtered by label and far-end type."""
        for edge in self.forward.get(node_id, ()):
            if labels is not None and edge.relationship not in labels:
                continue
            if target_type is not None and edge.target_type != target_type:
                continue
            yield edge

    def incoming(
        self,
        node_id: str,
        labels: Optional[Iterable[str]] = None,
        source_type: Optional[str] = None,
    ) -> Iterator[ReverseEdge]:
        """Reverse edges of a node, optionally filtered by label and far-end type."""
        for edge in self.reverse.get(node_id, ()):
            if labels is not None and edge.relationship not in labels:
                continue
            if source_type is not None and edge.source_type != source_type:
                continue
            yield edge

    def edge_count(self) -> int:
        return sum(len(edges) for edges in self.forward.values())

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, RelationshipIndex):
            return NotImplemented
        return (
            self.node_types == other.node_types
            and self.forward == other.forward
            and self.reverse == other.reverse
        )

    def __repr__(self) -> str:
        return f"RelationshipIndex(nodes={len(self.node_types)}, edges={self.edge_count()})"


# =============================================================================
# BUILDER
# =============================================================================

class _IndexBuilder:
    """Accumulates ordered, de-duplicated edges before freezing them."""

    def __init__(self):
        self.node_types: Dict[str, str] = {}
        self._forward: Dict[str, List[ForwardEdge]] = {}
        self._reverse: Dict[str, List[ReverseEdge]] = {}
        self._seen: Set[Tuple[str, str, str, str]] = set()

    def add_edge(
        self,
        source_id: str,
        target_id: str,
        relationship: str,
        direction: str,
        strength: float,
        reasoning: Optional[str] = None,
    ) -> None:
        key = (source_id, target_id, relationship, direction)
        if key in self._seen:
            return
        self._seen.add(key)

        source_type = self.node_types[source_id]
        target_type = self.node_types[target_id]
        self._forward.setdefault(source_id, []).append(
            ForwardEdge(target_id, relationship, target_type, direction, strength, reasoning)
        )
        self._reverse.setdefault(target_id, []).append(
            ReverseEdge(source_id, relationship, source_type, direction, strength, reasoning)
        )

    def freeze(self, source: SessionGraph) -> RelationshipIndex:
        return RelationshipIndex(
            node_types=dict(self.node_types),
            forward={k: tuple(v) for k, v in self._forward.items()},
            reverse={k: tuple(v) for k, v in self._reverse.items()},
            source=source,
        )


def build_index(session: SessionGraph) -> RelationshipIndex:
    """
    Build the RelationshipIndex for a session.

    Total and deterministic: nodes without relationships contribute only
    their type, and relationships pointing at unknown ids are skipped.

    Args:
        session: The decoded session snapshot

    Returns:
        A fresh RelationshipIndex bound to this session object
    """
    builder = _IndexBuilder()
    groups = session.node_groups

    # PASS 1: register every id -> type
    for kind, node in groups.iter_nodes():
        if node.id in builder.node_types:
            logger.warning(
                f"Duplicate node id {node.id!r} ({kind.value}); keeping first "
                f"registration as {builder.node_types[node.id]}"
            )
            continue
        builder.node_types[node.id] = kind.value

    # PASS 2: orient relationships now that every far endpoint is typed
    skipped = 0
    for kind, node in groups.iter_nodes():
        if builder.node_types.get(node.id) != kind.value:
            continue  # shadowed duplicate
        for rel in relationships_of(node):
            if rel.node_id not in builder.node_types:
                skipped += 1
                logger.debug(f"Skipping relationship {node.id} -> {rel.node_id}: target not found")
                continue

            direction = rel.direction.value
            if rel.direction in (Direction.OUTGOING, Direction.BIDIRECTIONAL):
                builder.add_edge(node.id, rel.node_id, rel.relationship, direction, rel.strength, rel.reasoning)
            if rel.direction in (Direction.INCOMING, Direction.BIDIRECTIONAL):
                builder.add_edge(rel.node_id, node.id, rel.relationship, direction, rel.strength, rel.reasoning)

    index = builder.freeze(session)
    logger.debug(f"Built {index!r} ({skipped} dangling relationship(s) skipped)")
    return index
