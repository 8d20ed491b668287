"""
REASONFLOW FLOW GRAPH - The Diagram's Data Model

This module turns a SessionGraph into the layered, acyclic flow diagram the
renderer draws as proportional boxes and ribbons:

  column 0: symptoms   (ascending severity, 1 = most severe first)
  column 1: diagnoses  (descending magnitude)
  column 2: treatments (descending magnitude)

Actions (questions/alerts) are never drawn as nodes; they contribute
synthesized "investigative pathway" links between diagnoses instead.

Architecture:
- FlowNode/FlowLink: Lightweight rendering-focused representations
- FlowGraph: Nodes + accepted links + rejected links for one snapshot
- assemble_flow_graph: order -> size -> derive links -> eliminate cycles
- apply_thresholds: per-column visibility filter on top of a FlowGraph
- Polars/Arrow export for the renderer

The renderer ends at logical columns, ranks and magnitudes. No pixels here.
"""
import io
import logging
import msgspec
from typing import Optional, Dict, List, Any, Tuple, Set

import polars as pl

from core.ontology import (
    NodeKind,
    Direction,
    RelationshipType,
    COLUMN_BY_KIND,
    is_visual_kind,
)
from core.schemas import SessionGraph, SessionNode
from core.relationship_index import RelationshipIndex, build_index
from core.link_rules import canonical_link_id, orient_link
from core.cycle_eliminator import eliminate_cycles
from core.pathways import derive_pathways
from infrastructure.config import FlowConfig, ThresholdConfig, get_config

logger = logging.getLogger("reasonflow.flow")


# =============================================================================
# COLOR PALETTES (hints only; the renderer owns final styling)
# =============================================================================

# Hue per node kind; symptoms vary by where the symptom came from
NODE_HUES: Dict[str, int] = {
    NodeKind.DIAGNOSIS.value: 220,     # Blue
    NodeKind.TREATMENT.value: 160,     # Teal
    "default": 0,
}

SYMPTOM_SOURCE_HUES: Dict[str, int] = {
    "transcript": 120,                 # Green
    "suspected": 30,                   # Orange
    "medical_history": 200,            # Blue
    "family_history": 280,             # Purple
    "social_history": 50,              # Yellow
    "medication_history": 330,         # Pink
}

LINK_COLORS: Dict[str, str] = {
    RelationshipType.SUPPORTS.value: "#4ade80",
    RelationshipType.CONFIRMS.value: "#4ade80",
    RelationshipType.CONTRADICTS.value: "#f87171",
    RelationshipType.RULES_OUT.value: "#f87171",
    RelationshipType.TREATS.value: "#60a5fa",
    RelationshipType.MANAGES.value: "#60a5fa",
    RelationshipType.INVESTIGATES.value: "#a78bfa",
    RelationshipType.CLARIFIES.value: "#a78bfa",
    RelationshipType.SUGGESTS.value: "#fb923c",
    RelationshipType.INDICATES.value: "#fb923c",
    "default": "#6b7280",
}


def node_color(kind: str, priority: float, source: Optional[str] = None) -> str:
    """hsla color whose opacity grows with clinical priority (1 = critical)."""
    intensity = max(0.3, 1 - (priority - 1) / 9 * 0.7)
    if kind == NodeKind.SYMPTOM.value:
        hue = SYMPTOM_SOURCE_HUES.get(source or "transcript", SYMPTOM_SOURCE_HUES["transcript"])
        return f"hsla({hue}, 60%, 60%, {intensity:.3f})"
    if kind in NODE_HUES:
        return f"hsla({NODE_HUES[kind]}, 70%, 60%, {intensity:.3f})"
    return f"hsla(0, 0%, 60%, {intensity:.3f})"


def link_color(relationship: str) -> str:
    return LINK_COLORS.get(relationship, LINK_COLORS["default"])


# =============================================================================
# FLOW DATA STRUCTURES
# =============================================================================

class FlowNode(msgspec.Struct, kw_only=True):
    """
    One box of the flow diagram.

    `rank` is the deterministic position within the column; `magnitude` is
    the box's relative height; `data` is the source domain node.
    """
    id: str
    kind: str                           # NodeKind value
    column: int
    rank: int
    magnitude: float
    label: str
    priority: float
    confidence: float
    color: str
    source: Optional[str] = None        # Symptom provenance
    suppressed: bool = False
    data: Any = None


class FlowLink(msgspec.Struct, kw_only=True):
    """One ribbon of the flow diagram. Identity is "source-target"."""
    source: str
    target: str
    magnitude: float
    type: str                           # Relationship label
    strength: float
    direction: str
    color: str = LINK_COLORS["default"]
    reasoning: Optional[str] = None
    synthesized: bool = False           # True for investigative pathways

    @property
    def id(self) -> str:
        return canonical_link_id(self.source, self.target)


class FlowMetadata(msgspec.Struct, kw_only=True):
    session_id: str = ""
    analysis_version: int = 0
    timestamp: str = ""


class HiddenCounts(msgspec.Struct, kw_only=True):
    """How many nodes per column a threshold filter hid."""
    symptoms: int = 0
    diagnoses: int = 0
    treatments: int = 0


class FlowGraph(msgspec.Struct, kw_only=True):
    """
    The complete flow diagram for one session snapshot.

    Invariants:
    - at most one link per "source-target" identity
    - the link set is acyclic over the node set
    """
    nodes: List[FlowNode] = msgspec.field(default_factory=list)
    links: List[FlowLink] = msgspec.field(default_factory=list)
    rejected_links: List[FlowLink] = msgspec.field(default_factory=list)
    metadata: FlowMetadata = msgspec.field(default_factory=FlowMetadata)

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def link_ids(self) -> List[str]:
        return [link.id for link in self.links]

    def get_link(self, link_id: str) -> Optional[FlowLink]:
        for link in self.links:
            if link.id == link_id:
                return link
        return None

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def nodes_in_column(self, column: int) -> List[FlowNode]:
        return [n for n in self.nodes if n.column == column]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to builtins for JSON serialization."""
        return msgspec.to_builtins(self)

    def to_polars_nodes(self) -> pl.DataFrame:
        """Nodes as a polars DataFrame (domain payload omitted)."""
        return pl.DataFrame({
            "id": [n.id for n in self.nodes],
            "kind": [n.kind for n in self.nodes],
            "column": [n.column for n in self.nodes],
            "rank": [n.rank for n in self.nodes],
            "magnitude": [float(n.magnitude) for n in self.nodes],
            "label": [n.label for n in self.nodes],
            "color": [n.color for n in self.nodes],
        }, schema={
            "id": pl.Utf8, "kind": pl.Utf8, "column": pl.Int64, "rank": pl.Int64,
            "magnitude": pl.Float64, "label": pl.Utf8, "color": pl.Utf8,
        })

    def to_polars_links(self) -> pl.DataFrame:
        return pl.DataFrame({
            "id": [l.id for l in self.links],
            "source": [l.source for l in self.links],
            "target": [l.target for l in self.links],
            "type": [l.type for l in self.links],
            "magnitude": [float(l.magnitude) for l in self.links],
            "strength": [float(l.strength) for l in self.links],
            "color": [l.color for l in self.links],
        }, schema={
            "id": pl.Utf8, "source": pl.Utf8, "target": pl.Utf8, "type": pl.Utf8,
            "magnitude": pl.Float64, "strength": pl.Float64, "color": pl.Utf8,
        })


# =============================================================================
# MAGNITUDE AND ORDERING
# =============================================================================

def node_magnitude(priority: float, confidence: float, config: Optional[FlowConfig] = None) -> float:
    """
    Relative height of a node.

    severity_weight = 11 - clamp(priority, 1, 10)
    value = MIN + weight*PRIORITY_MULT + confidence*PROBABILITY_MULT*weight

    Confidence is amplified by severity weight, so a low-confidence critical
    item still outranks a high-confidence trivial one.
    """
    config = config or get_config().flow
    severity_weight = 11 - max(1.0, min(10.0, priority))
    confidence = max(0.0, min(1.0, confidence))
    value = (
        config.min_height
        + severity_weight * config.priority_multiplier
        + confidence * config.probability_multiplier * severity_weight
    )
    return min(value, config.max_height)


def link_magnitude(strength: float, config: Optional[FlowConfig] = None) -> float:
    config = config or get_config().flow
    return max(config.min_link_magnitude, strength * config.link_strength_scale)


def _flow_node(kind: NodeKind, node: SessionNode, rank: int, magnitude: float) -> FlowNode:
    priority = node.priority_value
    source = getattr(node, "source", None)
    return FlowNode(
        id=node.id,
        kind=kind.value,
        column=COLUMN_BY_KIND[kind.value],
        rank=rank,
        magnitude=magnitude,
        label=node.label,
        priority=priority,
        confidence=node.confidence_value,
        color=node_color(kind.value, priority, source),
        source=source,
        suppressed=getattr(node, "suppressed", False),
        data=node,
    )


def order_nodes(session: SessionGraph, config: Optional[FlowConfig] = None) -> List[FlowNode]:
    """
    Build the visual nodes in column order with deterministic ranks.

    Sorting is stable, so ties keep payload order. A repeated id keeps its
    first occurrence, matching the relationship index.
    """
    config = config or get_config().flow
    seen: Set[str] = set()
    unique: Dict[NodeKind, List[SessionNode]] = {}
    for kind, nodes in session.node_groups.iter_groups():
        if not is_visual_kind(kind.value):
            continue
        unique[kind] = []
        for node in nodes:
            if node.id in seen:
                continue
            seen.add(node.id)
            unique[kind].append(node)

    ordered: List[FlowNode] = []

    symptoms = sorted(unique[NodeKind.SYMPTOM], key=lambda s: s.priority_value)
    for rank, symptom in enumerate(symptoms):
        magnitude = node_magnitude(symptom.priority_value, symptom.confidence_value, config)
        ordered.append(_flow_node(NodeKind.SYMPTOM, symptom, rank, magnitude))

    for kind in (NodeKind.DIAGNOSIS, NodeKind.TREATMENT):
        nodes = unique[kind]
        sized = [
            (node, node_magnitude(node.priority_value, node.confidence_value, config))
            for node in nodes
        ]
        sized.sort(key=lambda pair: pair[1], reverse=True)
        for rank, (node, magnitude) in enumerate(sized):
            ordered.append(_flow_node(kind, node, rank, magnitude))

    return ordered


# =============================================================================
# LINK DERIVATION
# =============================================================================

def derive_relationship_links(
    nodes: List[FlowNode],
    index: RelationshipIndex,
    config: Optional[FlowConfig] = None,
) -> List[FlowLink]:
    """
    Candidate links from declared relationships, in construction order.

    Walks the ordered flow nodes and each node's forward edges; the link
    table (core.link_rules) decides which edges draw a link and in which
    orientation.
    """
    config = config or get_config().flow
    candidates: List[FlowLink] = []

    for node in nodes:
        for edge in index.outgoing(node.id):
            oriented = orient_link(
                node.id, node.kind, edge.target_id, edge.target_type,
                edge.relationship, edge.direction,
            )
            if oriented is None:
                continue
            source_id, target_id = oriented
            candidates.append(FlowLink(
                source=source_id,
                target=target_id,
                magnitude=link_magnitude(edge.strength, config),
                type=edge.relationship,
                strength=edge.strength,
                direction=edge.direction,
                color=link_color(edge.relationship),
                reasoning=edge.reasoning,
            ))

    return candidates


def derive_pathway_links(
    session: SessionGraph,
    index: RelationshipIndex,
    config: Optional[FlowConfig] = None,
) -> List[FlowLink]:
    """
    Synthesized investigative-pathway links (diagnosis -> diagnosis).

    One link per candidate from core.pathways, sized by the absolute
    impact of the action on the target diagnosis.
    """
    config = config or get_config().flow
    return [
        FlowLink(
            source=pathway.source,
            target=pathway.target,
            magnitude=abs(pathway.impact) * config.investigative_impact_scale,
            type=RelationshipType.INVESTIGATES.value,
            strength=min(1.0, abs(pathway.impact)),
            direction=Direction.OUTGOING.value,
            color=link_color(RelationshipType.INVESTIGATES.value),
            reasoning=pathway.reasoning,
            synthesized=True,
        )
        for pathway in derive_pathways(session, index)
    ]


def deduplicate_links(links: List[FlowLink]) -> List[FlowLink]:
    """Keep the first link per identity; later duplicates are discarded, not merged."""
    seen: Set[str] = set()
    unique: List[FlowLink] = []
    for link in links:
        if link.id in seen:
            continue
        seen.add(link.id)
        unique.append(link)
    return unique


# =============================================================================
# ASSEMBLY
# =============================================================================

def assemble_flow_graph(
    session: SessionGraph,
    index: Optional[RelationshipIndex] = None,
    config: Optional[FlowConfig] = None,
) -> FlowGraph:
    """
    Build the FlowGraph for a session.

    This is the main entry point for visualization.

    Args:
        session: The decoded session snapshot
        index: Optional prebuilt index (rebuilt if stale)
        config: Optional magnitude config (global config by default)

    Returns:
        FlowGraph with ordered nodes and an acyclic, de-duplicated link set
    """
    config = config or get_config().flow
    if index is None or not index.is_current_for(session):
        index = build_index(session)

    nodes = order_nodes(session, config)
    if not nodes:
        logger.debug("Session has no visual nodes; returning empty flow graph")

    candidates = deduplicate_links(
        derive_relationship_links(nodes, index, config)
        + derive_pathway_links(session, index, config)
    )
    result = eliminate_cycles(candidates, [n.id for n in nodes])

    flow = FlowGraph(
        nodes=nodes,
        links=list(result.accepted),
        rejected_links=list(result.rejected),
        metadata=FlowMetadata(
            session_id=session.session_id,
            analysis_version=session.analysis_version,
            timestamp=session.timestamp,
        ),
    )
    logger.debug(
        f"Assembled flow graph: {len(flow.nodes)} node(s), {len(flow.links)} link(s), "
        f"{len(flow.rejected_links)} rejected, {len(result.skipped)} skipped"
    )
    return flow


# =============================================================================
# THRESHOLDS
# =============================================================================

def _is_hidden(node: FlowNode, thresholds: ThresholdConfig) -> bool:
    if node.kind == NodeKind.SYMPTOM.value:
        rule = thresholds.symptoms
        return not rule.show_all and node.priority > rule.severity_threshold
    if node.kind == NodeKind.DIAGNOSIS.value:
        rule = thresholds.diagnoses
        return not rule.show_all and node.confidence < rule.probability_threshold
    if node.kind == NodeKind.TREATMENT.value:
        rule = thresholds.treatments
        return not rule.show_all and node.priority > rule.priority_threshold
    return False


def apply_thresholds(
    flow: FlowGraph,
    thresholds: Optional[ThresholdConfig] = None,
) -> Tuple[FlowGraph, HiddenCounts]:
    """
    Hide low-relevance nodes and every link touching them.

    Symptoms above the severity threshold, diagnoses below the probability
    threshold and treatments above the priority threshold are hidden unless
    their column has show_all set. Ranks are not renumbered.

    Returns:
        (filtered FlowGraph, HiddenCounts)
    """
    thresholds = thresholds or get_config().thresholds
    visible: List[FlowNode] = []
    hidden: Dict[str, int] = {kind.value: 0 for kind in (NodeKind.SYMPTOM, NodeKind.DIAGNOSIS, NodeKind.TREATMENT)}

    for node in flow.nodes:
        if _is_hidden(node, thresholds):
            hidden[node.kind] += 1
        else:
            visible.append(node)

    visible_ids = {n.id for n in visible}
    links = [l for l in flow.links if l.source in visible_ids and l.target in visible_ids]

    filtered = FlowGraph(
        nodes=visible,
        links=links,
        rejected_links=list(flow.rejected_links),
        metadata=flow.metadata,
    )
    counts = HiddenCounts(
        symptoms=hidden[NodeKind.SYMPTOM.value],
        diagnoses=hidden[NodeKind.DIAGNOSIS.value],
        treatments=hidden[NodeKind.TREATMENT.value],
    )
    return filtered, counts


# =============================================================================
# ARROW IPC SERIALIZATION
# =============================================================================

def serialize_to_arrow(flow: FlowGraph) -> Tuple[bytes, bytes]:
    """
    Serialize a FlowGraph to Apache Arrow IPC format.

    Returns:
        Tuple of (nodes_arrow_bytes, links_arrow_bytes)
    """
    nodes_buffer = io.BytesIO()
    links_buffer = io.BytesIO()

    flow.to_polars_nodes().write_ipc(nodes_buffer)
    flow.to_polars_links().write_ipc(links_buffer)

    return nodes_buffer.getvalue(), links_buffer.getvalue()
