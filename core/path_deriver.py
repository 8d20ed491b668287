"""
REASONFLOW PATH DERIVER - Explaining One Element of the Flow Diagram

When a clinician hovers or selects a node or a link, the renderer dims
everything except the reasoning that explains it. This module computes
that explanatory subgraph: a set of node ids and a set of link ids.

Node rules (one domain-defined hop each way):
  symptom   -> diagnoses it supports/suggests/indicates
               -> their required treatments (and treatments that treat them)
  diagnosis <- symptoms that support/suggest/indicate it
            -> treatments it requires (and treatments that treat it)
            <-> diagnoses joined to it by a drawn investigative pathway
  treatment -> diagnoses it treats/investigates, <- diagnoses that require it
               <- the symptoms supporting each of those diagnoses
  action    -> nothing (only itself)

Link rules are narrower: only the one-hop context of that edge.

Congruence: every link id emitted here is produced by
link_rules.canonical_link_id, and only after link_rules.has_drawn_link
confirms the flow diagram draws that exact link, or after core.pathways
accepts the diagnosis -> diagnosis pathway. Traversal may reach a node
through a relationship that draws no link; the node is highlighted, the
(nonexistent) link is not.
"""
import logging
import msgspec
from typing import Optional, Any, Set, FrozenSet, List
from enum import Enum

from core.ontology import (
    NodeKind,
    PATH_EVIDENCE_LABELS,
    PATH_REQUIRES_LABELS,
    PATH_TREATS_LABELS,
    PATH_TREATMENT_TARGET_LABELS,
)
from core.schemas import SessionGraph, ReasonFlowError
from core.relationship_index import RelationshipIndex, build_index
from core.link_rules import canonical_link_id, has_drawn_link
from core.pathways import InvestigativePathway, accepted_pathways

logger = logging.getLogger("reasonflow.paths")


class PathTriggerError(ReasonFlowError):
    """Raised when a trigger cannot be interpreted (e.g. a link without endpoints)."""
    pass


# =============================================================================
# TRIGGER AND RESULT TYPES
# =============================================================================

class TriggerKind(str, Enum):
    NODE = "node"
    LINK = "link"


class PathTrigger(msgspec.Struct, kw_only=True, frozen=True):
    """
    The element that initiated a path computation.

    For links, `id` is the canonical link id and `source`/`target` carry the
    endpoints (ids may themselves contain "-", so the id is never split).
    """
    kind: TriggerKind
    id: str
    item: Any = None
    source: Optional[str] = None
    target: Optional[str] = None

    @classmethod
    def for_node(cls, node_id: str, item: Any = None) -> "PathTrigger":
        return cls(kind=TriggerKind.NODE, id=node_id, item=item)

    @classmethod
    def for_link(cls, source_id: str, target_id: str, item: Any = None) -> "PathTrigger":
        return cls(
            kind=TriggerKind.LINK,
            id=canonical_link_id(source_id, target_id),
            item=item,
            source=source_id,
            target=target_id,
        )


class ExplanatoryPath(msgspec.Struct, kw_only=True, frozen=True):
    """Node ids and canonical link ids to highlight."""
    nodes: FrozenSet[str] = frozenset()
    links: FrozenSet[str] = frozenset()


class PathState(msgspec.Struct, kw_only=True, frozen=True):
    """One active path: what triggered it and what it highlights."""
    trigger: PathTrigger
    path: ExplanatoryPath

    def contains_node(self, node_id: str) -> bool:
        return node_id in self.path.nodes

    def contains_link(self, link_id: str) -> bool:
        return link_id in self.path.links


# =============================================================================
# PATH ACCUMULATOR
# =============================================================================

class _PathBuilder:
    """Collects nodes and congruent link ids during traversal."""

    def __init__(self, index: RelationshipIndex):
        self.index = index
        self.nodes: Set[str] = set()
        self.links: Set[str] = set()
        self._pathways: Optional[List[InvestigativePathway]] = None

    def add_node(self, node_id: str) -> None:
        self.nodes.add(node_id)

    def add_hop(self, source_id: str, target_id: str) -> None:
        """Add both endpoints; add the link only if the flow diagram draws it."""
        self.nodes.add(source_id)
        self.nodes.add(target_id)
        if has_drawn_link(self.index, source_id, target_id):
            self.links.add(canonical_link_id(source_id, target_id))

    def pathways(self) -> List[InvestigativePathway]:
        """Accepted investigative pathways of the indexed session (computed once)."""
        if self._pathways is None:
            session = self.index.source
            self._pathways = accepted_pathways(session, self.index) if session is not None else []
        return self._pathways

    def build(self) -> ExplanatoryPath:
        return ExplanatoryPath(nodes=frozenset(self.nodes), links=frozenset(self.links))


# =============================================================================
# TRAVERSAL STEPS (one hop each)
# =============================================================================

_SYMPTOM = NodeKind.SYMPTOM.value
_DIAGNOSIS = NodeKind.DIAGNOSIS.value
_TREATMENT = NodeKind.TREATMENT.value


def _supporting_symptoms(builder: _PathBuilder, diagnosis_id: str) -> None:
    for edge in builder.index.incoming(diagnosis_id, PATH_EVIDENCE_LABELS, _SYMPTOM):
        builder.add_hop(edge.source_id, diagnosis_id)


def _required_treatments(builder: _PathBuilder, diagnosis_id: str) -> None:
    for edge in builder.index.outgoing(diagnosis_id, PATH_REQUIRES_LABELS, _TREATMENT):
        builder.add_hop(diagnosis_id, edge.target_id)


def _treating_treatments(builder: _PathBuilder, diagnosis_id: str) -> None:
    for edge in builder.index.incoming(diagnosis_id, PATH_TREATS_LABELS, _TREATMENT):
        builder.add_hop(diagnosis_id, edge.source_id)


def _investigative_pathways(builder: _PathBuilder, diagnosis_id: str) -> None:
    for pathway in builder.pathways():
        if diagnosis_id in (pathway.source, pathway.target):
            builder.add_node(pathway.source)
            builder.add_node(pathway.target)
            builder.links.add(pathway.id)


def _symptom_path(builder: _PathBuilder, symptom_id: str) -> None:
    for edge in builder.index.outgoing(symptom_id, PATH_EVIDENCE_LABELS, _DIAGNOSIS):
        builder.add_hop(symptom_id, edge.target_id)
        _required_treatments(builder, edge.target_id)
        _treating_treatments(builder, edge.target_id)


def _diagnosis_path(builder: _PathBuilder, diagnosis_id: str) -> None:
    _supporting_symptoms(builder, diagnosis_id)
    _required_treatments(builder, diagnosis_id)
    _treating_treatments(builder, diagnosis_id)
    _investigative_pathways(builder, diagnosis_id)


def _treatment_path(builder: _PathBuilder, treatment_id: str) -> None:
    diagnoses = []
    for edge in builder.index.outgoing(treatment_id, PATH_TREATMENT_TARGET_LABELS, _DIAGNOSIS):
        diagnoses.append(edge.target_id)
    for edge in builder.index.incoming(treatment_id, PATH_REQUIRES_LABELS, _DIAGNOSIS):
        diagnoses.append(edge.source_id)

    for diagnosis_id in diagnoses:
        builder.add_hop(diagnosis_id, treatment_id)
        _supporting_symptoms(builder, diagnosis_id)


_NODE_RULES = {
    _SYMPTOM: _symptom_path,
    _DIAGNOSIS: _diagnosis_path,
    _TREATMENT: _treatment_path,
}


# =============================================================================
# PUBLIC API
# =============================================================================

def derive_node_path(node_id: str, index: RelationshipIndex) -> ExplanatoryPath:
    """Explanatory path for a node. Actions and unknown ids yield only themselves."""
    builder = _PathBuilder(index)
    builder.add_node(node_id)

    rule = _NODE_RULES.get(index.type_of(node_id))
    if rule is not None:
        rule(builder, node_id)
    return builder.build()


def derive_link_path(source_id: str, target_id: str, index: RelationshipIndex) -> ExplanatoryPath:
    """
    Explanatory path for a link: its endpoints, the link itself, and the
    one-hop context of that specific edge.
    """
    builder = _PathBuilder(index)
    builder.add_node(source_id)
    builder.add_node(target_id)
    builder.links.add(canonical_link_id(source_id, target_id))

    pair = (index.type_of(source_id), index.type_of(target_id))
    if pair == (_SYMPTOM, _DIAGNOSIS):
        _required_treatments(builder, target_id)
    elif pair == (_DIAGNOSIS, _TREATMENT):
        _supporting_symptoms(builder, source_id)
    return builder.build()


def derive_path(
    trigger: PathTrigger,
    session: SessionGraph,
    index: Optional[RelationshipIndex] = None,
) -> PathState:
    """
    Compute the PathState for a trigger.

    Args:
        trigger: Node or link trigger
        session: The session snapshot the trigger refers to
        index: Optional prebuilt index; rebuilt if missing or built from a
            different session object

    Returns:
        A new PathState (never mutates previous output)

    Raises:
        PathTriggerError: If a link trigger carries no endpoints
    """
    if index is None or not index.is_current_for(session):
        index = build_index(session)

    if trigger.kind == TriggerKind.LINK:
        if not trigger.source or not trigger.target:
            raise PathTriggerError(f"Link trigger {trigger.id!r} has no source/target")
        path = derive_link_path(trigger.source, trigger.target, index)
    else:
        path = derive_node_path(trigger.id, index)

    if trigger.item is None and trigger.kind == TriggerKind.NODE:
        trigger = msgspec.structs.replace(trigger, item=session.find_node(trigger.id))

    logger.debug(
        f"Derived path for {trigger.kind.value} {trigger.id}: "
        f"{len(path.nodes)} node(s), {len(path.links)} link(s)"
    )
    return PathState(trigger=trigger, path=path)
