"""
REASONFLOW INVESTIGATIVE PATHWAYS - Diagnosis to Diagnosis Through an Action

Actions (questions and alerts) are never drawn. What an action contributes
is a causal bridge: it investigates a treatment that some diagnosis relies
on, and its answer moves the probability of another diagnosis.

    D1 --requires--> T1 <--investigates-- Q1 --impact 0.4--> D2
    =>  pathway D1 -> D2  (type "investigates", weight |impact|)

Rules:
- The action's own relationships are read as written (any direction); only
  "investigates" pointing at a treatment counts.
- The origin is the first diagnosis (payload order) that itself declares
  "requires" or "treats" toward that treatment, in any direction.
- If several investigated treatments yield an origin, the last one wins.
- Zero impacts and impacts on non-diagnoses produce nothing.

Relationship links only ever run symptom -> diagnosis -> treatment, so a
cycle can only be closed by pathway links among diagnoses. That makes the
accepted pathway set computable from the pathway candidates alone, which is
how the path deriver stays congruent with the flow diagram without building
it.
"""
import logging
import msgspec
from typing import List, Optional, Set

from core.ontology import NodeKind, PATHWAY_ACTION_LABELS, PATHWAY_DIAGNOSIS_LABELS
from core.schemas import SessionGraph, ActionNode
from core.relationship_index import RelationshipIndex
from core.link_rules import canonical_link_id
from core.cycle_eliminator import CycleEliminator

logger = logging.getLogger("reasonflow.pathways")

_DIAGNOSIS = NodeKind.DIAGNOSIS.value
_TREATMENT = NodeKind.TREATMENT.value


class InvestigativePathway(msgspec.Struct, kw_only=True, frozen=True):
    """A synthesized diagnosis -> diagnosis link contributed by one action."""
    source: str
    target: str
    impact: float
    action_id: str
    reasoning: Optional[str] = None

    @property
    def id(self) -> str:
        return canonical_link_id(self.source, self.target)


def _diagnosis_relying_on(treatment_id: str, session: SessionGraph, index: RelationshipIndex) -> Optional[str]:
    seen: Set[str] = set()
    for diagnosis in session.node_groups.diagnoses or []:
        if diagnosis.id in seen or index.type_of(diagnosis.id) != _DIAGNOSIS:
            continue
        seen.add(diagnosis.id)
        for relationship in diagnosis.relationships or []:
            if relationship.node_id == treatment_id and relationship.relationship in PATHWAY_DIAGNOSIS_LABELS:
                return diagnosis.id
    return None


def pathway_origin(action: ActionNode, session: SessionGraph, index: RelationshipIndex) -> Optional[str]:
    """The diagnosis an action's investigation starts from, or None."""
    origin = None
    for relationship in action.relationships or []:
        if relationship.relationship not in PATHWAY_ACTION_LABELS:
            continue
        if index.type_of(relationship.node_id) != _TREATMENT:
            continue
        found = _diagnosis_relying_on(relationship.node_id, session, index)
        if found is not None:
            origin = found
    return origin


def derive_pathways(session: SessionGraph, index: RelationshipIndex) -> List[InvestigativePathway]:
    """
    Pathway candidates in construction order (actions in payload order, then
    each action's impacts in payload order). Duplicates are kept.
    """
    pathways: List[InvestigativePathway] = []

    for action in session.node_groups.actions or []:
        if action.impact is None or not action.impact.diagnoses:
            continue
        origin = pathway_origin(action, session, index)
        if origin is None:
            continue
        for diagnosis_id, impact in action.impact.diagnoses.items():
            if not impact or diagnosis_id == origin:
                continue
            if index.type_of(diagnosis_id) != _DIAGNOSIS:
                continue
            pathways.append(InvestigativePathway(
                source=origin,
                target=diagnosis_id,
                impact=impact,
                action_id=action.id,
                reasoning=action.text or None,
            ))

    logger.debug(f"Derived {len(pathways)} investigative pathway candidate(s)")
    return pathways


def accepted_pathways(session: SessionGraph, index: RelationshipIndex) -> List[InvestigativePathway]:
    """
    The pathways the flow diagram draws: first occurrence per link id, then
    greedy cycle elimination over the diagnosis nodes. Rejections are not
    logged here; the flow assembler reports them.
    """
    seen: Set[str] = set()
    unique: List[InvestigativePathway] = []
    for pathway in derive_pathways(session, index):
        if pathway.id in seen:
            continue
        seen.add(pathway.id)
        unique.append(pathway)

    eliminator = CycleEliminator(
        node_id for node_id, kind in index.node_types.items() if kind == _DIAGNOSIS
    )
    return [pathway for pathway in unique if eliminator.offer(pathway.source, pathway.target)]
