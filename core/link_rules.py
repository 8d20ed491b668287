"""
REASONFLOW LINK RULES - Which Relationships Become Flow Links

The flow diagram and the explanatory paths are computed independently but
must agree, byte for byte, on link identity. Both consult this module:

- canonical_link_id: the "source-target" identity string
- orient_link: the relationship -> link table, including the reversal rule
- has_drawn_link: does ANY relationship in the index draw link a -> b?

Link table (relationships declared OUTGOING only):

    A.type     B.type     labels                                    link
    symptom    diagnosis  supports, suggests, indicates, confirms   A -> B
    diagnosis  treatment  requires, treats, manages                 A -> B
    treatment  diagnosis  investigates, clarifies, explores         B -> A

The third row is reversed so the diagram keeps flowing left to right.
"""
import msgspec
from typing import FrozenSet, Optional, Tuple

from core.ontology import (
    NodeKind,
    Direction,
    EVIDENCE_LINK_LABELS,
    CARE_LINK_LABELS,
    INVESTIGATION_LINK_LABELS,
)
from core.relationship_index import RelationshipIndex


class LinkRule(msgspec.Struct, frozen=True):
    """One row of the link table."""
    source_type: str
    target_type: str
    labels: FrozenSet[str]
    flipped: bool = False


LINK_RULES: Tuple[LinkRule, ...] = (
    LinkRule(NodeKind.SYMPTOM.value, NodeKind.DIAGNOSIS.value, EVIDENCE_LINK_LABELS),
    LinkRule(NodeKind.DIAGNOSIS.value, NodeKind.TREATMENT.value, CARE_LINK_LABELS),
    LinkRule(NodeKind.TREATMENT.value, NodeKind.DIAGNOSIS.value, INVESTIGATION_LINK_LABELS, flipped=True),
)


def canonical_link_id(source_id: str, target_id: str) -> str:
    """The identity of a flow link. Paths and flow graphs must both use this."""
    return f"{source_id}-{target_id}"


def find_rule(source_type: str, target_type: str, label: str) -> Optional[LinkRule]:
    """The link-table row matching an edge, or None."""
    for rule in LINK_RULES:
        if (
            rule.source_type == source_type
            and rule.target_type == target_type
            and label in rule.labels
        ):
            return rule
    return None


def orient_link(
    source_id: str,
    source_type: str,
    target_id: str,
    target_type: str,
    label: str,
    direction: str,
) -> Optional[Tuple[str, str]]:
    """
    Turn an index edge into an oriented (from, to) flow link, or None.

    Only relationships declared OUTGOING by `source_id` draw links.
    """
    if direction != Direction.OUTGOING.value:
        return None
    rule = find_rule(source_type, target_type, label)
    if rule is None:
        return None
    if rule.flipped:
        return target_id, source_id
    return source_id, target_id


def has_drawn_link(index: RelationshipIndex, source_id: str, target_id: str) -> bool:
    """
    True if some relationship in the index draws flow link source -> target.

    Checks both the straight rows (declared on `source_id`) and the reversed
    row (declared on `target_id` pointing back at `source_id`).
    """
    source_type = index.type_of(source_id)
    target_type = index.type_of(target_id)
    if source_type is None or target_type is None:
        return False

    for edge in index.outgoing(source_id, target_type=target_type):
        if edge.target_id != target_id:
            continue
        oriented = orient_link(
            source_id, source_type, edge.target_id, edge.target_type,
            edge.relationship, edge.direction,
        )
        if oriented == (source_id, target_id):
            return True

    for edge in index.outgoing(target_id, target_type=source_type):
        if edge.target_id != source_id:
            continue
        oriented = orient_link(
            target_id, target_type, edge.target_id, edge.target_type,
            edge.relationship, edge.direction,
        )
        if oriented == (source_id, target_id):
            return True

    return False
