"""
REASONFLOW ONTOLOGY - The Dictionary of the Reasoning Graph

If schemas.py is the Grammar (how a session is structured),
ontology.py is the Dictionary (the words a session may use).

This module defines:
- Enums: The vocabulary (NodeKind, Direction, RelationshipType, ActionType)
- Label families: Which relationship labels mean "evidence", "care", "investigation"
- Column layout: Where each visual node kind lives in the flow diagram

Key Principle: Relationship labels come from an upstream language model and
are NOT trusted to be in the vocabulary. Unknown labels are carried through
the index untouched; they simply never match a link rule or traversal rule.
"""
from typing import Dict, FrozenSet
from enum import Enum


# =============================================================================
# ENUMS (The Vocabulary)
# =============================================================================

class NodeKind(str, Enum):
    """The four disjoint node collections of a session."""
    SYMPTOM = "symptom"
    DIAGNOSIS = "diagnosis"
    TREATMENT = "treatment"
    ACTION = "action"              # Question or alert; never a visual node


class Direction(str, Enum):
    """Direction of a relationship, as declared on the owning node."""
    OUTGOING = "outgoing"          # owner -> target
    INCOMING = "incoming"          # target -> owner
    BIDIRECTIONAL = "bidirectional"


class RelationshipType(str, Enum):
    """Relationship labels the analysis pipeline is known to emit."""
    SUPPORTS = "supports"
    CONTRADICTS = "contradicts"
    CONFIRMS = "confirms"
    RULES_OUT = "rules_out"
    SUGGESTS = "suggests"
    TREATS = "treats"
    MANAGES = "manages"
    PREVENTS = "prevents"
    RELIEVES = "relieves"
    INVESTIGATES = "investigates"
    CLARIFIES = "clarifies"
    EXPLORES = "explores"
    EXCLUDES = "excludes"
    REVEALS = "reveals"
    INDICATES = "indicates"
    REQUIRES = "requires"
    MONITORS = "monitors"


class ActionType(str, Enum):
    """Kinds of investigative action."""
    QUESTION = "question"
    ALERT = "alert"


class ActionStatus(str, Enum):
    """Lifecycle of an action."""
    PENDING = "pending"
    ANSWERED = "answered"
    ACKNOWLEDGED = "acknowledged"
    SKIPPED = "skipped"
    RESOLVED = "resolved"


class UserActionType(str, Enum):
    """Clinician interactions recorded in the session audit log."""
    SUPPRESS = "suppress"
    ACCEPT = "accept"
    MODIFY = "modify"
    ADD_NOTE = "add_note"
    HIGHLIGHT = "highlight"
    QUESTION = "question"
    ACKNOWLEDGE = "acknowledge"
    ANSWER = "answer"


# =============================================================================
# LABEL FAMILIES
# =============================================================================

def _labels(*types: RelationshipType) -> FrozenSet[str]:
    return frozenset(t.value for t in types)


# Symptom -> diagnosis labels that draw a flow link
EVIDENCE_LINK_LABELS = _labels(
    RelationshipType.SUPPORTS,
    RelationshipType.SUGGESTS,
    RelationshipType.INDICATES,
    RelationshipType.CONFIRMS,
)

# Diagnosis -> treatment labels that draw a flow link
CARE_LINK_LABELS = _labels(
    RelationshipType.REQUIRES,
    RelationshipType.TREATS,
    RelationshipType.MANAGES,
)

# Treatment -> diagnosis labels that draw a (reversed) flow link
INVESTIGATION_LINK_LABELS = _labels(
    RelationshipType.INVESTIGATES,
    RelationshipType.CLARIFIES,
    RelationshipType.EXPLORES,
)

# Path traversal is narrower than link drawing
PATH_EVIDENCE_LABELS = _labels(
    RelationshipType.SUPPORTS,
    RelationshipType.SUGGESTS,
    RelationshipType.INDICATES,
)
PATH_REQUIRES_LABELS = _labels(RelationshipType.REQUIRES)
PATH_TREATS_LABELS = _labels(RelationshipType.TREATS)
PATH_TREATMENT_TARGET_LABELS = _labels(
    RelationshipType.TREATS,
    RelationshipType.INVESTIGATES,
)

# Investigative pathway synthesis
PATHWAY_ACTION_LABELS = _labels(RelationshipType.INVESTIGATES)
PATHWAY_DIAGNOSIS_LABELS = _labels(
    RelationshipType.REQUIRES,
    RelationshipType.TREATS,
)


# =============================================================================
# COLUMN LAYOUT
# =============================================================================

# Left-to-right flow: symptoms -> diagnoses -> treatments
COLUMN_BY_KIND: Dict[str, int] = {
    NodeKind.SYMPTOM.value: 0,
    NodeKind.DIAGNOSIS.value: 1,
    NodeKind.TREATMENT.value: 2,
}

VISUAL_KINDS: FrozenSet[str] = frozenset(COLUMN_BY_KIND)

# Numeric defaults for fields the pipeline left out
DEFAULT_PRIORITY = 5
DEFAULT_PROBABILITY = 0.5
DEFAULT_STRENGTH = 0.5


def is_visual_kind(kind: str) -> bool:
    """True if nodes of this kind are drawn in the flow diagram."""
    return kind in VISUAL_KINDS
