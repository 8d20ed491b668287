"""
REASONFLOW SCHEMAS - The Grammar of a Session

If ontology.py is the Dictionary (the words a session may use),
schemas.py is the Grammar (how a session is structured).

This module defines the decoded, in-memory shape of a session-level
medical reasoning graph:
- Relationship: A typed, directed, weighted reference to another node
- SymptomNode / DiagnosisNode / TreatmentNode / ActionNode: The four node kinds
- SessionNodes: The four disjoint collections
- SessionGraph: The root value handed to every derivation
- Serialization helpers for the upstream JSON payload

Design Principles:
1. STRICT TYPING: msgspec.Struct, camelCase on the wire, snake_case in Python
2. IMMUTABLE SNAPSHOTS: frozen Structs; edits go through msgspec.structs.replace
3. TOLERANT OF GAPS: optional numerics default on read, never on decode
4. UNKNOWN FIELDS IGNORED: the analysis pipeline adds fields freely
"""
import msgspec
from typing import Optional, Dict, Any, List, Iterator, Tuple, Union

from core.ontology import (
    NodeKind,
    Direction,
    ActionType,
    ActionStatus,
    DEFAULT_PRIORITY,
    DEFAULT_PROBABILITY,
    DEFAULT_STRENGTH,
)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class ReasonFlowError(Exception):
    """Base exception for reasoning-graph operations."""
    pass


class SessionDecodeError(ReasonFlowError):
    """Raised when an upstream payload is not a structurally valid session."""
    pass


# =============================================================================
# RELATIONSHIPS
# =============================================================================

class Relationship(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """
    A reference from the owning node to another node.

    `direction` is relative to the owner: OUTGOING means owner -> node_id,
    INCOMING means node_id -> owner.
    """
    node_id: str
    relationship: str                          # RelationshipType value (not enforced)
    direction: Direction = Direction.OUTGOING
    strength: float = DEFAULT_STRENGTH         # 0..1
    reasoning: Optional[str] = None


# =============================================================================
# NODES
# =============================================================================

class Citation(msgspec.Struct, kw_only=True, frozen=True):
    """Guideline or evidence provenance for a diagnosis or treatment."""
    guideline: Optional[str] = None
    organization: Optional[str] = None
    year: Optional[int] = None
    level: Optional[str] = None
    url: Optional[str] = None


class SymptomNode(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """An observed or reported symptom (column 0 of the flow diagram)."""
    id: str
    text: str = ""
    severity: Optional[float] = None           # 1 = most severe, 10 = least
    confidence: Optional[float] = None         # 0..1
    source: str = "transcript"
    duration: Optional[float] = None           # minutes
    quote: Optional[str] = None
    characteristics: List[str] = msgspec.field(default_factory=list)
    status: Optional[str] = None
    relationships: Optional[List[Relationship]] = None

    @property
    def label(self) -> str:
        return self.text or self.id

    @property
    def priority_value(self) -> float:
        return self.severity if self.severity is not None else DEFAULT_PRIORITY

    @property
    def confidence_value(self) -> float:
        return self.confidence if self.confidence is not None else DEFAULT_PROBABILITY


class DiagnosisNode(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """A diagnosis under consideration (column 1)."""
    id: str
    name: str = ""
    probability: Optional[float] = None        # 0..1
    priority: Optional[float] = None           # 1 = critical, 10 = low
    confidence: Optional[float] = None
    icd10: Optional[str] = None
    reasoning: Optional[str] = None
    requires_investigation: bool = False
    suppressed: bool = False
    suppression_reason: Optional[str] = None
    red_flags: List[str] = msgspec.field(default_factory=list)
    citations: List[Citation] = msgspec.field(default_factory=list)
    relationships: Optional[List[Relationship]] = None

    @property
    def label(self) -> str:
        return self.name or self.id

    @property
    def priority_value(self) -> float:
        return self.priority if self.priority is not None else DEFAULT_PRIORITY

    @property
    def confidence_value(self) -> float:
        return self.probability if self.probability is not None else DEFAULT_PROBABILITY


class TreatmentNode(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """A recommended treatment or investigation (column 2)."""
    id: str
    name: str = ""
    type: Optional[str] = None                 # medication, procedure, investigation, ...
    priority: Optional[float] = None
    confidence: Optional[float] = None
    effectiveness: Optional[float] = None      # 0..1
    dosage: Optional[str] = None
    urgency: Optional[str] = None
    reasoning: Optional[str] = None
    suppressed: bool = False
    suppression_reason: Optional[str] = None
    contraindications: List[str] = msgspec.field(default_factory=list)
    citations: List[Citation] = msgspec.field(default_factory=list)
    relationships: Optional[List[Relationship]] = None

    @property
    def label(self) -> str:
        return self.name or self.id

    @property
    def priority_value(self) -> float:
        return self.priority if self.priority is not None else DEFAULT_PRIORITY

    @property
    def confidence_value(self) -> float:
        return self.effectiveness if self.effectiveness is not None else DEFAULT_PROBABILITY


class ActionImpact(msgspec.Struct, kw_only=True, frozen=True):
    """How answering an action would shift the differential."""
    symptoms: List[str] = msgspec.field(default_factory=list)
    diagnoses: Dict[str, float] = msgspec.field(default_factory=dict)
    yes: Dict[str, float] = msgspec.field(default_factory=dict)
    no: Dict[str, float] = msgspec.field(default_factory=dict)


class ActionNode(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """A question to ask or an alert to raise. Never drawn as a flow node."""
    id: str
    text: str = ""
    category: str = ""
    action_type: ActionType = ActionType.QUESTION
    priority: Optional[float] = None
    status: ActionStatus = ActionStatus.PENDING
    impact: Optional[ActionImpact] = None
    answer: Optional[str] = None
    confidence: Optional[float] = None
    recommendation: Optional[str] = None
    relationships: Optional[List[Relationship]] = None

    @property
    def label(self) -> str:
        return self.text or self.id

    @property
    def priority_value(self) -> float:
        return self.priority if self.priority is not None else DEFAULT_PRIORITY


SessionNode = Union[SymptomNode, DiagnosisNode, TreatmentNode, ActionNode]


def relationships_of(node: SessionNode) -> List[Relationship]:
    """A node's relationships; a missing list means none."""
    return node.relationships or []


# =============================================================================
# SESSION GRAPH (The Root Value)
# =============================================================================

class SessionNodes(msgspec.Struct, kw_only=True, frozen=True):
    """The four disjoint node collections. Any of them may be absent."""
    symptoms: Optional[List[SymptomNode]] = None
    diagnoses: Optional[List[DiagnosisNode]] = None
    treatments: Optional[List[TreatmentNode]] = None
    actions: Optional[List[ActionNode]] = None

    def iter_groups(self) -> Iterator[Tuple[NodeKind, List[SessionNode]]]:
        """Yield (kind, nodes) in the canonical order symptoms, diagnoses, treatments, actions."""
        yield NodeKind.SYMPTOM, self.symptoms or []
        yield NodeKind.DIAGNOSIS, self.diagnoses or []
        yield NodeKind.TREATMENT, self.treatments or []
        yield NodeKind.ACTION, self.actions or []

    def iter_nodes(self) -> Iterator[Tuple[NodeKind, SessionNode]]:
        for kind, nodes in self.iter_groups():
            for node in nodes:
                yield kind, node

    def find(self, node_id: str) -> Optional[SessionNode]:
        """Return the first node with this id, or None."""
        for _, node in self.iter_nodes():
            if node.id == node_id:
                return node
        return None

    def count(self) -> int:
        return sum(len(nodes) for _, nodes in self.iter_groups())


class UserAction(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """One clinician interaction, appended to the session audit log."""
    timestamp: str
    action: str                                # UserActionType value
    target_id: str
    reason: Optional[str] = None
    confidence: Optional[float] = None
    note: Optional[str] = None


class SessionGraph(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """
    The fully decoded session handed to the core.

    Produced upstream (fetch, decryption, language-model analysis are all
    outside this package). Treated as an immutable snapshot: every derivation
    reads it and produces new output.
    """
    session_id: str = ""
    timestamp: str = ""
    analysis_version: int = 0
    nodes: Optional[SessionNodes] = None
    user_actions: Optional[List[UserAction]] = None

    @property
    def node_groups(self) -> SessionNodes:
        """The node collections; an absent `nodes` object reads as empty."""
        return self.nodes if self.nodes is not None else _EMPTY_NODES

    def find_node(self, node_id: str) -> Optional[SessionNode]:
        return self.node_groups.find(node_id)


_EMPTY_NODES = SessionNodes()


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================

# Pre-compiled encoder/decoder, reused across the application
_session_encoder = msgspec.json.Encoder()
_session_decoder = msgspec.json.Decoder(type=SessionGraph)


def decode_session(data: Union[bytes, str]) -> SessionGraph:
    """
    Decode an upstream JSON payload into a SessionGraph.

    Raises:
        SessionDecodeError: If the payload is not valid JSON or does not
            match the session shape (e.g. a non-numeric severity).
    """
    try:
        return _session_decoder.decode(data)
    except (msgspec.ValidationError, msgspec.DecodeError) as e:
        raise SessionDecodeError(f"Invalid session payload: {e}") from e


def session_from_builtins(obj: Dict[str, Any]) -> SessionGraph:
    """Convert an already-parsed dict (camelCase keys) into a SessionGraph."""
    try:
        return msgspec.convert(obj, type=SessionGraph)
    except msgspec.ValidationError as e:
        raise SessionDecodeError(f"Invalid session payload: {e}") from e


def encode_session(session: SessionGraph) -> bytes:
    """Encode a SessionGraph back to camelCase JSON bytes."""
    return _session_encoder.encode(session)
