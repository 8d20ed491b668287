"""
REASONFLOW CORE - Central exports for the reasoning-graph core.

This module provides access to:
- Session data model and JSON codec (schemas, ontology)
- Relationship index (declarations -> oriented edges)
- Link rules shared by the flow graph and explanatory paths
- Investigative pathways, cycle elimination and path derivation
"""

from core.schemas import (
    ReasonFlowError,
    SessionDecodeError,
    Relationship,
    SymptomNode,
    DiagnosisNode,
    TreatmentNode,
    ActionNode,
    ActionImpact,
    SessionNodes,
    SessionGraph,
    UserAction,
    decode_session,
    session_from_builtins,
    encode_session,
)
from core.relationship_index import RelationshipIndex, build_index
from core.link_rules import canonical_link_id, orient_link, has_drawn_link
from core.cycle_eliminator import CycleEliminator, EliminationResult, eliminate_cycles
from core.pathways import InvestigativePathway, derive_pathways, accepted_pathways
from core.path_deriver import (
    PathTrigger,
    PathTriggerError,
    TriggerKind,
    ExplanatoryPath,
    PathState,
    derive_path,
)

__all__ = [
    # Schemas
    "ReasonFlowError",
    "SessionDecodeError",
    "Relationship",
    "SymptomNode",
    "DiagnosisNode",
    "TreatmentNode",
    "ActionNode",
    "ActionImpact",
    "SessionNodes",
    "SessionGraph",
    "UserAction",
    "decode_session",
    "session_from_builtins",
    "encode_session",
    # Index and link rules
    "RelationshipIndex",
    "build_index",
    "canonical_link_id",
    "orient_link",
    "has_drawn_link",
    # Cycle elimination
    "CycleEliminator",
    "EliminationResult",
    "eliminate_cycles",
    # Investigative pathways
    "InvestigativePathway",
    "derive_pathways",
    "accepted_pathways",
    # Paths
    "PathTrigger",
    "PathTriggerError",
    "TriggerKind",
    "ExplanatoryPath",
    "PathState",
    "derive_path",
]
