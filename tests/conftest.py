"""
Pytest configuration and shared fixtures for the ReasonFlow test suite.
"""
import random
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset global config and event bus before each test to ensure isolation."""
    from infrastructure.config import set_config, reset_config, ReasonFlowConfig
    from infrastructure.event_bus import reset_event_bus

    # Built-in defaults, independent of config/reasonflow.toml
    set_config(ReasonFlowConfig())
    reset_event_bus()

    yield

    reset_config()
    reset_event_bus()


# =============================================================================
# PAYLOAD BUILDERS
# =============================================================================

def rel(node_id: str, relationship: str, direction: str = "outgoing", strength: Optional[float] = 0.5) -> Dict[str, Any]:
    """A relationship entry in upstream (camelCase) form."""
    entry: Dict[str, Any] = {"nodeId": node_id, "relationship": relationship, "direction": direction}
    if strength is not None:
        entry["strength"] = strength
    return entry


def make_session(
    symptoms: Optional[List[Dict[str, Any]]] = None,
    diagnoses: Optional[List[Dict[str, Any]]] = None,
    treatments: Optional[List[Dict[str, Any]]] = None,
    actions: Optional[List[Dict[str, Any]]] = None,
    session_id: str = "session-1",
    user_actions: Optional[List[Dict[str, Any]]] = None,
):
    """Build a SessionGraph from upstream-shaped dicts."""
    from core.schemas import session_from_builtins

    nodes: Dict[str, Any] = {}
    if symptoms is not None:
        nodes["symptoms"] = symptoms
    if diagnoses is not None:
        nodes["diagnoses"] = diagnoses
    if treatments is not None:
        nodes["treatments"] = treatments
    if actions is not None:
        nodes["actions"] = actions

    payload: Dict[str, Any] = {
        "sessionId": session_id,
        "timestamp": "2025-01-01T00:00:00Z",
        "analysisVersion": 1,
        "nodes": nodes,
    }
    if user_actions is not None:
        payload["userActions"] = user_actions
    return session_from_builtins(payload)


# Labels mixed into random sessions, including ones no rule understands
_RANDOM_LABELS = [
    "supports", "suggests", "indicates", "confirms", "contradicts", "rules_out",
    "requires", "treats", "manages", "investigates", "clarifies", "explores",
    "monitors", "relieves", "associated_with",
]
_RANDOM_DIRECTIONS = ["outgoing", "outgoing", "incoming", "bidirectional"]


def random_session(seed: int, size: int = 6):
    """
    A seeded random session: every collection populated, relationships of
    arbitrary label and direction between arbitrary nodes, a few dangling
    references and investigative impacts between diagnoses.
    """
    rng = random.Random(seed)
    symptom_ids = [f"S{i}" for i in range(rng.randint(0, size))]
    diagnosis_ids = [f"D{i}" for i in range(rng.randint(1, size))]
    treatment_ids = [f"T{i}" for i in range(rng.randint(0, size))]
    action_ids = [f"A{i}" for i in range(rng.randint(0, size // 2 + 1))]
    all_ids = symptom_ids + diagnosis_ids + treatment_ids + action_ids

    def random_rels() -> List[Dict[str, Any]]:
        entries = []
        for _ in range(rng.randint(0, 4)):
            target = rng.choice(all_ids + ["MISSING"])
            entries.append(rel(
                target,
                rng.choice(_RANDOM_LABELS),
                rng.choice(_RANDOM_DIRECTIONS),
                round(rng.random(), 2),
            ))
        return entries

    symptoms = [
        {"id": sid, "text": f"symptom {sid}", "severity": rng.randint(1, 10),
         "confidence": round(rng.random(), 2), "relationships": random_rels()}
        for sid in symptom_ids
    ]
    diagnoses = [
        {"id": did, "name": f"diagnosis {did}", "priority": rng.randint(1, 10),
         "probability": round(rng.random(), 2), "relationships": random_rels()}
        for did in diagnosis_ids
    ]
    treatments = [
        {"id": tid, "name": f"treatment {tid}", "priority": rng.randint(1, 10),
         "effectiveness": round(rng.random(), 2), "relationships": random_rels()}
        for tid in treatment_ids
    ]
    actions = []
    for aid in action_ids:
        entries = random_rels()
        if treatment_ids:
            entries.append(rel(rng.choice(treatment_ids), "investigates", "outgoing", 0.7))
        impacts = {
            rng.choice(diagnosis_ids): round(rng.uniform(-1, 1), 2)
            for _ in range(rng.randint(0, 3))
        }
        actions.append({
            "id": aid,
            "text": f"question {aid}",
            "category": rng.choice(["red_flag", "symptom_exploration", "warning"]),
            "actionType": rng.choice(["question", "alert"]),
            "priority": rng.randint(1, 10),
            "impact": {"diagnoses": impacts},
            "relationships": entries,
        })

    return make_session(symptoms, diagnoses, treatments, actions, session_id=f"random-{seed}")


# =============================================================================
# SESSION FIXTURES
# =============================================================================

@pytest.fixture
def scenario_a():
    """S1 supports D1 (0.8); D1 requires T1 (0.9)."""
    return make_session(
        symptoms=[{"id": "S1", "text": "Chest pain", "severity": 2, "confidence": 0.9,
                   "relationships": [rel("D1", "supports", strength=0.8)]}],
        diagnoses=[{"id": "D1", "name": "Acute coronary syndrome", "priority": 3, "probability": 0.7,
                    "relationships": [rel("T1", "requires", strength=0.9)]}],
        treatments=[{"id": "T1", "name": "Aspirin", "priority": 2, "effectiveness": 0.8}],
    )


@pytest.fixture
def clinical_session():
    """
    A small but complete session:

        S1 supports D1, S2 suggests D1, S2 indicates D2 (incoming, declared on D2)
        D1 requires T1, D1 treats T2
        T3 investigates D2 (reversed row: drawn D2 -> T3)
        A1 question investigating T1 with impact on D2 (pathway D1 -> D2)
        A2 alert related to D1, A3 answered question related to S1
    """
    return make_session(
        symptoms=[
            {"id": "S1", "text": "Chest pain", "severity": 2, "confidence": 0.9,
             "relationships": [rel("D1", "supports", strength=0.8)]},
            {"id": "S2", "text": "Shortness of breath", "severity": 4, "confidence": 0.6,
             "relationships": [rel("D1", "suggests", strength=0.4)]},
            {"id": "S3", "text": "Mild headache", "severity": 9, "confidence": 0.3},
        ],
        diagnoses=[
            {"id": "D1", "name": "Acute coronary syndrome", "priority": 1, "probability": 0.7,
             "relationships": [rel("T1", "requires", strength=0.9), rel("T2", "treats", strength=0.6)]},
            {"id": "D2", "name": "Pulmonary embolism", "priority": 2, "probability": 0.3,
             "relationships": [rel("S2", "indicates", "incoming", 0.5)]},
        ],
        treatments=[
            {"id": "T1", "name": "ECG", "type": "investigation", "priority": 1, "effectiveness": 0.9},
            {"id": "T2", "name": "Aspirin", "type": "medication", "priority": 2, "effectiveness": 0.7},
            {"id": "T3", "name": "CT pulmonary angiogram", "type": "investigation", "priority": 3,
             "effectiveness": 0.8, "relationships": [rel("D2", "investigates", strength=0.7)]},
        ],
        actions=[
            {"id": "A1", "text": "Any recent long-haul travel?", "category": "risk_assessment",
             "actionType": "question", "priority": 2, "status": "pending",
             "impact": {"diagnoses": {"D2": 0.4}},
             "relationships": [rel("T1", "investigates", strength=0.6), rel("D2", "clarifies")]},
            {"id": "A2", "text": "Check aspirin allergy", "category": "allergy",
             "actionType": "alert", "priority": 1, "status": "pending",
             "relationships": [rel("D1", "monitors")]},
            {"id": "A3", "text": "Describe the pain", "category": "symptom_exploration",
             "actionType": "question", "priority": 6, "status": "answered",
             "relationships": [rel("S1", "explores")]},
        ],
        user_actions=[],
    )


@pytest.fixture
def session_factory():
    """Expose make_session to tests."""
    return make_session


@pytest.fixture
def rel_factory():
    """Expose rel() to tests."""
    return rel


@pytest.fixture
def random_session_factory():
    """Expose random_session(seed, size) to tests."""
    return random_session
