"""
Unit tests for core/relationship_index.py - The Relationship Index

Tests:
- Orientation of outgoing / incoming / bidirectional declarations
- Transpose completeness (forward and reverse agree)
- Far-end types resolved regardless of payload order
- Dangling references skipped, duplicates stored once
- Determinism (built twice -> equal)
"""
import pytest

from core.relationship_index import build_index, RelationshipIndex
from core.schemas import SessionGraph


def _forward_triples(index: RelationshipIndex):
    return {
        (src, edge.target_id, edge.relationship)
        for src, edges in index.forward.items()
        for edge in edges
    }


def _reverse_triples(index: RelationshipIndex):
    return {
        (edge.source_id, tgt, edge.relationship)
        for tgt, edges in index.reverse.items()
        for edge in edges
    }


# =============================================================================
# ORIENTATION
# =============================================================================

def test_outgoing_declaration_points_away(session_factory, rel_factory):
    session = session_factory(
        symptoms=[{"id": "S1", "relationships": [rel_factory("D1", "supports", strength=0.8)]}],
        diagnoses=[{"id": "D1"}],
    )
    index = build_index(session)

    [edge] = index.forward["S1"]
    assert edge.target_id == "D1"
    assert edge.target_type == "diagnosis"
    assert edge.strength == 0.8
    assert edge.direction == "outgoing"
    [back] = index.reverse["D1"]
    assert back.source_id == "S1"
    assert back.source_type == "symptom"


def test_incoming_declaration_points_back(session_factory, rel_factory):
    """D2 declaring (S2, indicates, incoming) yields the edge S2 -> D2."""
    session = session_factory(
        symptoms=[{"id": "S2"}],
        diagnoses=[{"id": "D2", "relationships": [rel_factory("S2", "indicates", "incoming")]}],
    )
    index = build_index(session)

    assert [e.target_id for e in index.outgoing("S2")] == ["D2"]
    assert list(index.outgoing("D2")) == []
    assert index.forward["S2"][0].direction == "incoming"


def test_bidirectional_declaration_yields_both(session_factory, rel_factory):
    session = session_factory(
        diagnoses=[{"id": "D1", "relationships": [rel_factory("T1", "treats", "bidirectional")]}],
        treatments=[{"id": "T1"}],
    )
    index = build_index(session)

    assert {e.target_id for e in index.outgoing("D1")} == {"T1"}
    assert {e.target_id for e in index.outgoing("T1")} == {"D1"}
    assert index.edge_count() == 2


def test_far_end_type_resolved_for_later_nodes(session_factory, rel_factory):
    """A symptom may reference a treatment that appears later in the payload."""
    session = session_factory(
        symptoms=[{"id": "S1", "relationships": [rel_factory("T9", "relieves")]}],
        treatments=[{"id": "T9"}],
    )
    index = build_index(session)

    assert index.forward["S1"][0].target_type == "treatment"


# =============================================================================
# TOTALITY
# =============================================================================

def test_dangling_reference_skipped(session_factory, rel_factory):
    session = session_factory(
        symptoms=[{"id": "S1", "relationships": [rel_factory("NOPE", "supports"), rel_factory("D1", "supports")]}],
        diagnoses=[{"id": "D1"}],
    )
    index = build_index(session)

    assert [e.target_id for e in index.outgoing("S1")] == ["D1"]
    assert "NOPE" not in index.node_types


def test_repeated_declaration_stored_once(session_factory, rel_factory):
    session = session_factory(
        symptoms=[{"id": "S1", "relationships": [rel_factory("D1", "supports"), rel_factory("D1", "supports")]}],
        diagnoses=[{"id": "D1"}],
    )
    index = build_index(session)

    assert len(index.forward["S1"]) == 1
    assert len(index.reverse["D1"]) == 1


def test_unknown_labels_are_kept(session_factory, rel_factory):
    session = session_factory(
        symptoms=[{"id": "S1", "relationships": [rel_factory("D1", "associated_with")]}],
        diagnoses=[{"id": "D1"}],
    )
    index = build_index(session)

    assert index.forward["S1"][0].relationship == "associated_with"


def test_empty_session_gives_empty_index():
    index = build_index(SessionGraph())

    assert index.node_types == {}
    assert index.forward == {}
    assert index.reverse == {}


def test_nodes_without_relationships_only_register_type(session_factory):
    index = build_index(session_factory(treatments=[{"id": "T1"}]))

    assert index.type_of("T1") == "treatment"
    assert index.edge_count() == 0


def test_duplicate_id_keeps_first_registration(session_factory, caplog):
    session = session_factory(symptoms=[{"id": "X"}], diagnoses=[{"id": "X"}])

    with caplog.at_level("WARNING", logger="reasonflow.index"):
        index = build_index(session)

    assert index.type_of("X") == "symptom"
    assert "Duplicate node id" in caplog.text


# =============================================================================
# INVARIANTS
# =============================================================================

def test_transpose_complete(clinical_session):
    index = build_index(clinical_session)
    assert _forward_triples(index) == _reverse_triples(index)


@pytest.mark.parametrize("seed", range(25))
def test_transpose_complete_random(random_session_factory, seed):
    index = build_index(random_session_factory(seed))
    assert _forward_triples(index) == _reverse_triples(index)


@pytest.mark.parametrize("seed", range(10))
def test_build_is_deterministic(random_session_factory, seed):
    session = random_session_factory(seed)
    assert build_index(session) == build_index(session)


def test_filters_on_label_and_type(clinical_session):
    index = build_index(clinical_session)

    requires = list(index.outgoing("D1", labels={"requires"}))
    assert [e.target_id for e in requires] == ["T1"]
    from_symptoms = list(index.incoming("D1", source_type="symptom"))
    assert {e.source_id for e in from_symptoms} == {"S1", "S2"}


def test_is_current_for_tracks_identity(scenario_a, session_factory):
    index = build_index(scenario_a)

    assert index.is_current_for(scenario_a)
    assert not index.is_current_for(session_factory())
