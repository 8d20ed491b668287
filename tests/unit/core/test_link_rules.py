"""
Unit tests for core/link_rules.py - Relationship -> Flow Link Table
"""
import pytest

from core.link_rules import canonical_link_id, find_rule, orient_link, has_drawn_link
from core.relationship_index import build_index


def test_canonical_link_id():
    assert canonical_link_id("S1", "D1") == "S1-D1"
    assert canonical_link_id("a-b", "c") == "a-b-c"


@pytest.mark.parametrize("source_type,target_type,label,expected", [
    ("symptom", "diagnosis", "supports", ("A", "B")),
    ("symptom", "diagnosis", "confirms", ("A", "B")),
    ("diagnosis", "treatment", "manages", ("A", "B")),
    ("treatment", "diagnosis", "investigates", ("B", "A")),
    ("treatment", "diagnosis", "explores", ("B", "A")),
    ("symptom", "diagnosis", "contradicts", None),
    ("treatment", "diagnosis", "treats", None),
    ("diagnosis", "symptom", "supports", None),
    ("action", "treatment", "investigates", None),
])
def test_orient_link_table(source_type, target_type, label, expected):
    assert orient_link("A", source_type, "B", target_type, label, "outgoing") == expected


@pytest.mark.parametrize("direction", ["incoming", "bidirectional"])
def test_only_outgoing_declarations_draw(direction):
    assert orient_link("A", "symptom", "B", "diagnosis", "supports", direction) is None


def test_find_rule_flipped_row():
    rule = find_rule("treatment", "diagnosis", "clarifies")
    assert rule is not None
    assert rule.flipped


def test_has_drawn_link_straight_and_reversed(clinical_session):
    index = build_index(clinical_session)

    assert has_drawn_link(index, "S1", "D1")
    assert has_drawn_link(index, "D1", "T1")
    # Declared on T3 as "investigates D2", drawn as D2 -> T3
    assert has_drawn_link(index, "D2", "T3")
    assert not has_drawn_link(index, "T3", "D2")
    # Declared on D2 with direction incoming: no link
    assert not has_drawn_link(index, "S2", "D2")
    assert not has_drawn_link(index, "S1", "UNKNOWN")
