"""
REASONFLOW SESSION - Reactive State Over One Session Snapshot

- state: SessionState (snapshot, index, flow graph, selected/hovered paths)
- actions: Question and alert lookups and prioritisation
"""

from session.state import SessionState, UnknownNodeError, find_node, node_display_text
from session.actions import (
    questions,
    alerts,
    pending_questions,
    pending_alerts,
    questions_for_node,
    alerts_for_node,
    questions_for_link,
    alerts_for_link,
    composite_score,
    sorted_questions,
    sorted_pending_questions,
)

__all__ = [
    "SessionState",
    "UnknownNodeError",
    "find_node",
    "node_display_text",
    "questions",
    "alerts",
    "pending_questions",
    "pending_alerts",
    "questions_for_node",
    "alerts_for_node",
    "questions_for_link",
    "alerts_for_link",
    "composite_score",
    "sorted_questions",
    "sorted_pending_questions",
]
