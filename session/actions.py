"""
REASONFLOW SESSION ACTIONS - Questions and Alerts Around the Diagram

Actions are never drawn, but the UI lists them beside the diagram: the
questions still worth asking and the alerts still unacknowledged, either
for the whole session or for one node or link.

Question ordering uses a weighted composite score:

    score = urgency_weight   * urgency(category)
          + relevance_weight * max_related_diagnosis_probability * probability_multiplier
          + priority_weight  * (priority_inversion - priority)

All functions are pure over a SessionGraph snapshot.
"""
from typing import List, Optional, Iterable, Set

from core.ontology import ActionType, ActionStatus
from core.schemas import SessionGraph, ActionNode, relationships_of
from infrastructure.config import QuestionScoringConfig, get_config


# =============================================================================
# FILTERS
# =============================================================================

def actions_of_type(session: SessionGraph, action_type: ActionType) -> List[ActionNode]:
    return [a for a in session.node_groups.actions or [] if a.action_type == action_type]


def questions(session: SessionGraph) -> List[ActionNode]:
    return actions_of_type(session, ActionType.QUESTION)


def alerts(session: SessionGraph) -> List[ActionNode]:
    return actions_of_type(session, ActionType.ALERT)


def pending(actions: Iterable[ActionNode]) -> List[ActionNode]:
    return [a for a in actions if a.status == ActionStatus.PENDING]


def pending_questions(session: SessionGraph) -> List[ActionNode]:
    return pending(questions(session))


def pending_alerts(session: SessionGraph) -> List[ActionNode]:
    return pending(alerts(session))


def _references_any(action: ActionNode, node_ids: Set[str]) -> bool:
    return any(rel.node_id in node_ids for rel in relationships_of(action))


def questions_for_node(session: SessionGraph, node_id: str) -> List[ActionNode]:
    """Questions that declare a relationship to this node."""
    return [q for q in questions(session) if _references_any(q, {node_id})]


def alerts_for_node(session: SessionGraph, node_id: str) -> List[ActionNode]:
    return [a for a in alerts(session) if _references_any(a, {node_id})]


def questions_for_link(session: SessionGraph, source_id: str, target_id: str) -> List[ActionNode]:
    """Questions related to either endpoint of a link."""
    endpoints = {source_id, target_id}
    return [q for q in questions(session) if _references_any(q, endpoints)]


def alerts_for_link(session: SessionGraph, source_id: str, target_id: str) -> List[ActionNode]:
    endpoints = {source_id, target_id}
    return [a for a in alerts(session) if _references_any(a, endpoints)]


# =============================================================================
# PRIORITISATION
# =============================================================================

def composite_score(
    question: ActionNode,
    session: SessionGraph,
    config: Optional[QuestionScoringConfig] = None,
) -> float:
    """
    Weighted priority of a question; higher means ask sooner.

    Relevance is the highest probability among the diagnoses the question
    impacts. Diagnoses without a probability count as 0.
    """
    config = config or get_config().question_scoring
    urgency = config.urgency_scores.get(question.category, config.default_urgency)

    max_probability = 0.0
    if question.impact is not None and question.impact.diagnoses:
        probabilities = {
            d.id: d.probability or 0.0
            for d in session.node_groups.diagnoses or []
        }
        for diagnosis_id in question.impact.diagnoses:
            max_probability = max(max_probability, probabilities.get(diagnosis_id, 0.0))

    priority_score = config.priority_inversion - question.priority_value

    return (
        config.urgency_weight * urgency
        + config.relevance_weight * max_probability * config.probability_multiplier
        + config.priority_weight * priority_score
    )


def sorted_questions(
    session: SessionGraph,
    config: Optional[QuestionScoringConfig] = None,
) -> List[ActionNode]:
    """All questions, highest composite score first (stable for ties)."""
    config = config or get_config().question_scoring
    return sorted(
        questions(session),
        key=lambda q: composite_score(q, session, config),
        reverse=True,
    )


def sorted_pending_questions(
    session: SessionGraph,
    config: Optional[QuestionScoringConfig] = None,
) -> List[ActionNode]:
    return pending(sorted_questions(session, config))
