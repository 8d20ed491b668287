"""
REASONFLOW SESSION STATE - The Reactive Hub

SessionState is the single owner of "what is loaded and what is
highlighted". It holds:

- the current SessionGraph snapshot
- its RelationshipIndex (rebuilt wholesale on every load)
- a FlowGraph cached per session object (built lazily)
- two independent PathState slots: selected and hovered

Rules:
- Loading a new session never recomputes existing paths. A stale path stays
  until the user triggers a new one.
- A hovered path takes precedence over a selected one.
- Every trigger replaces its slot (last write wins); nothing is queued.
- User actions never mutate a snapshot: they build a new SessionGraph with
  msgspec.structs.replace, append a UserAction and load the result.

Changes are announced as SessionEvents on the event bus.
"""
import logging
import msgspec
from datetime import datetime, timezone
from typing import Optional, FrozenSet, List, Dict, Any, Tuple

from core.ontology import ActionType, ActionStatus, UserActionType
from core.schemas import (
    SessionGraph,
    SessionNodes,
    SessionNode,
    UserAction,
    ReasonFlowError,
)
from core.relationship_index import RelationshipIndex, build_index
from core.link_rules import canonical_link_id
from core.path_deriver import PathTrigger, PathState, derive_path
from viz.flow import FlowGraph, HiddenCounts, assemble_flow_graph, apply_thresholds
from infrastructure.config import ReasonFlowConfig, ThresholdConfig, get_config
from infrastructure.event_bus import (
    EventBus,
    SessionLoaded,
    SessionCleared,
    PathChanged,
    SelectionChanged,
    HoverChanged,
    UserActionRecorded,
    get_event_bus,
)

logger = logging.getLogger("reasonflow.session")


class UnknownNodeError(ReasonFlowError):
    """Raised when a user action targets an id that is not in the session."""
    pass


_EMPTY_SESSION = SessionGraph()


# =============================================================================
# NODE LOOKUPS
# =============================================================================

def find_node(session: Optional[SessionGraph], node_id: str) -> Optional[SessionNode]:
    """The node with this id in any collection, or None."""
    if session is None:
        return None
    return session.find_node(node_id)


def node_display_text(session: Optional[SessionGraph], node_id: str) -> str:
    """Name or text of a node; the id itself if the node is unknown."""
    node = find_node(session, node_id)
    if node is None:
        return node_id
    return node.label


# =============================================================================
# SESSION STATE
# =============================================================================

class SessionState:
    """
    Holds one session snapshot and the paths highlighted on it.

    Usage:
        state = SessionState()
        state.load(decode_session(payload))
        state.hover_node("D1")
        state.highlighted_nodes   # frozenset({"S1", "D1", "T1"})
    """

    def __init__(
        self,
        config: Optional[ReasonFlowConfig] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self._config = config or get_config()
        self._event_bus = event_bus or get_event_bus()
        self._thresholds: ThresholdConfig = self._config.thresholds

        self._session: Optional[SessionGraph] = None
        self._index: Optional[RelationshipIndex] = None
        self._flow: Optional[FlowGraph] = None
        self._flow_source: Optional[SessionGraph] = None
        self._filtered: Optional[Tuple[FlowGraph, HiddenCounts]] = None

        self._selected: Optional[PathState] = None
        self._hovered: Optional[PathState] = None

    # -------------------------------------------------------------------------
    # LOADING
    # -------------------------------------------------------------------------

    def load(self, session: SessionGraph) -> None:
        """Replace the snapshot, rebuild the index and drop the cached flow graph."""
        self._session = session
        self._index = build_index(session)
        self._drop_flow_cache()

        logger.info(
            f"Loaded session {session.session_id!r} "
            f"(v{session.analysis_version}, {session.node_groups.count()} node(s))"
        )
        self._event_bus.publish(SessionLoaded(
            session_id=session.session_id,
            analysis_version=session.analysis_version,
            node_count=session.node_groups.count(),
            edge_count=self._index.edge_count(),
        ))

    def update(self, session: SessionGraph) -> None:
        """Alias of load(); the index is always rebuilt wholesale."""
        self.load(session)

    def update_partial(self, session: SessionGraph) -> None:
        """Alias of load(); incremental index maintenance is not attempted."""
        self.load(session)

    def clear(self) -> None:
        """Unload the session and both path slots."""
        previous = self._session.session_id if self._session is not None else None
        self._session = None
        self._index = None
        self._drop_flow_cache()
        self._selected = None
        self._hovered = None

        logger.info(f"Cleared session {previous!r}")
        self._event_bus.publish(SessionCleared(session_id=previous))

    def _drop_flow_cache(self) -> None:
        self._flow = None
        self._flow_source = None
        self._filtered = None

    # -------------------------------------------------------------------------
    # READ-ONLY VIEWS
    # -------------------------------------------------------------------------

    @property
    def session(self) -> Optional[SessionGraph]:
        return self._session

    @property
    def index(self) -> Optional[RelationshipIndex]:
        return self._index

    @property
    def is_loaded(self) -> bool:
        return self._session is not None

    @property
    def flow_graph(self) -> FlowGraph:
        """The FlowGraph of the current snapshot, built once per session object."""
        if self._session is None:
            return FlowGraph()
        if self._flow is None or self._flow_source is not self._session:
            self._flow = assemble_flow_graph(self._session, self._index, self._config.flow)
            self._flow_source = self._session
            self._filtered = None
        return self._flow

    @property
    def thresholds(self) -> ThresholdConfig:
        return self._thresholds

    def set_thresholds(self, thresholds: ThresholdConfig) -> None:
        """Change column visibility; only the filtered view is recomputed."""
        self._thresholds = thresholds
        self._filtered = None

    def _filtered_view(self) -> Tuple[FlowGraph, HiddenCounts]:
        flow = self.flow_graph
        if self._filtered is None:
            self._filtered = apply_thresholds(flow, self._thresholds)
        return self._filtered

    @property
    def filtered_flow_graph(self) -> FlowGraph:
        return self._filtered_view()[0]

    @property
    def hidden_counts(self) -> HiddenCounts:
        return self._filtered_view()[1]

    @property
    def selected_path(self) -> Optional[PathState]:
        return self._selected

    @property
    def hovered_path(self) -> Optional[PathState]:
        return self._hovered

    @property
    def active_path(self) -> Optional[PathState]:
        """Hovered path if any, else the selected one."""
        return self._hovered if self._hovered is not None else self._selected

    @property
    def highlighted_nodes(self) -> FrozenSet[str]:
        active = self.active_path
        return active.path.nodes if active is not None else frozenset()

    @property
    def highlighted_links(self) -> FrozenSet[str]:
        active = self.active_path
        return active.path.links if active is not None else frozenset()

    def find_node(self, node_id: str) -> Optional[SessionNode]:
        return find_node(self._session, node_id)

    def node_display_text(self, node_id: str) -> str:
        return node_display_text(self._session, node_id)

    # -------------------------------------------------------------------------
    # SELECTION AND HOVER
    # -------------------------------------------------------------------------

    def _derive(self, trigger: PathTrigger) -> PathState:
        session = self._session if self._session is not None else _EMPTY_SESSION
        return derive_path(trigger, session, self._index)

    def select(self, trigger: PathTrigger) -> PathState:
        self._selected = self._derive(trigger)
        self._event_bus.publish(_path_event(SelectionChanged, self._selected))
        return self._selected

    def select_node(self, node_id: str) -> PathState:
        return self.select(PathTrigger.for_node(node_id))

    def select_link(self, source_id: str, target_id: str) -> PathState:
        return self.select(PathTrigger.for_link(source_id, target_id, self._link_item(source_id, target_id)))

    def clear_selection(self) -> None:
        self._selected = None
        self._event_bus.publish(_path_event(SelectionChanged, None))

    def hover(self, trigger: PathTrigger) -> PathState:
        self._hovered = self._derive(trigger)
        self._event_bus.publish(_path_event(HoverChanged, self._hovered))
        return self._hovered

    def hover_node(self, node_id: str) -> PathState:
        return self.hover(PathTrigger.for_node(node_id))

    def hover_link(self, source_id: str, target_id: str) -> PathState:
        return self.hover(PathTrigger.for_link(source_id, target_id, self._link_item(source_id, target_id)))

    def end_hover(self) -> None:
        self._hovered = None
        self._event_bus.publish(_path_event(HoverChanged, None))

    def _link_item(self, source_id: str, target_id: str):
        if self._session is None:
            return None
        return self.flow_graph.get_link(canonical_link_id(source_id, target_id))

    # -------------------------------------------------------------------------
    # USER ACTIONS
    # -------------------------------------------------------------------------

    def suppress_node(self, node_id: str, reason: Optional[str] = None) -> SessionGraph:
        """
        Mark a diagnosis or treatment as suppressed.

        Raises:
            UnknownNodeError: If no diagnosis or treatment has this id
        """
        session = self._require_session()
        groups = session.node_groups
        reason = reason or "User suppressed"

        def mark(node):
            return msgspec.structs.replace(node, suppressed=True, suppression_reason=reason)

        changes: Dict[str, Any] = {}
        for field, nodes in (("diagnoses", groups.diagnoses), ("treatments", groups.treatments)):
            updated, hit = _replace_by_id(nodes, node_id, mark)
            if hit:
                changes[field] = updated
                break
        if not changes:
            raise UnknownNodeError(f"No diagnosis or treatment with id {node_id!r}")

        return self._apply_user_action(
            session, changes,
            UserAction(timestamp=_now(), action=UserActionType.SUPPRESS.value, target_id=node_id, reason=reason),
        )

    def acknowledge_alert(self, alert_id: str) -> SessionGraph:
        """
        Mark an alert as acknowledged.

        Raises:
            UnknownNodeError: If no alert has this id
        """
        session = self._require_session()

        def acknowledge(action):
            return msgspec.structs.replace(action, status=ActionStatus.ACKNOWLEDGED)

        updated, hit = _replace_by_id(
            session.node_groups.actions, alert_id, acknowledge,
            lambda a: a.action_type == ActionType.ALERT,
        )
        if not hit:
            raise UnknownNodeError(f"No alert with id {alert_id!r}")

        return self._apply_user_action(
            session, {"actions": updated},
            UserAction(timestamp=_now(), action=UserActionType.ACKNOWLEDGE.value, target_id=alert_id),
        )

    def answer_question(self, question_id: str, answer: str, confidence: Optional[float] = None) -> SessionGraph:
        """
        Record an answer to a question.

        Raises:
            UnknownNodeError: If no question has this id
        """
        session = self._require_session()

        def record(action):
            return msgspec.structs.replace(
                action, status=ActionStatus.ANSWERED, answer=answer, confidence=confidence,
            )

        updated, hit = _replace_by_id(
            session.node_groups.actions, question_id, record,
            lambda a: a.action_type == ActionType.QUESTION,
        )
        if not hit:
            raise UnknownNodeError(f"No question with id {question_id!r}")

        return self._apply_user_action(
            session, {"actions": updated},
            UserAction(
                timestamp=_now(),
                action=UserActionType.ANSWER.value,
                target_id=question_id,
                confidence=confidence,
                note=answer,
            ),
        )

    def _require_session(self) -> SessionGraph:
        if self._session is None or self._session.nodes is None:
            raise UnknownNodeError("No session loaded")
        return self._session

    def _apply_user_action(
        self,
        session: SessionGraph,
        node_changes: Dict[str, Any],
        user_action: UserAction,
    ) -> SessionGraph:
        nodes: SessionNodes = msgspec.structs.replace(session.node_groups, **node_changes)
        updated = msgspec.structs.replace(
            session,
            nodes=nodes,
            user_actions=list(session.user_actions or []) + [user_action],
        )
        logger.info(f"User action {user_action.action} on {user_action.target_id}")
        self.load(updated)
        self._event_bus.publish(UserActionRecorded(
            action=user_action.action,
            target_id=user_action.target_id,
            performed_at=user_action.timestamp,
            reason=user_action.reason,
            confidence=user_action.confidence,
            note=user_action.note,
        ))
        return updated


# =============================================================================
# HELPERS
# =============================================================================

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _replace_by_id(nodes, node_id, transform, predicate=None) -> Tuple[List[Any], bool]:
    """Copy of `nodes` with the first matching node transformed."""
    updated: List[Any] = []
    hit = False
    for node in nodes or []:
        if not hit and node.id == node_id and (predicate is None or predicate(node)):
            updated.append(transform(node))
            hit = True
        else:
            updated.append(node)
    return updated, hit


def _path_event(event_cls, state: Optional[PathState]) -> PathChanged:
    if state is None:
        return event_cls()
    return event_cls(
        trigger_kind=state.trigger.kind.value,
        trigger_id=state.trigger.id,
        path_nodes=sorted(state.path.nodes),
        path_links=sorted(state.path.links),
    )
