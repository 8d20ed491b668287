"""
REASONFLOW SESSION EVENTS - Telling the Renderer What Changed

SessionState is synchronous and single-threaded, and so is this bus:
publish() runs every handler registered for the event's type, in
subscription order, before it returns. A handler that raises is logged and
the remaining handlers still run.

Every EventType has its own typed event Struct:

    SESSION_LOADED     SessionLoaded(session_id, analysis_version, node_count, edge_count)
    SESSION_CLEARED    SessionCleared(session_id)
    SELECTION_CHANGED  SelectionChanged(trigger_kind, trigger_id, path_nodes, path_links)
    HOVER_CHANGED      HoverChanged(trigger_kind, trigger_id, path_nodes, path_links)
    USER_ACTION        UserActionRecorded(action, target_id, performed_at, reason, confidence, note)

Subscribing with event_type=None receives every event (audit logging).

Usage:
    bus = get_event_bus()
    bus.subscribe(EventType.SELECTION_CHANGED, lambda event: redraw(event.path_nodes))
"""
import logging
import time
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional

import msgspec

logger = logging.getLogger("reasonflow.event_bus")


class EventType(str, Enum):
    """Types of events published by the session state."""
    SESSION_LOADED = "session_loaded"
    SESSION_CLEARED = "session_cleared"
    SELECTION_CHANGED = "selection_changed"
    HOVER_CHANGED = "hover_changed"
    USER_ACTION = "user_action"


# =============================================================================
# EVENTS
# =============================================================================

class SessionEvent(msgspec.Struct, kw_only=True, frozen=True):
    """Common envelope; concrete events set `event_type` and add their fields."""
    event_type: ClassVar[EventType]
    source: str = "session_state"
    timestamp: float = msgspec.field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form, with the event type under "type"."""
        return {"type": self.event_type.value, **msgspec.to_builtins(self)}


class SessionLoaded(SessionEvent, kw_only=True, frozen=True):
    event_type: ClassVar[EventType] = EventType.SESSION_LOADED
    session_id: str
    analysis_version: int
    node_count: int
    edge_count: int


class SessionCleared(SessionEvent, kw_only=True, frozen=True):
    event_type: ClassVar[EventType] = EventType.SESSION_CLEARED
    session_id: Optional[str] = None


class PathChanged(SessionEvent, kw_only=True, frozen=True):
    """
    A path slot changed. All fields empty means the slot was cleared.

    Node and link ids are sorted so renderers can diff payloads directly.
    """
    trigger_kind: Optional[str] = None
    trigger_id: Optional[str] = None
    path_nodes: List[str] = msgspec.field(default_factory=list)
    path_links: List[str] = msgspec.field(default_factory=list)

    @property
    def is_cleared(self) -> bool:
        return self.trigger_id is None


class SelectionChanged(PathChanged, kw_only=True, frozen=True):
    event_type: ClassVar[EventType] = EventType.SELECTION_CHANGED


class HoverChanged(PathChanged, kw_only=True, frozen=True):
    event_type: ClassVar[EventType] = EventType.HOVER_CHANGED


class UserActionRecorded(SessionEvent, kw_only=True, frozen=True):
    """A clinician action was appended to the audit log and the session reloaded."""
    event_type: ClassVar[EventType] = EventType.USER_ACTION
    action: str
    target_id: str
    performed_at: str
    reason: Optional[str] = None
    confidence: Optional[float] = None
    note: Optional[str] = None


Handler = Callable[[SessionEvent], Any]


# =============================================================================
# EVENT BUS
# =============================================================================

class EventBus:
    """
    Synchronous publish/subscribe keyed by EventType.

    Thread Safety:
        NOT thread-safe. Session state is single-threaded by contract.
    """

    def __init__(self):
        # None key: handlers that receive every event
        self._handlers: Dict[Optional[EventType], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Optional[EventType], handler: Handler) -> None:
        """
        Register a handler for one event type (or all, with None).

        Subscribing the same handler twice to the same type is a no-op.
        """
        handlers = self._handlers[event_type]
        if handler in handlers:
            return
        handlers.append(handler)
        logger.debug(f"Subscribed handler to {_describe(event_type)}")

    def unsubscribe(self, event_type: Optional[EventType], handler: Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            logger.debug(f"Unsubscribed handler from {_describe(event_type)}")

    def publish(self, event: SessionEvent) -> int:
        """
        Deliver an event to its type's handlers, then to catch-all handlers.

        Returns:
            Number of handlers that completed without raising
        """
        delivered = 0
        handlers = list(self._handlers.get(event.event_type, [])) + list(self._handlers.get(None, []))
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Handler for {event.event_type.value} failed: {e}",
                    exc_info=True,
                )
                continue
            delivered += 1

        logger.debug(f"Published {event.event_type.value} to {delivered}/{len(handlers)} handler(s)")
        return delivered

    def clear_subscribers(self, event_type: Optional[EventType] = None) -> None:
        """Drop the handlers of one event type, or every handler when None."""
        if event_type is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event_type, None)

    def subscriber_count(self, event_type: Optional[EventType] = None) -> int:
        """Handlers for one type (catch-alls excluded), or all handlers when None."""
        if event_type is None:
            return sum(len(handlers) for handlers in self._handlers.values())
        return len(self._handlers.get(event_type, []))


def _describe(event_type: Optional[EventType]) -> str:
    return event_type.value if event_type is not None else "all events"


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get the global event bus, creating it on first use."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Drop the global event bus (tests only)."""
    global _event_bus
    _event_bus = None
