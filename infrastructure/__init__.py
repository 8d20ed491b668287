"""
REASONFLOW INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: TOML-backed typed configuration
- event_bus: Synchronous typed notifications for session changes
"""

from infrastructure.config import ReasonFlowConfig, get_config, set_config, reset_config
from infrastructure.event_bus import (
    EventBus,
    EventType,
    SessionEvent,
    SessionLoaded,
    SessionCleared,
    PathChanged,
    SelectionChanged,
    HoverChanged,
    UserActionRecorded,
    get_event_bus,
    reset_event_bus,
)

__all__ = [
    "ReasonFlowConfig",
    "get_config",
    "set_config",
    "reset_config",
    "EventBus",
    "EventType",
    "SessionEvent",
    "SessionLoaded",
    "SessionCleared",
    "PathChanged",
    "SelectionChanged",
    "HoverChanged",
    "UserActionRecorded",
    "get_event_bus",
    "reset_event_bus",
]
