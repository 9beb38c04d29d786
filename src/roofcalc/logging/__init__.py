"""Structured event logging for roofcalc.

Provides the estimate event schema, a filesystem NDJSON sink, and an
``emit()`` that never raises.
"""

from roofcalc.logging.events import (
    EventLevel,
    EventType,
    RoofcalcEvent,
    emit,
    estimate_event,
    reset_sink,
    set_project_dir,
    trim_context,
)
from roofcalc.logging.sink import EventSink

__all__ = [
    "EventLevel",
    "EventSink",
    "EventType",
    "RoofcalcEvent",
    "emit",
    "estimate_event",
    "reset_sink",
    "set_project_dir",
    "trim_context",
]
