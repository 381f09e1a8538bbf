"""Structured event logging for sheetcalc.

Provides a unified event schema, a filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from sheetcalc.logging.events import (
    EngineEvent,
    EventLevel,
    EventType,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    make_cell_event,
    truncate_context,
)
from sheetcalc.logging.sink import EventSink

__all__ = [
    "EngineEvent",
    "EventLevel",
    "EventSink",
    "EventType",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "make_cell_event",
    "truncate_context",
]
