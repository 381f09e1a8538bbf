"""Structured engine events.

An ``EngineEvent`` is one NDJSON record: what happened during a formula
evaluation or a sheet recalculation, at which level, and for which cell.
Events go to the ``sheetcalc`` stdlib loggers and, when a sink is passed,
to an ``EventSink`` file.  ``emit`` never lets a logging failure escape
into the engine.
"""

from __future__ import annotations

import logging
import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    eval_failed = "eval_failed"
    recalc_started = "recalc_started"
    recalc_completed = "recalc_completed"
    cell_error = "cell_error"
    cycle_detected = "cycle_detected"


_LOG_LEVELS = {
    EventLevel.info: logging.INFO,
    EventLevel.warning: logging.WARNING,
    EventLevel.error: logging.ERROR,
}

# Formulas and messages longer than this are cut in logged context.
_MAX_VALUE_LEN = 256
_TRUNCATED = "...[truncated]"


def truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Copy of *context* with long strings cut, recursing into nested dicts."""

    def shorten(value: Any) -> Any:
        if isinstance(value, dict):
            return truncate_context(value)
        if isinstance(value, str) and len(value) > _MAX_VALUE_LEN:
            return value[:_MAX_VALUE_LEN] + _TRUNCATED
        return value

    return {key: shorten(value) for key, value in context.items()}


def _timestamp() -> str:
    # UTC, microseconds, Z suffix
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class EngineEvent(BaseModel):
    """One structured log record."""

    schema_version: int = 1
    ts: str = Field(default_factory=_timestamp)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


def make_cell_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    addr: str | None = None,
    formula: str | None = None,
    error_code: str | None = None,
    extra: dict[str, Any] | None = None,
) -> EngineEvent:
    """Build an event about one cell; ``addr`` and ``formula`` land in the context."""
    context = {key: value for key, value in (("addr", addr), ("formula", formula)) if value is not None}
    context.update(extra or {})
    return EngineEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=context,
        error_code=error_code,
    )


class _StderrThrottle:
    """Write at most one diagnostic line to stderr per interval."""

    def __init__(self, interval: float = 60.0) -> None:
        self.interval = interval
        self._last: float | None = None

    def __call__(self, text: str) -> None:
        now = time.monotonic()
        if self._last is not None and now - self._last < self.interval:
            return
        self._last = now
        try:
            sys.stderr.write(f"[sheetcalc] {text}\n")
        except (OSError, ValueError):
            pass


_report_failure = _StderrThrottle()


def emit(event: EngineEvent, sink: Any = None) -> None:
    """Log *event* and append it to *sink* when one is given.

    Never raises: a failing sink is reported on stderr (throttled) and
    the event is dropped.
    """
    try:
        event = event.model_copy(update={"context": truncate_context(event.context)})
        logger.log(
            _LOG_LEVELS[EventLevel(event.level)],
            "%s: %s",
            EventType(event.event_type).value,
            event.message,
        )
        if sink is not None:
            sink.write(event)
    except Exception:
        _report_failure(f"event logging failed: {traceback.format_exc()}")


def _emitter(level: EventLevel) -> Callable[..., None]:
    def emit_at_level(
        event_type: EventType,
        message: str,
        context: dict[str, Any] | None = None,
        *,
        error_code: str | None = None,
        sink: Any = None,
    ) -> None:
        emit(
            EngineEvent(
                level=level,
                event_type=event_type,
                message=message,
                context=dict(context or {}),
                error_code=error_code,
            ),
            sink,
        )

    emit_at_level.__name__ = f"emit_{level.value}"
    emit_at_level.__doc__ = f"Emit a {level.value}-level event."
    return emit_at_level


emit_info = _emitter(EventLevel.info)
emit_warning = _emitter(EventLevel.warning)
emit_error = _emitter(EventLevel.error)
