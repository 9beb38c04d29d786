"""Estimate event schema and the process-wide event recorder.

Events describe one estimate run: start, per-line formula fallbacks,
measurement checks, then completion or failure.  They are only written
once ``set_project_dir()`` attaches a project; until then ``emit()`` is a
no-op, so library callers never touch the filesystem.

All timestamps use UTC ISO-8601 with ``Z`` suffix.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Estimate lifecycle
    estimate_started = "estimate_started"
    estimate_completed = "estimate_completed"
    estimate_failed = "estimate_failed"

    # A line priced at zero because its formula was rejected
    formula_fallback = "formula_fallback"

    # Measurement checks
    variables_warning = "variables_warning"
    variables_invalid = "variables_invalid"


# Formula error codes (mirror ``FormulaError.kind``)
SYNTAX_ERROR = "syntax_error"
UNKNOWN_VARIABLE = "unknown_variable"
DIVISION_BY_ZERO = "division_by_zero"
NON_FINITE_RESULT = "non_finite_result"

# Estimate error codes
ESTIMATE_SPEC_INVALID = "estimate_spec_invalid"
VARIABLES_OUT_OF_RANGE = "variables_out_of_range"

# Context keys an event must carry to be attributable to a run.
# estimate_failed may fire before an id exists.
REQUIRED_CONTEXT: dict[EventType, tuple[str, ...]] = {
    EventType.estimate_started: ("estimate_id",),
    EventType.estimate_completed: ("estimate_id",),
    EventType.formula_fallback: ("estimate_id", "line_item_id"),
}

# Formulas and error messages are user text of unbounded length.
MAX_TEXT_LEN = 256


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class RoofcalcEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None

    @property
    def estimate_id(self) -> str | None:
        value = self.context.get("estimate_id")
        return str(value) if value is not None else None


def trim_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with long string values truncated."""
    return {
        key: value[:MAX_TEXT_LEN] + "...[truncated]"
        if isinstance(value, str) and len(value) > MAX_TEXT_LEN
        else value
        for key, value in context.items()
    }


def check_attribution(event: RoofcalcEvent) -> RoofcalcEvent:
    """Downgrade *event* to a warning when required context keys are missing.

    The missing keys are listed under ``_missing_attribution`` so the gap is
    visible in ``roofcalc events`` output.
    """
    missing = [k for k in REQUIRED_CONTEXT.get(event.event_type, ()) if k not in event.context]
    if not missing:
        return event
    ctx = dict(event.context, _missing_attribution=missing)
    return event.model_copy(update={"level": EventLevel.warning, "context": ctx})


def estimate_event(
    event_type: EventType,
    level: EventLevel,
    message: str,
    *,
    estimate_id: str | None = None,
    lead_id: str | None = None,
    line_item_id: str | None = None,
    error_code: str | None = None,
    **extra: Any,
) -> RoofcalcEvent:
    """Build an event whose context carries the run's attribution keys.

    ``None`` ids are left out of the context.  Keyword extras (``formula``,
    ``error``, counts and totals) are added after them.
    """
    ids = {"estimate_id": estimate_id, "lead_id": lead_id, "line_item_id": line_item_id}
    ctx: dict[str, Any] = {k: v for k, v in ids.items() if v is not None}
    ctx.update(extra)
    return RoofcalcEvent(
        level=level,
        event_type=event_type,
        message=message,
        context=ctx,
        error_code=error_code,
    )


# ---------------------------------------------------------------------------
# Process-wide sink
# ---------------------------------------------------------------------------

_sink: Any = None  # EventSink | None

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def set_project_dir(project_dir: str | Path) -> None:
    """Write subsequent events under ``<project_dir>/logs``.

    ``logging_fsync`` and ``logging_tail_bytes`` come from the project's
    ``roofcalc.yaml``.  An unreadable config falls back to sink defaults.
    """
    global _sink
    from roofcalc.logging.sink import EventSink
    from roofcalc.project import load_project_config

    try:
        config = load_project_config(Path(project_dir))
    except Exception:
        _stderr_warning(f"could not read logging config: {traceback.format_exc()}")
        config = {}
    _sink = EventSink.from_config(project_dir, config)


def reset_sink() -> None:
    """Detach the sink; ``emit()`` becomes a no-op again."""
    global _sink
    _sink = None


def _get_sink() -> Any:
    return _sink


def _stderr_warning(msg: str) -> None:
    """Print to stderr at most once a minute."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    print(f"[roofcalc] {msg}", file=sys.stderr)


def emit(event: RoofcalcEvent) -> None:
    """Record *event* in the global log and in its estimate's log, if any.

    **Never raises.**  A write error becomes a rate-limited stderr warning.
    """
    sink = _get_sink()
    if sink is None:
        return
    try:
        event = event.model_copy(update={"context": trim_context(event.context)})
        sink.append(check_attribution(event))
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")
