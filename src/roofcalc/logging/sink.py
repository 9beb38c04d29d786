"""Append-only NDJSON files for estimate events.

Layout under ``<project>/logs``::

    events.ndjson                     every event
    estimates/<estimate_id>.ndjson    events whose context names that estimate

Lines are ``json.dumps(sort_keys=True)``.  Appends hold an exclusive
``fcntl.flock`` and reads a shared one; where ``fcntl`` is unavailable
(Windows) files are used unlocked.  Reads only look at the last
``tail_bytes`` of a file.
"""

from __future__ import annotations

import json
import os
import re
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Iterator

from roofcalc.logging.events import RoofcalcEvent

try:
    import fcntl
except ImportError:
    fcntl = None  # type: ignore[assignment]

# Estimate ids become file names; anything else stays global-only.
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")

DEFAULT_TAIL_BYTES = 2 * 1024 * 1024
MAX_QUERY_LIMIT = 2000


@contextmanager
def _flock(f: IO[Any], exclusive: bool) -> Iterator[IO[Any]]:
    if fcntl is None:
        yield f
        return
    fcntl.flock(f.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
    try:
        yield f
    finally:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)


class EventSink:
    """Estimate event log for one project directory."""

    def __init__(
        self,
        project_dir: str | Path,
        *,
        fsync: bool = False,
        tail_bytes: int | None = None,
    ) -> None:
        self.logs_dir = Path(project_dir) / "logs"
        self.estimates_dir = self.logs_dir / "estimates"
        self.global_log = self.logs_dir / "events.ndjson"
        self.fsync = fsync
        self.tail_bytes = tail_bytes if tail_bytes is not None else DEFAULT_TAIL_BYTES

    @classmethod
    def from_config(cls, project_dir: str | Path, config: dict[str, Any]) -> EventSink:
        """Build a sink from ``logging_*`` keys of a project config."""
        tail = config.get("logging_tail_bytes")
        return cls(
            project_dir,
            fsync=bool(config.get("logging_fsync", False)),
            tail_bytes=int(tail) if tail is not None else None,
        )

    def estimate_log(self, estimate_id: str) -> Path | None:
        """Path of the per-estimate log, or None for an unsafe id."""
        if not _SAFE_ID_RE.match(estimate_id):
            return None
        return self.estimates_dir / f"{estimate_id}.ndjson"

    def append(self, event: RoofcalcEvent) -> None:
        """Write *event* to the global log and to its estimate's log."""
        line = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str) + "\n"
        targets = [self.global_log]
        if event.estimate_id:
            per_estimate = self.estimate_log(event.estimate_id)
            if per_estimate is not None:
                targets.append(per_estimate)
        for path in targets:
            self._write_line(path, line)

    def query(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        estimate_id: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Return matching events from the global log, newest first."""
        limit = min(limit, MAX_QUERY_LIMIT)
        found: list[dict[str, Any]] = []
        for event in reversed(self._read(self.global_log)):
            if len(found) >= limit:
                break
            if level and event.get("level") != level:
                continue
            if event_type and event.get("event_type") != event_type:
                continue
            if estimate_id and event.get("context", {}).get("estimate_id") != estimate_id:
                continue
            found.append(event)
        return found

    def estimate_events(self, estimate_id: str) -> list[dict[str, Any]]:
        """Return one estimate's events, oldest first."""
        path = self.estimate_log(estimate_id)
        return self._read(path) if path is not None else []

    def _write_line(self, path: Path, line: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f, _flock(f, exclusive=True):
            f.write(line)
            f.flush()
            if self.fsync:
                os.fsync(f.fileno())

    def _read(self, path: Path) -> list[dict[str, Any]]:
        """Parse the tail of an NDJSON file, skipping corrupt lines."""
        if not path.exists():
            return []
        events = []
        for raw in self._tail(path).splitlines():
            raw = raw.strip()
            if not raw:
                continue
            try:
                events.append(json.loads(raw))
            except json.JSONDecodeError:
                continue
        return events

    def _tail(self, path: Path) -> str:
        with open(path, "rb") as f, _flock(f, exclusive=False):
            size = os.fstat(f.fileno()).st_size
            if size <= self.tail_bytes:
                return f.read().decode("utf-8", errors="replace")
            f.seek(size - self.tail_bytes)
            data = f.read()
        # The first line of a tail read is usually partial
        return data[data.find(b"\n") + 1:].decode("utf-8", errors="replace")
