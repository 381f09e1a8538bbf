"""NDJSON event file for recalculation runs.

Every event becomes one line of ``<log_dir>/events.ndjson`` with sorted
keys.  Appends hold an exclusive ``fcntl`` lock and reads a shared one,
so several ``sheetcalc`` processes can share a log directory.  Where
``fcntl`` does not exist (Windows) the file is used unlocked.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any

from sheetcalc.logging.events import EngineEvent

try:
    import fcntl
except ImportError:  # Windows
    fcntl = None

EVENTS_FILENAME = "events.ndjson"

# Reads only look at the end of the file
_DEFAULT_TAIL_BYTES = 2 * 1024 * 1024


@contextmanager
def _locked(handle: IO[Any], exclusive: bool) -> Iterator[IO[Any]]:
    if fcntl is None:
        yield handle
        return
    fcntl.flock(handle.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
    try:
        yield handle
    finally:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


class EventSink:
    """Append-only event log in *log_dir*.

    Parameters
    ----------
    log_dir : Path
        Directory holding ``events.ndjson``; created if missing.
    fsync : bool
        Force each append to disk before returning.
    tail_bytes : int, optional
        How much of the end of the file ``read`` scans.
    """

    def __init__(self, log_dir: Path, *, fsync: bool = False, tail_bytes: int | None = None) -> None:
        self.log_dir = Path(log_dir)
        self.fsync = fsync
        self.tail_bytes = _DEFAULT_TAIL_BYTES if tail_bytes is None else tail_bytes
        self.log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self.log_dir / EVENTS_FILENAME

    def write(self, event: EngineEvent) -> None:
        """Append *event* as one JSON line."""
        record = json.dumps(event.model_dump(mode="json"), sort_keys=True, default=str)
        with open(self.path, "a", encoding="utf-8") as handle, _locked(handle, exclusive=True):
            handle.write(record + "\n")
            handle.flush()
            if self.fsync:
                os.fsync(handle.fileno())

    def read(
        self,
        *,
        level: str | None = None,
        event_type: str | None = None,
        limit: int = 200,
    ) -> list[dict[str, Any]]:
        """Newest-first events, optionally filtered by level and event type."""
        wanted = {"level": level, "event_type": event_type}
        matches = [
            record
            for record in self._records()
            if all(value is None or record.get(key) == value for key, value in wanted.items())
        ]
        return matches[::-1][:limit]

    def _records(self) -> Iterator[dict[str, Any]]:
        """Parsed records from the tail of the file, oldest first; bad lines skipped."""
        for line in self._tail().splitlines():
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(record, dict):
                yield record

    def _tail(self) -> str:
        if not self.path.exists():
            return ""
        with open(self.path, "rb") as handle, _locked(handle, exclusive=False):
            size = os.fstat(handle.fileno()).st_size
            start = max(size - self.tail_bytes, 0)
            handle.seek(start)
            data = handle.read()
        if start > 0:
            # first line is probably cut in half
            _, _, data = data.partition(b"\n")
        return data.decode("utf-8", errors="replace")
