"""Sync status persistence utilities.

What:
  Provide a filesystem-backed accessor for ``status.yaml`` holding the current
  status line, a bounded history of status events and the outcome of the last
  finished sync.

Why:
  Hosts render "last synced ... / rate limited / error" after a restart, long
  after the in-memory reporter is gone. Persisting a small structured document
  keeps that simple without touching the message database.

How:
  Wraps :func:`~mailstats.config.loader.load_status` and
  :func:`~mailstats.config.loader.dump_status`. Every mutation performs a
  load-modify-save cycle; missing files are bootstrapped with
  :meth:`SyncStatus.minimal`. Writes go to a sibling temporary file that is
  then renamed over the target.

Interfaces:
  :class:`SyncStatusStore` exposing ``load``, ``save``, ``report`` and
  ``record_result``. It satisfies
  :class:`~mailstats.core.status.StatusReporter`.

Invariants & Safety:
  - The event history never exceeds ``max_events`` entries; oldest go first.
  - Only status text and counters are stored, never message headers.
"""
from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .loader import dump_status, load_status
from .schema import LastRun, StatusEvent, SyncStatus


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncStatusStore:
    """High-level wrapper for manipulating the sync status snapshot on disk.

    What:
      Encapsulates filesystem access and schema-aware mutations so callers
      interact with :class:`SyncStatus` objects instead of raw YAML.

    Why:
      Passing the store as the pipeline's reporter persists every status line
      without the pipeline knowing about files.
    """

    def __init__(self, path: Path | str, max_events: int = 50):
        """Create a status store that writes to ``path``.

        Args:
          path: Location on disk for ``status.yaml``.
          max_events: Number of status events retained.
        """

        self._path = Path(path)
        self._max_events = max_events
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if not self._path.exists():
            self.save(SyncStatus.minimal())

    @classmethod
    def from_runtime(cls, runtime: Any) -> "SyncStatusStore":
        """Build a store from ``runtime.status``, relative to ``paths.state_dir``."""

        path = Path(runtime.status.path).expanduser()
        if not path.is_absolute():
            path = Path(runtime.paths.state_dir).expanduser() / path
        return cls(path, max_events=runtime.status.max_events)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> SyncStatus:
        """Load the current snapshot, recreating a minimal one when the file vanished."""

        try:
            return load_status(self._path.read_bytes())
        except FileNotFoundError:
            status = SyncStatus.minimal()
            self.save(status)
            return status

    def save(self, status: SyncStatus) -> None:
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        tmp_path.write_bytes(dump_status(status))
        os.replace(tmp_path, self._path)

    def report(self, status_text: str) -> None:
        """Record ``status_text`` as the current status and append it to the history."""

        status = self.load()
        ts = _now()
        status.current = status_text
        status.updated_at = ts
        status.events.append(StatusEvent(ts=ts, text=status_text))
        if len(status.events) > self._max_events:
            status.events = status.events[-self._max_events :]
        self.save(status)

    def record_result(self, run_id: str, result: Any, *, finished_at: Optional[str] = None) -> None:
        """Persist the outcome of a finished sync.

        Args:
          run_id: Identifier of the pipeline run.
          result: :class:`~mailstats.core.status.SyncResult` returned by the
            pipeline.
          finished_at: ISO timestamp; defaults to now.
        """

        status = self.load()
        error_kind = getattr(result.error_kind, "value", result.error_kind)
        status.last_run = LastRun(
            run_id=run_id,
            finished_at=finished_at or _now(),
            phase=getattr(result.phase, "value", result.phase),
            pages=result.pages,
            stored=result.stored,
            dropped=result.dropped,
            error_kind=error_kind,
            message=result.message,
        )
        status.updated_at = status.last_run.finished_at
        self.save(status)
