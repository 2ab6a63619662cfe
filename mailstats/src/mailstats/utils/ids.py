"""Run identifiers for sync runs.

What:
  Provide :func:`new_run_id`, the identifier attached to pipeline log lines and
  to the persisted status snapshot.

Why:
  A sync run spans many pages and several minutes of waiting; a shared
  identifier lets operators stitch the log lines of one run back together.

How:
  Combine a UTC ISO8601 timestamp with a short random suffix.

Invariants & Safety:
  - Identifiers are sortable by start time and carry an explicit timezone.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timezone


def new_run_id() -> str:
    """Return a unique identifier such as ``2024-01-01T00:00:00+00:00#1a2b3c``."""

    timestamp = datetime.now(timezone.utc).isoformat()
    suffix = secrets.token_hex(3)
    return f"{timestamp}#{suffix}"
