"""mailstats logging helpers with deterministic JSON emission and redaction.

What:
  Offer a small facade over Python streams so every mailstats component emits
  JSON log lines with the same fields and with message content scrubbed.

Why:
  The analyzer runs inside a host application on a user's machine. Support
  requests usually arrive as pasted log excerpts, so the lines must be
  greppable and must never carry subjects or snippets of the user's mail.

How:
  :class:`JsonLogger` holds a target stream and a component label. Each call
  builds the canonical payload, merges a recursively redacted copy of the
  keyword context, serialises it with :mod:`json`, and flushes.

Interfaces:
  :class:`JsonLogger`, :func:`get_logger`.

Invariants & Safety:
  - Every entry carries ``ts`` (ISO8601, UTC), ``lvl``, ``msg`` and
    ``component``.
  - ``subject``, ``snippet``, ``body`` and ``headers`` values are replaced with
    ``[redacted]``, including inside nested dictionaries.
  - Streams are flushed after every write.
"""
from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional


REDACTED = "[redacted]"
SENSITIVE_KEYS = frozenset({"subject", "snippet", "body", "headers"})


@dataclass
class JsonLogger:
    """Structured JSON logger with automatic redaction.

    What:
      Emits single-line JSON entries with a timestamp, severity, component tag
      and optional structured context.

    Why:
      The pipeline, the normalizer and the store all report progress; a single
      logger type keeps the schema uniform and lets tests capture output by
      handing in an :class:`io.StringIO`.

    How:
      :meth:`log` does the work; :meth:`debug`, :meth:`info`,
      :meth:`warning` and :meth:`error` only pick the level.
    """

    stream: Any = field(default_factory=lambda: sys.stdout)
    component: str = "mailstats"

    def log(self, level: str, message: str, *, extra: Optional[Dict[str, Any]] = None) -> None:
        """Emit a structured JSON log entry.

        Args:
          level: Human-readable severity (e.g. ``"info"``).
          message: Short event name or description.
          extra: Optional context dictionary, redacted recursively.
        """

        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "lvl": level.upper(),
            "msg": message,
            "component": self.component,
        }
        if extra:
            payload.update(self._redact(extra))
        json.dump(payload, self.stream, separators=(",", ":"), default=str)
        self.stream.write("\n")
        self.stream.flush()

    def debug(self, message: str, **kwargs: Any) -> None:
        self.log("DEBUG", message, extra=kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self.log("INFO", message, extra=kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self.log("WARN", message, extra=kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self.log("ERROR", message, extra=kwargs)

    @staticmethod
    def _redact(data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` with sensitive keys masked.

        What:
          Replaces the value of every key listed in :data:`SENSITIVE_KEYS` with
          the ``[redacted]`` sentinel.

        Why:
          Callers occasionally pass a whole raw Gmail resource as context while
          debugging; the subject header must not survive into the log file.

        How:
          Walks the mapping, masking known keys and recursing into nested
          dictionaries so the structure stays parseable.

        Args:
          data: Arbitrary context to sanitise.

        Returns:
          Sanitised copy of ``data``.
        """

        result: Dict[str, Any] = {}
        for key, value in data.items():
            if key in SENSITIVE_KEYS:
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = JsonLogger._redact(value)
            else:
                result[key] = value
        return result


def get_logger(component: str) -> JsonLogger:
    """Return a :class:`JsonLogger` bound to ``component`` writing to stdout."""

    return JsonLogger(component=component)
