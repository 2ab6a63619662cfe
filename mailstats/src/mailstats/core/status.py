"""Status reporting contract between the pipeline and its host.

What:
  Declare the :class:`StatusReporter` protocol, the :class:`Phase` enum and the
  :class:`SyncResult` summary returned by a sync run.

Why:
  The host application shows a one-line status while a sync runs. The pipeline
  only needs somewhere to push text, while the host and tests need the
  structured outcome (phase, counts, error kind) once the run ends.

How:
  ``report(status_text)`` is the only method a reporter must implement.
  :class:`LoggingStatusReporter` is the default and forwards the text to a
  :class:`~mailstats.utils.logging.JsonLogger`.

Interfaces:
  :class:`Phase`, :class:`StatusReporter`, :class:`LoggingStatusReporter`,
  :class:`SyncResult`.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from ..utils.logging import JsonLogger, get_logger
from .errors import ErrorKind


class Phase(str, Enum):
    """Pipeline phases reported to the host."""

    FETCHING = "fetching"
    RATE_LIMITED = "rate_limited"
    STORING = "storing"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class StatusReporter(Protocol):
    """Anything that can display a status line."""

    def report(self, status_text: str) -> None:
        ...


class LoggingStatusReporter:
    """Reporter that writes every status line to a structured logger."""

    def __init__(self, logger: Optional[JsonLogger] = None) -> None:
        self._logger = logger or get_logger("mailstats.status")

    def report(self, status_text: str) -> None:
        self._logger.info("status", text=status_text)


@dataclass
class SyncResult:
    """Outcome of :meth:`~mailstats.core.pipeline.FetchPipeline.fetch_and_store`.

    Attributes:
      phase: Terminal phase (``COMPLETED``, ``ERROR`` or ``CANCELLED``).
      pages: Number of pages whose batch reached the store.
      stored: Records written across all pages.
      dropped: Detail responses discarded as failed or malformed.
      error_kind: Structured failure category when ``phase`` is ``ERROR``.
      message: Last status text shown to the user.
    """

    phase: Phase = Phase.FETCHING
    pages: int = 0
    stored: int = 0
    dropped: int = 0
    error_kind: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.phase is Phase.COMPLETED
