"""Error taxonomy shared by the provider adapter, the store and the pipeline.

What:
  Define :class:`ErrorKind` and the exception hierarchy rooted at
  :class:`MailStatsError`.

Why:
  The pipeline reacts differently to each failure class: rate limits are
  retried, provider failures halt the run, malformed messages are dropped and
  storage failures are fatal. Carrying a structured kind keeps those decisions
  out of string matching and leaves free text for display only.

How:
  Every exception stores its :class:`ErrorKind` on ``kind``. Subclasses pin the
  kind so ``except RateLimitError`` and ``exc.kind is ErrorKind.RATE_LIMIT`` are
  interchangeable.

Interfaces:
  :class:`ErrorKind`, :class:`MailStatsError`, :class:`RateLimitError`,
  :class:`ProviderError`, :class:`MalformedMessageError`,
  :class:`StorageError`.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Structured failure categories surfaced in results and status snapshots."""

    RATE_LIMIT = "rate_limit"
    PROVIDER = "provider"
    MALFORMED = "malformed"
    STORAGE = "storage"


class MailStatsError(Exception):
    """Base error carrying a structured :class:`ErrorKind`."""

    kind: ErrorKind = ErrorKind.PROVIDER

    def __init__(self, message: str, *, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitError(MailStatsError):
    """The provider asked us to slow down (HTTP 429 or a rate-limit 403)."""

    kind = ErrorKind.RATE_LIMIT


class ProviderError(MailStatsError):
    """Network, transport or authorisation failure talking to the provider."""

    kind = ErrorKind.PROVIDER


class MalformedMessageError(MailStatsError, ValueError):
    """A provider payload could not be turned into a valid message record."""

    kind = ErrorKind.MALFORMED


class StorageError(MailStatsError):
    """The message store rejected a write or a read."""

    kind = ErrorKind.STORAGE
