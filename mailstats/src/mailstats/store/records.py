"""Normalized message metadata as persisted by the message store.

What:
  Define :class:`MessageRecord`, the only shape the store accepts.

Why:
  Statistics group on recipient, sender domain and sender address. A record
  missing any of them would produce an empty bucket key, so the invariant is
  enforced where the record is built rather than at every consumer.

How:
  A frozen dataclass whose ``__post_init__`` raises
  :class:`~mailstats.core.errors.MalformedMessageError` when a required field
  is empty. :meth:`MessageRecord.as_row` and :meth:`MessageRecord.from_row`
  convert to and from the store's column order.

Invariants & Safety:
  - ``id``, ``from_address``, ``domain`` and ``to_address`` are non-empty.
  - ``received_at`` is timezone-aware when present.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from ..core.errors import MalformedMessageError

COLUMNS: Tuple[str, ...] = (
    "id",
    "to_address",
    "domain",
    "from_address",
    "subject",
    "received_at",
)


@dataclass(frozen=True)
class MessageRecord:
    """Metadata for one email.

    Attributes:
      id: Provider message identifier (primary key).
      from_address: Lowercase sender address without display name.
      domain: Part of ``from_address`` after the last ``@``.
      to_address: Lowercase recipient address (``Delivered-To`` preferred).
      subject: Subject line, verbatim.
      received_at: Provider receive time in UTC, if known.
    """

    id: str
    from_address: str
    domain: str
    to_address: str
    subject: str
    received_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        for name in ("id", "from_address", "domain", "to_address"):
            if not getattr(self, name):
                raise MalformedMessageError(f"message record requires a non-empty {name}")
        if self.received_at is not None and self.received_at.tzinfo is None:
            object.__setattr__(self, "received_at", self.received_at.replace(tzinfo=timezone.utc))

    def as_row(self) -> Tuple[Optional[str], ...]:
        received = self.received_at.isoformat() if self.received_at is not None else None
        return (
            self.id,
            self.to_address,
            self.domain,
            self.from_address,
            self.subject,
            received,
        )

    @classmethod
    def from_row(cls, row: Sequence[Optional[str]]) -> "MessageRecord":
        message_id, to_address, domain, from_address, subject, received = row
        return cls(
            id=message_id or "",
            from_address=from_address or "",
            domain=domain or "",
            to_address=to_address or "",
            subject=subject or "",
            received_at=datetime.fromisoformat(received) if received else None,
        )
