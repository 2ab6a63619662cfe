"""Local persistence for normalized message metadata.

What:
  Re-export :class:`MessageRecord`, :class:`MessageStore` and
  :func:`open_store`.

Invariants & Safety:
  - Only the fetch pipeline writes to the store; aggregation only reads.
"""

from .message_store import INDEXES, MessageStore, open_store
from .records import MessageRecord

__all__ = ["INDEXES", "MessageRecord", "MessageStore", "open_store"]
