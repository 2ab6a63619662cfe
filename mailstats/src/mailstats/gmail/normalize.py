"""Convert Gmail metadata resources into validated message records.

What:
  Extract sender, recipient, domain, subject and receive time from a Gmail
  ``users.messages.get`` response fetched with ``format="metadata"``.

Why:
  Provider payloads are messy: display names wrap addresses in angle brackets,
  mailing lists omit ``Delivered-To``, some messages have no ``From`` at all.
  Normalization decides once what a usable record is so the store only ever
  sees valid rows.

How:
  :func:`header_map` folds the header list into a case-insensitive mapping.
  :func:`extract_address` keeps the bracketed address when present and
  lowercases it; :func:`parse_domain` takes the text after the last ``@``.
  :func:`normalize` assembles a :class:`~mailstats.store.records.MessageRecord`
  and turns any failure into ``None``.

Interfaces:
  :data:`NO_SUBJECT`, :func:`header_map`, :func:`extract_address`,
  :func:`parse_domain`, :func:`normalize`.

Invariants & Safety:
  - :func:`normalize` never raises.
  - Dropped messages are logged by id only; header values stay out of logs.
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional

from ..store.records import MessageRecord
from ..utils.logging import JsonLogger, get_logger

NO_SUBJECT = "(no subject)"

_BRACKETED_ADDRESS = re.compile(r".*<([^<>]*)>\s*$", re.DOTALL)

LOGGER = get_logger("mailstats.normalize")


def header_map(headers: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    """Map lowercase header names to values; later duplicates win."""

    result: Dict[str, str] = {}
    for header in headers or ():
        name = header.get("name")
        if name:
            result[str(name).lower()] = header.get("value")
    return result


def extract_address(value: str) -> str:
    """Return the address inside trailing angle brackets, else ``value``, lowercased.

    >>> extract_address("Jane Doe <Jane@Example.COM>")
    'jane@example.com'
    """

    match = _BRACKETED_ADDRESS.match(value)
    address = match.group(1) if match and match.group(1).strip() else value
    return address.strip().lower()


def parse_domain(address: str) -> str:
    """Return the text after the last ``@`` of ``address``, or ``""`` without one."""

    if "@" not in address:
        return ""
    return address.rsplit("@", 1)[1]


def _received_at(internal_date: Any) -> Optional[datetime]:
    if internal_date in (None, ""):
        return None
    return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)


def normalize(raw: Mapping[str, Any], *, logger: Optional[JsonLogger] = None) -> Optional[MessageRecord]:
    """Build a :class:`MessageRecord` from a Gmail metadata resource.

    What:
      Returns a record when the resource has an id, a usable ``From`` address
      with a domain, and a ``Delivered-To`` or ``To`` recipient; otherwise
      ``None``.

    Why:
      A single bad message must never abort a batch. Containing every failure
      here lets the pipeline treat normalization as a pure filter.

    How:
      ``Delivered-To`` wins over ``To`` because it names the mailbox that
      actually received the copy (aliases and lists rewrite ``To``). A missing
      or blank subject becomes :data:`NO_SUBJECT`. Any exception, including the
      record's own invariant check, is logged and converted to ``None``.

    Args:
      raw: Resource with ``id``, optional ``internalDate`` and
        ``payload.headers``.
      logger: Structured logger; defaults to the module logger.

    Returns:
      Validated record, or ``None`` when the message is unusable.
    """

    log = logger or LOGGER
    message_id = None
    try:
        message_id = raw["id"]
        headers = header_map(raw["payload"]["headers"])
        sender = headers.get("from")
        recipient = headers.get("delivered-to") or headers.get("to")
        if not sender or not recipient:
            log.warning("message_missing_address", message_id=message_id)
            return None
        from_address = extract_address(sender)
        subject = headers.get("subject")
        return MessageRecord(
            id=str(message_id),
            from_address=from_address,
            domain=parse_domain(from_address),
            to_address=extract_address(recipient),
            subject=subject if subject and subject.strip() else NO_SUBJECT,
            received_at=_received_at(raw.get("internalDate")),
        )
    except Exception as exc:
        log.warning("message_malformed", message_id=message_id, error=str(exc))
        return None
