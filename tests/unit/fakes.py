"""In-memory provider doubles used by unit and end-to-end tests.

What:
  Provide a scripted :class:`FakeProvider` implementing the
  ``MessageProvider`` protocol, a :class:`FakeGmailService` mimicking the
  ``googleapiclient`` resource chain, a :class:`RecordingReporter`, a
  :class:`RecordingSleep`, and :func:`make_raw_message` to build Gmail
  metadata resources.

Why:
  The pipeline and the Gmail adapter must be exercised without network access
  and without real waits. Scripting pages, failures and details keeps every
  scenario deterministic.

How:
  :class:`FakeProvider` serves pages keyed by page token and pops queued
  per-token list failures before serving a page. Detail lookups return the
  scripted resource or raise the scripted exception. Calls are recorded under
  a lock because detail fetches arrive from worker threads.

Interfaces:
  :func:`make_raw_message`, :class:`FakeProvider`, :class:`FakeGmailService`,
  :class:`RecordingReporter`, :class:`RecordingSleep`.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from mailstats.gmail.client import MessagePage


def make_raw_message(
    message_id: str,
    sender: Optional[str] = "Sender <sender@example.com>",
    *,
    to: Optional[str] = None,
    delivered_to: Optional[str] = "me@example.org",
    subject: Optional[str] = "Hello",
    internal_date: Optional[str] = "1700000000000",
) -> Dict[str, Any]:
    """Build a Gmail ``format=metadata`` resource; ``None`` omits a header."""

    headers = []
    for name, value in (
        ("Delivered-To", delivered_to),
        ("To", to),
        ("From", sender),
        ("Subject", subject),
    ):
        if value is not None:
            headers.append({"name": name, "value": value})
    raw: Dict[str, Any] = {"id": message_id, "payload": {"headers": headers}}
    if internal_date is not None:
        raw["internalDate"] = internal_date
    return raw


class FakeProvider:
    """Scripted ``MessageProvider``.

    Args:
      pages: Mapping from page token (``None`` for the first page) to
        ``(message_ids, next_page_token)``.
      details: Mapping from message id to a raw resource or an exception
        instance to raise.
      list_failures: Mapping from page token to exceptions raised, in order,
        by list calls for that token before its page is served.
    """

    def __init__(
        self,
        pages: Dict[Optional[str], Tuple[Sequence[str], Optional[str]]],
        details: Dict[str, Any],
        list_failures: Optional[Dict[Optional[str], Iterable[Exception]]] = None,
    ) -> None:
        self.pages = pages
        self.details = details
        self.list_failures = {token: list(errors) for token, errors in (list_failures or {}).items()}
        self.list_calls: List[Dict[str, Any]] = []
        self.detail_calls: List[str] = []
        self._lock = threading.Lock()

    def list_message_refs(self, *, page_token, page_size, query) -> MessagePage:
        self.list_calls.append({"page_token": page_token, "page_size": page_size, "query": query})
        pending = self.list_failures.get(page_token)
        if pending:
            raise pending.pop(0)
        ids, next_token = self.pages.get(page_token, ((), None))
        return MessagePage(message_ids=list(ids), next_page_token=next_token)

    def get_metadata(self, message_id: str) -> Dict[str, Any]:
        with self._lock:
            self.detail_calls.append(message_id)
        detail = self.details[message_id]
        if isinstance(detail, Exception):
            raise detail
        return detail


class _FakeRequest:
    def __init__(self, outcome: Any) -> None:
        self._outcome = outcome

    def execute(self) -> Any:
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome


class _FakeMessages:
    def __init__(self, service: "FakeGmailService") -> None:
        self._service = service

    def list(self, **kwargs: Any) -> _FakeRequest:
        self._service.calls.append(("list", kwargs))
        return _FakeRequest(self._service.list_responses.pop(0))

    def get(self, **kwargs: Any) -> _FakeRequest:
        self._service.calls.append(("get", kwargs))
        return _FakeRequest(self._service.get_responses[kwargs["id"]])


class _FakeUsers:
    def __init__(self, service: "FakeGmailService") -> None:
        self._service = service

    def messages(self) -> _FakeMessages:
        return _FakeMessages(self._service)


class FakeGmailService:
    """Stand-in for the discovery-built Gmail resource.

    ``list_responses`` are consumed in order; ``get_responses`` are keyed by
    message id. Either may hold an exception instance to raise on ``execute``.
    """

    def __init__(self, list_responses: Sequence[Any] = (), get_responses: Optional[Dict[str, Any]] = None):
        self.list_responses = list(list_responses)
        self.get_responses = dict(get_responses or {})
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def users(self) -> _FakeUsers:
        return _FakeUsers(self)


class RecordingReporter:
    """Status reporter keeping every status line."""

    def __init__(self) -> None:
        self.lines: List[str] = []

    def report(self, status_text: str) -> None:
        self.lines.append(status_text)


class RecordingSleep:
    """``sleep`` replacement recording requested delays, optionally firing a stop event."""

    def __init__(self, stop_after: Optional[int] = None, stop_event: Optional[threading.Event] = None):
        self.delays: List[float] = []
        self._stop_after = stop_after
        self._stop_event = stop_event

    def __call__(self, seconds: float) -> bool:
        self.delays.append(seconds)
        if self._stop_event is not None and self._stop_after is not None and len(self.delays) >= self._stop_after:
            self._stop_event.set()
        return False
