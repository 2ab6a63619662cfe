"""Gmail provider adapter built on ``google-api-python-client``.

What:
  Define the :class:`MessageProvider` protocol consumed by the fetch pipeline
  and :class:`GmailProvider`, its implementation over the Gmail REST API.

Why:
  The pipeline only needs two calls (list message references, get message
  metadata) and a clean distinction between "slow down" and "give up". Keeping
  the Google client behind a narrow protocol lets tests script the provider and
  keeps ``HttpError`` parsing in one file.

How:
  - The host builds :class:`GmailProvider` once with OAuth credentials (or a
    service factory) and injects it into the pipeline.
  - Each worker thread lazily builds its own Gmail service object through
    :class:`threading.local`, because the underlying ``httplib2`` transport is
    not thread-safe and detail fetches fan out on a thread pool.
  - ``HttpError`` 429, and 403 carrying a ``rateLimitExceeded`` or
    ``userRateLimitExceeded`` reason, become
    :class:`~mailstats.core.errors.RateLimitError`; every other HTTP,
    credential refresh or transport failure becomes
    :class:`~mailstats.core.errors.ProviderError`.

Interfaces:
  :class:`MessagePage`, :class:`MessageProvider`, :class:`GmailProvider`,
  :data:`METADATA_HEADERS`.

Invariants & Safety:
  - Only read-only endpoints are called; the adapter never modifies mail.
  - Token acquisition and refresh belong to the host; an expired or revoked
    token surfaces as a non-retried :class:`ProviderError`.
"""
from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

import httplib2
from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..core.errors import MailStatsError, ProviderError, RateLimitError
from ..utils.logging import JsonLogger, get_logger

METADATA_HEADERS: Sequence[str] = ("Delivered-To", "To", "From", "Subject")

_RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


@dataclass
class MessagePage:
    """One page of message references.

    Attributes:
      message_ids: Provider ids on this page, in provider order.
      next_page_token: Continuation token, ``None`` on the last page.
    """

    message_ids: List[str] = field(default_factory=list)
    next_page_token: Optional[str] = None


class MessageProvider(Protocol):
    """The two provider operations the fetch pipeline depends on."""

    def list_message_refs(
        self,
        *,
        page_token: Optional[str],
        page_size: int,
        query: str,
    ) -> MessagePage:
        ...

    def get_metadata(self, message_id: str) -> Dict[str, Any]:
        ...


def _error_reasons(exc: HttpError) -> List[str]:
    try:
        payload = json.loads(exc.content.decode("utf-8") if isinstance(exc.content, bytes) else exc.content)
    except (TypeError, ValueError, AttributeError):
        return []
    error = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(error, dict):
        return []
    return [item.get("reason", "") for item in error.get("errors", []) if isinstance(item, dict)]


def translate_http_error(exc: HttpError, operation: str) -> MailStatsError:
    """Map a Google ``HttpError`` onto the mailstats error taxonomy.

    Args:
      exc: Error raised by ``execute()``.
      operation: Short name of the failing call, used in the message.

    Returns:
      :class:`RateLimitError` for quota responses, :class:`ProviderError`
      otherwise.
    """

    status = int(getattr(exc.resp, "status", 0) or 0)
    reasons = _error_reasons(exc)
    message = f"{operation} failed with HTTP {status}"
    if status == 429 or (status == 403 and _RATE_LIMIT_REASONS.intersection(reasons)):
        return RateLimitError(message, status=status)
    return ProviderError(f"{message}: {getattr(exc, 'reason', '') or exc}", status=status)


class GmailProvider:
    """Read-only Gmail client handing out message pages and metadata.

    What:
      Wraps ``users.messages.list`` and ``users.messages.get`` for one mailbox.

    Why:
      The pipeline must stay ignorant of discovery documents, request builders
      and Google's error envelope; it only speaks :class:`MessageProvider`.

    How:
      ``service_factory`` returns a Gmail service object; the default builds one
      from ``credentials`` with :func:`googleapiclient.discovery.build`. A
      thread-local cache keeps one service per thread.
    """

    def __init__(
        self,
        credentials: Any = None,
        *,
        user_id: str = "me",
        metadata_headers: Sequence[str] = METADATA_HEADERS,
        service_factory: Optional[Callable[[], Any]] = None,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        """Configure the adapter without touching the network.

        Args:
          credentials: ``google.auth`` credentials owned by the host.
          user_id: Gmail user id, ``"me"`` for the authorised account.
          metadata_headers: Headers requested on each detail fetch.
          service_factory: Optional zero-argument callable returning a service
            object; overrides ``credentials``.
          logger: Structured logger; defaults to ``mailstats.gmail``.

        Raises:
          ValueError: If neither ``credentials`` nor ``service_factory`` is
            provided.
        """

        if credentials is None and service_factory is None:
            raise ValueError("GmailProvider needs credentials or a service_factory")
        self._credentials = credentials
        self._user_id = user_id
        self._metadata_headers = list(metadata_headers)
        self._service_factory = service_factory or self._build_service
        self._local = threading.local()
        self._logger = logger or get_logger("mailstats.gmail")

    @classmethod
    def from_settings(cls, settings: Any, credentials: Any = None, **kwargs: Any) -> "GmailProvider":
        """Build a provider from :class:`~mailstats.config.schema.GmailSettings`."""

        return cls(
            credentials,
            user_id=settings.user_id,
            metadata_headers=settings.metadata_headers,
            **kwargs,
        )

    def _build_service(self) -> Any:
        return build("gmail", "v1", credentials=self._credentials, cache_discovery=False)

    def _service(self) -> Any:
        service = getattr(self._local, "service", None)
        if service is None:
            service = self._service_factory()
            self._local.service = service
        return service

    def _execute(self, request: Any, operation: str) -> Dict[str, Any]:
        try:
            return request.execute()
        except HttpError as exc:
            raise translate_http_error(exc, operation) from exc
        except GoogleAuthError as exc:
            raise ProviderError(f"{operation} failed: credentials rejected: {exc}", status=401) from exc
        except (httplib2.HttpLib2Error, OSError) as exc:
            raise ProviderError(f"{operation} failed: {exc}") from exc

    def list_message_refs(
        self,
        *,
        page_token: Optional[str],
        page_size: int,
        query: str,
    ) -> MessagePage:
        """List one page of message references matching ``query``.

        Raises:
          RateLimitError: When Gmail throttles the request.
          ProviderError: On any other HTTP or transport failure.
        """

        request = self._service().users().messages().list(
            userId=self._user_id,
            maxResults=page_size,
            q=query,
            pageToken=page_token,
        )
        response = self._execute(request, "messages.list")
        ids = [item["id"] for item in response.get("messages", []) if item.get("id")]
        self._logger.debug("messages_listed", count=len(ids), has_more=bool(response.get("nextPageToken")))
        return MessagePage(message_ids=ids, next_page_token=response.get("nextPageToken") or None)

    def get_metadata(self, message_id: str) -> Dict[str, Any]:
        """Fetch the metadata resource (restricted header set) for ``message_id``."""

        request = self._service().users().messages().get(
            userId=self._user_id,
            id=message_id,
            format="metadata",
            metadataHeaders=self._metadata_headers,
        )
        return self._execute(request, "messages.get")
