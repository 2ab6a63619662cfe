"""Paginated Gmail ingestion with rate-limit backoff and idempotent upsert.

What:
  :class:`FetchPipeline` walks the inbox page by page, fetches header metadata
  for every message on a page concurrently, normalizes the results, and writes
  the surviving batch to the message store.

Why:
  Gmail hands out message ids in pages and metadata one message at a time,
  under per-user quotas. Ingestion therefore has to be sequential across pages
  (so the store grows monotonically and a failure never loses stored pages),
  concurrent within a page (or a large mailbox takes hours), tolerant of bad
  individual messages, and polite when throttled.

How:
  - ``fetch_and_store`` loops over pages; a rate-limited page is retried after
    :func:`~mailstats.core.backoff.backoff_delay` until ``max_retries`` is
    exhausted. Any other provider error halts the run.
  - Detail fetches run on a :class:`~concurrent.futures.ThreadPoolExecutor`
    sized to the page and are joined in reference order before the upsert.
  - Each detail is normalized independently; failures are logged and dropped.
  - The next page is requested only after ``inter_page_delay_s``.
  - A :class:`threading.Event` stop signal is checked before each stage and
    after each wait; the default ``sleep`` is the event's ``wait`` so a stop
    request also cuts a pending delay short.

Interfaces:
  :class:`FetchPipeline`.

Invariants & Safety:
  - The next page is never requested before the current batch is upserted.
  - Storage failures are reported and re-raised; they are never retried.
  - A failed detail fetch, whatever the exception, drops that message only.
  - Status text is for display; the structured outcome is the returned
    :class:`~mailstats.core.status.SyncResult`.
"""
from __future__ import annotations

import random
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Tuple

from ..gmail.normalize import normalize
from ..utils.ids import new_run_id
from ..utils.logging import JsonLogger, get_logger
from .backoff import backoff_delay
from .errors import ErrorKind, MailStatsError, ProviderError, RateLimitError, StorageError
from .status import LoggingStatusReporter, Phase, StatusReporter, SyncResult


class FetchPipeline:
    """Sequential page walker feeding the message store.

    What:
      Owns one ingestion run: provider calls, normalization, storage and status
      reporting.

    Why:
      The host application starts a sync and wants a single call that either
      completes, fails with a structured reason, or stops when asked.

    How:
      Collaborators are injected: the provider client, the store, the fetch
      settings, the status reporter, the logger, and the ``sleep``/``rng``
      hooks used for waits and jitter.

    Attributes:
      run_id: Identifier attached to every log line of this pipeline.
      result: Outcome of the latest ``fetch_and_store`` call.
    """

    def __init__(
        self,
        provider: Any,
        store: Any,
        *,
        settings: Any,
        reporter: Optional[StatusReporter] = None,
        logger: Optional[JsonLogger] = None,
        sleep: Optional[Callable[[float], Any]] = None,
        rng: Callable[[], float] = random.random,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        """Wire the pipeline to its collaborators.

        Args:
          provider: :class:`~mailstats.gmail.client.MessageProvider`.
          store: :class:`~mailstats.store.message_store.MessageStore` or any
            object exposing ``bulk_upsert``.
          settings: :class:`~mailstats.config.schema.FetchSettings`.
          reporter: Status sink; defaults to a logging reporter.
          logger: Structured logger; defaults to ``mailstats.pipeline``.
          sleep: Wait function taking seconds; defaults to the stop event's
            ``wait``.
          rng: Uniform ``[0, 1)`` source for backoff jitter.
          stop_event: Shared stop signal; a private one is created if omitted.
            A private event is cleared once a run has been cancelled, so the
            pipeline can run again; a shared one is left to its owner.
        """

        self.provider = provider
        self.store = store
        self.settings = settings
        self.logger = logger or get_logger("mailstats.pipeline")
        self.reporter = reporter or LoggingStatusReporter(self.logger)
        self._owns_stop_event = stop_event is None
        self.stop_event = stop_event or threading.Event()
        self._sleep = sleep or self.stop_event.wait
        self._rng = rng
        self.run_id = new_run_id()
        self.result = SyncResult()

    @classmethod
    def from_runtime(cls, runtime: Any, provider: Any, store: Any, **kwargs: Any) -> "FetchPipeline":
        """Build a pipeline using ``runtime.fetch`` as its settings."""

        return cls(provider, store, settings=runtime.fetch, **kwargs)

    def stop(self) -> None:
        """Ask a running ``fetch_and_store`` to stop at the next stage boundary.

        Without an active run, the next run is cancelled before its first call.
        """

        self.stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self.stop_event.is_set()

    def _emit(self, phase: Phase, text: str, *, error_kind: Optional[ErrorKind] = None) -> None:
        self.result.phase = phase
        self.result.message = text
        if error_kind is not None:
            self.result.error_kind = error_kind
        self.reporter.report(text)

    def _cancelled(self) -> bool:
        if not self.stop_requested:
            return False
        self.logger.info("sync_cancelled", run_id=self.run_id, pages=self.result.pages)
        self._emit(Phase.CANCELLED, "Sync cancelled.")
        if self._owns_stop_event:
            self.stop_event.clear()
        return True

    def _wait(self, seconds: float) -> bool:
        """Wait ``seconds``; return ``True`` when the run should stop afterwards."""

        self._sleep(seconds)
        return self._cancelled()

    def fetch_and_store(self, page_token: Optional[str] = None, retry_count: int = 0) -> SyncResult:
        """Ingest every page starting at ``page_token``.

        What:
          Runs the page loop until the provider has no more pages, a terminal
          error occurs, or a stop is requested.

        Why:
          ``page_token`` and ``retry_count`` let a host resume a previous run
          from a known page; both default to a fresh sync.

        How:
          See the module docstring. ``retry_count`` applies to the first page
          only and resets to ``0`` after each successfully stored page.

        Args:
          page_token: Continuation token to start from.
          retry_count: Rate-limit retries already spent on that page.

        Returns:
          :class:`SyncResult` with the terminal phase and counters.

        Raises:
          StorageError: When the store rejects a batch.
        """

        self.result = SyncResult()
        settings = self.settings
        first_page = page_token is None
        self.logger.info("sync_started", run_id=self.run_id, resume=not first_page)
        while True:
            if self._cancelled():
                return self.result
            if page_token is None and retry_count == 0:
                self._emit(Phase.FETCHING, "Fetching messages...")
            else:
                self._emit(Phase.FETCHING, f"Fetching next page of messages... (Retry: {retry_count})")
            try:
                page = self.provider.list_message_refs(
                    page_token=page_token,
                    page_size=settings.page_size,
                    query=settings.query,
                )
            except RateLimitError as exc:
                if retry_count < settings.max_retries:
                    delay = backoff_delay(
                        retry_count,
                        base=settings.backoff_base,
                        jitter=settings.jitter_s,
                        rng=self._rng,
                    )
                    self.logger.warning(
                        "rate_limited", run_id=self.run_id, retry=retry_count + 1, delay_s=round(delay, 3)
                    )
                    self._emit(Phase.RATE_LIMITED, f"Rate limited. Retrying in {round(delay)} seconds...")
                    if self._wait(delay):
                        return self.result
                    retry_count += 1
                    continue
                self.logger.error("rate_limit_exhausted", run_id=self.run_id, retries=retry_count)
                self._emit(
                    Phase.ERROR,
                    f"Rate limited. Max retries reached for this page. Error: {exc}",
                    error_kind=ErrorKind.RATE_LIMIT,
                )
                return self.result
            except ProviderError as exc:
                self.logger.error("list_failed", run_id=self.run_id, error=str(exc), status=exc.status)
                self._emit(Phase.ERROR, f"Error listing messages: {exc}", error_kind=ErrorKind.PROVIDER)
                return self.result

            if not page.message_ids:
                text = "No messages found in your inbox." if first_page else "No more messages found on subsequent pages."
                self.logger.info("sync_empty_page", run_id=self.run_id, first_page=first_page)
                self._emit(Phase.COMPLETED, text)
                return self.result

            self._emit(
                Phase.FETCHING,
                f"Found {len(page.message_ids)} message metadata entries. Fetching details...",
            )
            if self._cancelled():
                return self.result
            records, dropped = self._fetch_details(page.message_ids)

            if self._cancelled():
                return self.result
            self._emit(Phase.STORING, f"Storing {len(records)} fetched and parsed messages...")
            try:
                stored = self.store.bulk_upsert(records)
            except StorageError as exc:
                self.logger.error("store_failed", run_id=self.run_id, batch=len(records), error=str(exc))
                self._emit(Phase.ERROR, f"Error storing messages: {exc}", error_kind=ErrorKind.STORAGE)
                raise
            self.result.pages += 1
            self.result.stored += stored
            self.result.dropped += dropped
            self.logger.info(
                "page_stored",
                run_id=self.run_id,
                page=self.result.pages,
                stored=stored,
                dropped=dropped,
            )

            if not page.next_page_token:
                self._emit(Phase.COMPLETED, "All messages fetched and stored.")
                self.logger.info(
                    "sync_completed",
                    run_id=self.run_id,
                    pages=self.result.pages,
                    stored=self.result.stored,
                    dropped=self.result.dropped,
                )
                return self.result

            delay = settings.inter_page_delay_s
            self._emit(Phase.FETCHING, f"Batch stored. Fetching next page of messages in {round(delay)} seconds...")
            if self._wait(delay):
                return self.result
            page_token = page.next_page_token
            retry_count = 0
            first_page = False

    def _fetch_details(self, message_ids: List[str]) -> Tuple[List[Any], int]:
        """Fetch and normalize every id concurrently; return ``(records, dropped)``."""

        with ThreadPoolExecutor(max_workers=len(message_ids)) as executor:
            results = list(executor.map(self._fetch_one, message_ids))
        records = [record for record in results if record is not None]
        return records, len(results) - len(records)

    def _fetch_one(self, message_id: str) -> Any:
        try:
            raw = self.provider.get_metadata(message_id)
        except MailStatsError as exc:
            self.logger.warning(
                "detail_fetch_failed",
                run_id=self.run_id,
                message_id=message_id,
                kind=exc.kind.value,
                error=str(exc),
            )
            return None
        except Exception as exc:
            self.logger.warning(
                "detail_fetch_failed",
                run_id=self.run_id,
                message_id=message_id,
                kind=ErrorKind.PROVIDER.value,
                error=f"{type(exc).__name__}: {exc}",
            )
            return None
        return normalize(raw, logger=self.logger)
