"""Pytest fixtures for unit tests built on the in-memory fakes.

What:
  Make ``tests/unit`` importable so tests can ``from fakes import ...`` and
  expose fixtures for a fresh in-memory store, a captured logger and fast
  fetch settings.

Why:
  Nearly every unit test needs a store and a logger; building them here keeps
  the tests focused on behaviour and guarantees no state leaks between them.

Interfaces:
  :func:`store`, :func:`log_stream`, :func:`logger`, :func:`fetch_settings`.
"""

import io
import sys
from pathlib import Path

import pytest

UNIT_DIR = Path(__file__).resolve().parent
if str(UNIT_DIR) not in sys.path:
    sys.path.insert(0, str(UNIT_DIR))

from mailstats.config.schema import FetchSettings
from mailstats.store.message_store import MessageStore
from mailstats.utils.logging import JsonLogger


@pytest.fixture
def log_stream():
    return io.StringIO()


@pytest.fixture
def logger(log_stream):
    return JsonLogger(stream=log_stream, component="test")


@pytest.fixture
def store(logger):
    """Yield an in-memory :class:`MessageStore` closed after the test."""

    with MessageStore(":memory:", logger=logger) as message_store:
        yield message_store


@pytest.fixture
def fetch_settings():
    """Fetch settings with a tiny page size and deterministic backoff."""

    return FetchSettings(page_size=3, max_retries=5, jitter_s=1.0, inter_page_delay_s=30)
