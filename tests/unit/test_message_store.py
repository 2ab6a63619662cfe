"""
Module: tests/unit/test_message_store.py

What:
    Cover idempotent upserts, ordered scans, key path validation, error
    translation and the runtime-config based constructor of the store.

Why:
    Aggregation depends on scans arriving in index order and on upserts never
    duplicating rows; storage errors must surface as :class:`StorageError`.

How:
    Use the in-memory store fixture and, for the constructor helpers, a
    temporary directory.
"""

import sqlite3
from datetime import datetime, timezone

import pytest

from mailstats.config.schema import RuntimeConfig
from mailstats.core.errors import MalformedMessageError, StorageError
from mailstats.store.message_store import MessageStore, open_store, resolve_key_path
from mailstats.store.records import MessageRecord


def _record(message_id, to="me@example.org", sender="a@x.com", subject="Hi", received_at=None):
    return MessageRecord(
        id=message_id,
        from_address=sender,
        domain=sender.rsplit("@", 1)[1],
        to_address=to,
        subject=subject,
        received_at=received_at,
    )


def test_record_rejects_missing_required_fields():
    """
    What:
        Records cannot be built without id, sender, domain or recipient.

    Why:
        Invalid rows must never reach the store.
    """

    with pytest.raises(MalformedMessageError):
        MessageRecord(id="", from_address="a@x.com", domain="x.com", to_address="me", subject="")
    with pytest.raises(ValueError):
        MessageRecord(id="1", from_address="a@x.com", domain="", to_address="me", subject="")


def test_record_makes_naive_datetimes_utc():
    record = _record("1", received_at=datetime(2024, 1, 1, 12, 0))
    assert record.received_at.tzinfo is timezone.utc


def test_bulk_upsert_is_idempotent(store):
    first = [_record("1"), _record("2", sender="b@y.com")]

    assert store.bulk_upsert(first) == 2
    assert store.bulk_upsert(first) == 2
    assert store.count() == 2

    store.bulk_upsert([_record("1", subject="Updated")])
    assert store.count() == 2
    assert store.get("1").subject == "Updated"


def test_bulk_upsert_empty_batch(store):
    assert store.bulk_upsert([]) == 0
    assert store.count() == 0


def test_round_trip_preserves_fields(store):
    received = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
    record = _record("abc", received_at=received)
    store.bulk_upsert([record])

    assert store.get("abc") == record
    assert list(store.records()) == [record]
    assert store.get("missing") is None


def test_ordered_scan_is_sorted_and_restartable(store):
    store.bulk_upsert(
        [
            _record("1", to="b", sender="z@x.com"),
            _record("2", to="a", sender="y@y.com"),
            _record("3", to="a", sender="a@y.com"),
            _record("4", to="a", sender="m@x.com"),
        ]
    )

    expected = [
        ("a", "x.com", "m@x.com"),
        ("a", "y.com", "a@y.com"),
        ("a", "y.com", "y@y.com"),
        ("b", "x.com", "z@x.com"),
    ]
    assert list(store.ordered_scan(("to", "domain", "from"))) == expected
    assert list(store.ordered_scan("[to+domain+from]")) == expected
    assert [row[0] for row in store.ordered_scan(("from",))] == ["a@y.com", "m@x.com", "y@y.com", "z@x.com"]


def test_unknown_key_path_raises_key_error(store):
    with pytest.raises(KeyError):
        store.ordered_scan(("subject",))
    with pytest.raises(KeyError):
        resolve_key_path("to+from")


def test_unique_keys(store):
    store.bulk_upsert([_record("1", sender="a@y.com"), _record("2", sender="b@x.com"), _record("3", sender="c@y.com")])

    assert store.unique_keys("domain") == ["x.com", "y.com"]
    assert store.unique_keys("to") == ["me@example.org"]


class _BrokenConnection:
    def __init__(self):
        self._real = sqlite3.connect(":memory:")

    def __enter__(self):
        return self._real.__enter__()

    def __exit__(self, *exc):
        return self._real.__exit__(*exc)

    def execute(self, *args):
        return self._real.execute(*args)

    def executemany(self, *args):
        raise sqlite3.OperationalError("disk I/O error")

    def close(self):
        self._real.close()


def test_driver_errors_become_storage_errors(logger, log_stream):
    store = MessageStore(connection=_BrokenConnection(), logger=logger)

    with pytest.raises(StorageError) as excinfo:
        store.bulk_upsert([_record("1")])

    assert "disk I/O error" in str(excinfo.value)
    assert "bulk_upsert_failed" in log_stream.getvalue()
    store.close()


class _LockedCursor:
    def __init__(self):
        self.closed = False

    def fetchone(self):
        raise sqlite3.OperationalError("database is locked")

    def close(self):
        self.closed = True


class _LockedScanConnection(_BrokenConnection):
    def __init__(self):
        super().__init__()
        self.cursor = _LockedCursor()

    def execute(self, sql, *args):
        if sql.startswith("SELECT") and "ORDER BY" in sql:
            return self.cursor
        return self._real.execute(sql, *args)


def test_errors_while_reading_rows_become_storage_errors(logger):
    connection = _LockedScanConnection()
    store = MessageStore(connection=connection, logger=logger)
    rows = store.ordered_scan(("to",))

    with pytest.raises(StorageError) as excinfo:
        next(rows)

    assert "database is locked" in str(excinfo.value)
    assert connection.cursor.closed
    store.close()


def test_open_store_resolves_state_dir(tmp_path):
    runtime = RuntimeConfig.model_validate(
        {"paths": {"state_dir": str(tmp_path / "state")}, "store": {"path": "db/messages.db"}}
    )

    with open_store(runtime) as message_store:
        message_store.bulk_upsert([_record("1")])

    assert (tmp_path / "state" / "db" / "messages.db").exists()
    with open_store(runtime) as reopened:
        assert reopened.count() == 1


def test_open_store_in_memory():
    runtime = RuntimeConfig.model_validate({"store": {"path": ":memory:"}})

    with open_store(runtime) as message_store:
        assert message_store.count() == 0
