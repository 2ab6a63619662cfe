"""SQLite-backed message store with compound indexes for ordered scans.

What:
  Persist :class:`~mailstats.store.records.MessageRecord` rows keyed by message
  id and expose the three operations the rest of the system relies on:
  idempotent bulk upsert, lazy ordered scans over declared indexes, and the
  distinct values of a single-field index.

Why:
  The aggregation engine groups records in a single pass by reading them in
  index order, so every row sharing a key prefix arrives contiguously. SQLite
  gives us exactly that through ``ORDER BY`` on an indexed column tuple, without
  loading the table into memory.

How:
  - One ``messages`` table; ``id`` is the primary key.
  - Indexes are declared in :data:`INDEXES` using the logical field names
    (``to``, ``domain``, ``from``, ``subject``) and created on open.
  - :meth:`MessageStore.bulk_upsert` runs ``INSERT ... ON CONFLICT(id) DO
    UPDATE`` for the whole batch inside one transaction.
  - :meth:`MessageStore.ordered_scan` validates the key path eagerly and then
    returns a generator bound to a fresh cursor, so each call restarts the
    scan from the beginning.

Interfaces:
  :data:`INDEXES`, :data:`FIELD_COLUMNS`, :class:`MessageStore`,
  :func:`open_store`.

Invariants & Safety:
  - Re-upserting an existing id overwrites the row; it never duplicates it.
  - Driver errors surface as :class:`~mailstats.core.errors.StorageError`.
  - Scans only ever read; they never observe a half-applied batch because each
    upsert commits atomically.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from ..core.errors import StorageError
from ..utils.logging import JsonLogger, get_logger
from ..utils.sqlcipher import DATABASE_ERRORS, open_database
from .records import COLUMNS, MessageRecord

FIELD_COLUMNS: Dict[str, str] = {
    "id": "id",
    "to": "to_address",
    "domain": "domain",
    "from": "from_address",
    "subject": "subject",
    "received_at": "received_at",
}

INDEXES: Dict[Tuple[str, ...], str] = {
    ("to",): "idx_messages_to",
    ("domain",): "idx_messages_domain",
    ("from",): "idx_messages_from",
    ("to", "domain", "from"): "idx_messages_to_domain_from",
    ("domain", "from", "subject"): "idx_messages_domain_from_subject",
}

KeyPath = Union[str, Sequence[str]]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    to_address TEXT NOT NULL,
    domain TEXT NOT NULL,
    from_address TEXT NOT NULL,
    subject TEXT NOT NULL,
    received_at TEXT
)
"""

_UPSERT = (
    f"INSERT INTO messages ({', '.join(COLUMNS)}) VALUES ({', '.join('?' for _ in COLUMNS)}) "
    "ON CONFLICT(id) DO UPDATE SET "
    + ", ".join(f"{column} = excluded.{column}" for column in COLUMNS if column != "id")
)


def resolve_key_path(key_path: KeyPath) -> Tuple[str, ...]:
    """Turn ``"[to+domain+from]"``, ``"to+domain+from"`` or a sequence into a field tuple.

    Raises:
      KeyError: If no index is declared for the resulting key path.
    """

    if isinstance(key_path, str):
        fields = tuple(part.strip() for part in key_path.strip("[]").split("+"))
    else:
        fields = tuple(key_path)
    if fields not in INDEXES:
        raise KeyError(f"no index declared for key path {'+'.join(fields)!r}")
    return fields


class MessageStore:
    """Id-keyed message table with ordered, restartable index scans.

    What:
      Own one DB-API connection and the ``messages`` table schema.

    Why:
      The fetch pipeline writes through :meth:`bulk_upsert` while the
      aggregation engine reads through :meth:`ordered_scan`; keeping both behind
      one object means neither needs to know SQL.

    How:
      The constructor opens (or accepts) a connection and creates the table and
      indexes if missing. Methods translate driver errors into
      :class:`StorageError`.
    """

    def __init__(
        self,
        path: Union[str, Path] = ":memory:",
        *,
        key: Optional[str] = None,
        pragmas: Optional[Dict[str, str]] = None,
        connection: Any = None,
        logger: Optional[JsonLogger] = None,
    ) -> None:
        """Open the store at ``path`` and ensure the schema exists.

        Args:
          path: Database file, or ``":memory:"`` for a transient store.
          key: Optional SQLCipher secret; enables encryption at rest.
          pragmas: Extra PRAGMA directives applied after opening.
          connection: Pre-opened DB-API connection; overrides ``path``/``key``.
          logger: Structured logger; defaults to the ``mailstats.store``
            component.
        """

        self._logger = logger or get_logger("mailstats.store")
        if connection is None:
            target = str(path)
            if target != ":memory:":
                Path(target).parent.mkdir(parents=True, exist_ok=True)
            connection = open_database(target, key=key, pragmas=pragmas)
        self._connection = connection
        self._create_schema()

    def __enter__(self) -> "MessageStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._connection.close()

    def _create_schema(self) -> None:
        try:
            with self._connection:
                self._connection.execute(_SCHEMA)
                for fields, name in INDEXES.items():
                    columns = ", ".join(FIELD_COLUMNS[field] for field in fields)
                    self._connection.execute(
                        f"CREATE INDEX IF NOT EXISTS {name} ON messages ({columns})"
                    )
        except DATABASE_ERRORS as exc:
            raise StorageError(f"unable to initialise message store: {exc}") from exc

    def bulk_upsert(self, records: Iterable[MessageRecord]) -> int:
        """Insert or overwrite ``records`` in a single transaction.

        What:
          Writes every record; an existing id has its row replaced.

        Why:
          A page may be fetched twice (retry after a crash, a second sync run).
          Keying on the provider id makes the write idempotent so statistics
          never double count.

        How:
          ``executemany`` of the upsert statement inside ``with connection`` so
          the batch commits or rolls back as a whole.

        Args:
          records: Validated message records.

        Returns:
          Number of records written.

        Raises:
          StorageError: If the driver rejects the batch.
        """

        rows = [record.as_row() for record in records]
        if not rows:
            return 0
        try:
            with self._connection:
                self._connection.executemany(_UPSERT, rows)
        except DATABASE_ERRORS as exc:
            self._logger.error("bulk_upsert_failed", batch=len(rows), error=str(exc))
            raise StorageError(f"bulk upsert of {len(rows)} records failed: {exc}") from exc
        self._logger.debug("bulk_upsert", batch=len(rows))
        return len(rows)

    def ordered_scan(self, key_path: KeyPath) -> Iterator[Tuple[str, ...]]:
        """Yield index tuples in ascending lexicographic order.

        What:
          Lazily stream the field values of ``key_path`` for every stored
          message, ordered by the same tuple.

        Why:
          Contiguous prefixes are what make single-pass grouping possible; the
          laziness keeps memory flat on large mailboxes.

        How:
          Validate the key path now (so a typo fails at the call site), then
          hand back a generator that opens its own cursor on first ``next``.

        Args:
          key_path: Declared index, e.g. ``("to", "domain", "from")`` or
            ``"[to+domain+from]"``.

        Returns:
          Iterator of tuples, one per message.

        Raises:
          KeyError: If ``key_path`` is not a declared index.
        """

        fields = resolve_key_path(key_path)
        columns = ", ".join(FIELD_COLUMNS[field] for field in fields)
        return self._iterate(f"SELECT {columns} FROM messages ORDER BY {columns}")

    def _iterate(self, sql: str) -> Iterator[Tuple[str, ...]]:
        try:
            cursor = self._connection.execute(sql)
        except DATABASE_ERRORS as exc:
            raise StorageError(f"ordered scan failed: {exc}") from exc
        try:
            while True:
                try:
                    row = cursor.fetchone()
                except DATABASE_ERRORS as exc:
                    raise StorageError(f"ordered scan failed: {exc}") from exc
                if row is None:
                    return
                yield tuple(row)
        finally:
            cursor.close()

    def unique_keys(self, field: str) -> List[str]:
        """Return the distinct non-empty values of single-field index ``field``, ascending."""

        (name,) = resolve_key_path((field,))
        column = FIELD_COLUMNS[name]
        sql = (
            f"SELECT DISTINCT {column} FROM messages "
            f"WHERE {column} IS NOT NULL AND {column} != '' ORDER BY {column}"
        )
        return [row[0] for row in self._iterate(sql)]

    def count(self) -> int:
        try:
            (total,) = self._connection.execute("SELECT COUNT(*) FROM messages").fetchone()
        except DATABASE_ERRORS as exc:
            raise StorageError(f"count failed: {exc}") from exc
        return int(total)

    def get(self, message_id: str) -> Optional[MessageRecord]:
        try:
            row = self._connection.execute(
                f"SELECT {', '.join(COLUMNS)} FROM messages WHERE id = ?", (message_id,)
            ).fetchone()
        except DATABASE_ERRORS as exc:
            raise StorageError(f"lookup of {message_id} failed: {exc}") from exc
        return MessageRecord.from_row(row) if row else None

    def records(self) -> Iterator[MessageRecord]:
        """Yield every stored record ordered by id."""

        sql = f"SELECT {', '.join(COLUMNS)} FROM messages ORDER BY id"
        for row in self._iterate(sql):
            yield MessageRecord.from_row(row)


def open_store(runtime: Any, *, logger: Optional[JsonLogger] = None) -> MessageStore:
    """Build a :class:`MessageStore` from the runtime configuration.

    What:
      Resolve the database path against ``paths.state_dir`` and read the
      encryption key file when one is configured.

    Why:
      Hosts should not duplicate path and key handling; the configuration is
      the single place where storage is described.

    How:
      Relative ``store.path`` values are joined to ``paths.state_dir``; the key
      file is read as UTF-8 and stripped of surrounding whitespace.

    Args:
      runtime: Validated :class:`~mailstats.config.schema.RuntimeConfig`.
      logger: Optional structured logger forwarded to the store.

    Returns:
      Open :class:`MessageStore`.
    """

    settings = runtime.store
    path = Path(settings.path).expanduser()
    if settings.path != ":memory:" and not path.is_absolute():
        path = Path(runtime.paths.state_dir).expanduser() / path
    key = None
    if settings.encryption_key_path:
        key = Path(settings.encryption_key_path).expanduser().read_text(encoding="utf-8").strip()
    target = ":memory:" if settings.path == ":memory:" else path
    return MessageStore(target, key=key, pragmas=settings.pragmas or None, logger=logger)
