"""SQLite connection helpers with optional SQLCipher encryption.

What:
  Open the connection backing the message store, either as a plain
  :mod:`sqlite3` database or, when a key is supplied, as an encrypted database
  through :mod:`pysqlcipher3`.

Why:
  Message metadata (who writes to whom, and about what) is personal data. Users
  who configure a key get encryption at rest; everyone else still gets a working
  store without installing the SQLCipher bindings.

How:
  Attempt to import :mod:`pysqlcipher3` at import time. :func:`open_database`
  dispatches on ``key``: ``None`` opens :func:`sqlite3.connect`, anything else
  goes through :func:`open_encrypted_database`, which issues ``PRAGMA key``
  before any other statement. Caller-supplied PRAGMAs run on both paths.

Interfaces:
  :data:`DATABASE_ERRORS`, :class:`SqlCipherUnavailable`,
  :func:`open_encrypted_database`, :func:`open_database`.

Invariants & Safety:
  - An encrypted connection is only returned once ``PRAGMA key`` has run.
  - Requesting encryption without the driver raises instead of silently falling
    back to plaintext.
  - PRAGMAs are executed verbatim; values come from validated configuration.
"""
from __future__ import annotations

import sqlite3
from typing import Any, Dict, Optional, Tuple, Type

try:  # pragma: no cover - optional dependency
    from pysqlcipher3 import dbapi2 as sqlcipher
except ImportError:  # pragma: no cover
    sqlcipher = None  # type: ignore[assignment]


DATABASE_ERRORS: Tuple[Type[Exception], ...] = (sqlite3.Error,)
if sqlcipher is not None:  # pragma: no cover - depends on optional driver
    DATABASE_ERRORS += (sqlcipher.Error,)


class SqlCipherUnavailable(RuntimeError):
    """Raised when an encrypted store is requested but :mod:`pysqlcipher3` is missing."""


def _apply_pragmas(connection: Any, pragmas: Optional[Dict[str, str]]) -> None:
    for pragma, value in (pragmas or {}).items():
        connection.execute(f"PRAGMA {pragma} = {value}")


def open_encrypted_database(
    path: str,
    *,
    key: str,
    pragmas: Optional[Dict[str, str]] = None,
) -> Any:
    """Open an encrypted SQLite database guarded by SQLCipher.

    Args:
      path: Filesystem path of the database file.
      key: Secret used to derive the SQLCipher encryption key.
      pragmas: Optional extra PRAGMA directives (e.g.
        ``{"cipher_memory_security": "ON"}``).

    Returns:
      Open SQLCipher connection.

    Raises:
      SqlCipherUnavailable: If ``pysqlcipher3`` is not installed.
    """

    if sqlcipher is None:
        raise SqlCipherUnavailable("SQLCipher driver pysqlcipher3 is required for encrypted stores")
    connection = sqlcipher.connect(path)
    # PRAGMA statements do not accept bound parameters.
    quoted = key.replace("'", "''")
    connection.execute(f"PRAGMA key = '{quoted}'")
    _apply_pragmas(connection, pragmas)
    return connection


def open_database(
    path: str,
    *,
    key: Optional[str] = None,
    pragmas: Optional[Dict[str, str]] = None,
) -> Any:
    """Open the store database, encrypted when ``key`` is given.

    What:
      Return a DB-API connection for ``path``.

    Why:
      :class:`~mailstats.store.message_store.MessageStore` should not care
      whether encryption is enabled; both connection types speak the same
      DB-API dialect.

    How:
      Delegate to :func:`open_encrypted_database` when ``key`` is set, otherwise
      use :func:`sqlite3.connect` and apply ``pragmas``.

    Args:
      path: Database path, or ``":memory:"``.
      key: Optional encryption secret.
      pragmas: Optional PRAGMA directives.

    Returns:
      Open connection.
    """

    if key is not None:
        return open_encrypted_database(path, key=key, pragmas=pragmas)
    connection = sqlite3.connect(path)
    _apply_pragmas(connection, pragmas)
    return connection
