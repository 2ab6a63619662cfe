"""Expose the public utility surface for mailstats.

What:
  Re-export logging, identifier and database connection helpers.

Why:
  Downstream modules import ``from mailstats.utils import get_logger`` without
  depending on the file layout.

Interfaces:
  ``JsonLogger``, ``get_logger``, ``new_run_id``, ``SqlCipherUnavailable``,
  ``open_database`` and ``open_encrypted_database``.
"""

from .logging import JsonLogger, get_logger
from .ids import new_run_id
from .sqlcipher import SqlCipherUnavailable, open_database, open_encrypted_database

__all__ = [
    "JsonLogger",
    "get_logger",
    "new_run_id",
    "SqlCipherUnavailable",
    "open_database",
    "open_encrypted_database",
]
