"""mailstats configuration package.

What:
  Provide the import surface for configuration loading, validation and the
  sync status snapshot.

Why:
  Centralising the exports keeps callers on the validated path: every setting
  passes through the schema types before the pipeline or the store sees it.

Interfaces:
  - get_runtime_config / load_runtime_config / reset_runtime_config: Resolve
    ``config.yaml`` and expose a cached runtime configuration object.
  - load_status / dump_status: Manage the ``status.yaml`` document.
  - SyncStatusStore: Persisting status reporter.
  - RuntimeConfig / FetchSettings / SyncStatus / ValidationError: Pydantic
    models and error type.
"""

from .loader import (
    ConfigLoadError,
    RuntimeConfigError,
    dump_status,
    get_runtime_config,
    load_runtime_config,
    load_status,
    reset_runtime_config,
)
from .schema import FetchSettings, GmailSettings, RuntimeConfig, StoreSettings, SyncStatus, ValidationError
from .status_store import SyncStatusStore

__all__ = [
    "ConfigLoadError",
    "RuntimeConfigError",
    "dump_status",
    "get_runtime_config",
    "load_runtime_config",
    "load_status",
    "reset_runtime_config",
    "FetchSettings",
    "GmailSettings",
    "RuntimeConfig",
    "StoreSettings",
    "SyncStatus",
    "SyncStatusStore",
    "ValidationError",
]
