"""Aggregated exports for the ingestion and statistics core.

What:
  Provide a package facade exposing the fetch pipeline, the aggregation engine,
  the sorted map container, status types and the error taxonomy.

Why:
  The pipeline pulls in the Gmail normalizer, which in turn depends on the
  store's record type, while the store depends on the error taxonomy defined
  here. Eager re-exports would turn that chain into an import cycle; resolving
  names on first access keeps ``import mailstats.core.errors`` cheap and safe.

How:
  Defines ``__all__`` explicitly and implements ``__getattr__`` to import the
  owning submodule on demand.

Interfaces:
  ``FetchPipeline``, ``generate_stats``, ``most_frequent_senders``,
  ``unique_domains``, ``Pivot``, ``StatsView``, ``BY_RECIPIENT``,
  ``BY_DOMAIN``, ``AggregationNode``, ``SortedMap``, ``Phase``,
  ``StatusReporter``, ``SyncResult``, ``ErrorKind`` and the error classes.

Invariants & Safety:
  - ``__getattr__`` only exposes names from ``__all__``; anything else raises
    :class:`AttributeError`.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "FetchPipeline",
    "generate_stats",
    "most_frequent_senders",
    "unique_domains",
    "Pivot",
    "StatsView",
    "BY_RECIPIENT",
    "BY_DOMAIN",
    "VIEWS",
    "AggregationNode",
    "SortedMap",
    "backoff_delay",
    "Phase",
    "StatusReporter",
    "LoggingStatusReporter",
    "SyncResult",
    "ErrorKind",
    "MailStatsError",
    "RateLimitError",
    "ProviderError",
    "MalformedMessageError",
    "StorageError",
]

_OWNERS = {
    "FetchPipeline": "pipeline",
    "generate_stats": "aggregate",
    "most_frequent_senders": "aggregate",
    "unique_domains": "aggregate",
    "Pivot": "aggregate",
    "StatsView": "aggregate",
    "BY_RECIPIENT": "aggregate",
    "BY_DOMAIN": "aggregate",
    "VIEWS": "aggregate",
    "AggregationNode": "aggregate",
    "SortedMap": "sorted_map",
    "backoff_delay": "backoff",
    "Phase": "status",
    "StatusReporter": "status",
    "LoggingStatusReporter": "status",
    "SyncResult": "status",
    "ErrorKind": "errors",
    "MailStatsError": "errors",
    "RateLimitError": "errors",
    "ProviderError": "errors",
    "MalformedMessageError": "errors",
    "StorageError": "errors",
}


def __getattr__(name: str) -> Any:
    """Import the submodule owning ``name`` and return the attribute.

    Raises:
      AttributeError: If ``name`` is not part of the public surface.
    """

    owner = _OWNERS.get(name)
    if owner is None:
        raise AttributeError(name)
    from importlib import import_module

    module = import_module(f"{__name__}.{owner}")
    return getattr(module, name)
