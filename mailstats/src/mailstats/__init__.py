"""
Module: mailstats.__init__

What:
  Package exports for the Gmail sender statistics library: incremental inbox
  ingestion into a local store and hierarchical "who sends me mail" counts.

Why:
  Host applications (a browser extension backend, a desktop shell, a notebook)
  embed the library and should depend on stable subpackage names rather than on
  internal module paths.

How:
  Provide an explicit ``__all__`` listing the public subpackages. Nothing is
  imported eagerly so hosts only pay for what they use.

Interfaces:
  - config: Runtime configuration models, loader and status snapshot store.
  - core: Fetch pipeline, aggregation engine, sorted map, status and errors.
  - gmail: Provider protocol, Gmail adapter and message normalizer.
  - store: Message records and the indexed SQLite message store.
  - utils: Structured logging, database connections and identifiers.

Invariants:
  - The library only reads mail metadata; it never modifies the mailbox.
  - Message subjects and other header values never reach the logs.
"""

__all__ = [
    "config",
    "core",
    "gmail",
    "store",
    "utils",
]

__version__ = "0.1.0"
