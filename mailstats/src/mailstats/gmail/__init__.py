"""Facade for the Gmail integration layer.

What:
  Surface the provider protocol, the Gmail adapter and the normalizer.

Invariants & Safety:
  - All provider access goes through :class:`GmailProvider` (or another
    :class:`MessageProvider`) so error translation stays uniform.
"""

from .client import GmailProvider, MessagePage, MessageProvider
from .normalize import extract_address, normalize, parse_domain

__all__ = [
    "GmailProvider",
    "MessagePage",
    "MessageProvider",
    "extract_address",
    "normalize",
    "parse_domain",
]
