"""Backoff delay computation for rate-limited provider calls.

What:
  Provide :func:`backoff_delay`, the wait applied before retrying a page after
  the provider answered with a rate-limit error.

Why:
  Gmail quotas are per user and per second; retrying immediately just burns
  more quota. Exponential growth with random jitter spreads retries out while a
  fixed retry cap (enforced by the pipeline) keeps the total wait bounded.

How:
  ``base ** retry_count`` seconds plus ``jitter * rng()`` where ``rng`` returns a
  float in ``[0, 1)``. ``rng`` is injectable so tests get exact delays.
"""
from __future__ import annotations

import random
from typing import Callable


def backoff_delay(
    retry_count: int,
    *,
    base: float = 2.0,
    jitter: float = 1.0,
    rng: Callable[[], float] = random.random,
) -> float:
    """Return the delay in seconds before retry number ``retry_count + 1``.

    Args:
      retry_count: Retries already attempted for this page (zero-indexed).
      base: Exponential growth base.
      jitter: Upper bound of the random component, in seconds.
      rng: Source of uniform floats in ``[0, 1)``.

    Returns:
      Delay in seconds, always ``>= 1``.
    """

    return base ** max(retry_count, 0) + jitter * rng()
