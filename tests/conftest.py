"""Pytest configuration shared by the unit and end-to-end suites.

What:
  Establish project import paths and apply a canned runtime configuration to
  every test.

Why:
  Tests must import the ``mailstats`` package from the source tree rather than
  an installed wheel, and the runtime configuration is cached globally, so
  each test needs a known starting point.

How:
  Prepend ``mailstats/src`` to ``sys.path`` when present and define
  :func:`runtime_config`, which pins ``MAILSTATS_CONFIG_PATH`` to
  ``tests/data/config.yaml`` and resets the cache before and after each test.

Interfaces:
  :func:`runtime_config` (pytest fixture).
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "mailstats" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from mailstats.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Apply the canned configuration file for every test.

    Args:
      monkeypatch: Pytest helper injected automatically for environment control.
    """

    monkeypatch.setenv("MAILSTATS_CONFIG_PATH", str(CONFIG_PATH))
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
