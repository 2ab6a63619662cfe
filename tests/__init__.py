"""Test package marker.

``tests/conftest.py`` is imported as ``tests.conftest`` so the source tree
path injection and the runtime configuration fixture apply to both the unit
and the end-to-end suites.
"""
