"""Integration tests.

End-to-end deploy, forward and upgrade flows across several modules.
Run only the fast unit tests with ``pytest tests/unit/``.
"""
from __future__ import annotations
