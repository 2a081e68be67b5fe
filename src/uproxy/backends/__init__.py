"""Reference backend modules."""
from __future__ import annotations

from uproxy.backends.counter import CounterV1, CounterV2

__all__ = ["CounterV1", "CounterV2"]
