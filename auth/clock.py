"""auth/clock.py -- Wall-clock source shared by the token, refresh and limiter components.

Each component accepts a `clock` callable so tests can drive time explicitly.
"""

from __future__ import annotations

import time
from collections.abc import Callable

Clock = Callable[[], int]


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000
