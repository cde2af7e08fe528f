"""Timing utilities for gateway calls."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Dict, Iterator


@contextmanager
def timed_call() -> Iterator[Dict[str, int]]:
    """Yield a dict whose ``duration_ms`` is filled in when the block exits."""
    timing: Dict[str, int] = {"duration_ms": 0}
    start = time.perf_counter()
    try:
        yield timing
    finally:
        timing["duration_ms"] = int((time.perf_counter() - start) * 1000)
