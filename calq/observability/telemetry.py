"""
In-process telemetry for fetch, refresh and digest outcomes.

Nothing leaves the machine: events are structured log lines and counters live
in memory so the /health endpoint and tests can read them back.
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("calq.telemetry")

_COUNTERS: dict[str, int] = {}
_LAST_DURATIONS: dict[str, float] = {}
# Counters are bumped from the bridge threads and the scheduler thread
_LOCK = threading.Lock()


def log_event(event_name: str, **fields: Any) -> None:
    """
    Structured log event. Callers must not pass tokens or passwords.

    Side Effects:
        - Writes to logger (info level)
    """
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """
    Increment an in-memory counter and emit a debug log.

    Side Effects:
        - Modifies _COUNTERS dict (in-memory state)
        - Writes to logger (debug level)
    """
    with _LOCK:
        value = _COUNTERS.get(name, 0) + increment
        _COUNTERS[name] = value
    logger.debug("counter=%s value=%s", name, value)
    return value


def get_counter(name: str) -> int:
    return _COUNTERS.get(name, 0)


def snapshot() -> dict[str, Any]:
    """Copy of all counters and the most recent duration per timed block."""
    with _LOCK:
        return {"counters": dict(_COUNTERS), "last_durations": dict(_LAST_DURATIONS)}


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """
    Time a code block and remember its latest duration.

    Side Effects:
        - Updates _LAST_DURATIONS dict (in-memory state)
        - Writes to logger (debug level) with timing
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        with _LOCK:
            _LAST_DURATIONS[metric_name] = elapsed
        logger.debug("timing=%s seconds=%.6f", metric_name, elapsed)


def reset() -> None:
    """
    Clear counters and durations (used by tests).

    Side Effects:
        - Clears _COUNTERS and _LAST_DURATIONS
    """
    with _LOCK:
        _COUNTERS.clear()
        _LAST_DURATIONS.clear()
