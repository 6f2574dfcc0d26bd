"""Staging identifier generation and validation.

Identifiers name one cache directory each and have the shape
``<YYYYMMDD>-<pid>-<random>-<counter>``. Any string matching
CACHE_ID_PATTERN is accepted back from callers, so identifiers issued by
other generators of the same shape stay valid.
"""

from __future__ import annotations

import itertools
import os
import re
import secrets
import threading
from datetime import datetime, timezone

CACHE_ID_PATTERN = re.compile(r"\d{8}-\d+-\d+-\d+", re.ASCII)

_counter = itertools.count(1)
_counter_lock = threading.Lock()


def _next_counter() -> int:
    with _counter_lock:
        return next(_counter)


def generate_cache_id(now: datetime | None = None) -> str:
    """Generate a fresh staging identifier.

    Combines the UTC date, the process id, a random number and a
    process-wide counter, so two calls in one process never collide and
    calls in different processes collide only by chance.

    Args:
        now: Override the current time (useful for testing).

    Returns:
        Identifier such as "20071201-1234-0345-0001".
    """
    now = now or datetime.now(timezone.utc)
    return "-".join([
        now.strftime("%Y%m%d"),
        str(os.getpid()),
        f"{secrets.randbelow(10000):04d}",
        f"{_next_counter():04d}",
    ])


def is_valid_cache_id(value: str) -> bool:
    """Check whether a string has the staging identifier shape."""
    return CACHE_ID_PATTERN.fullmatch(value) is not None
