# src/mintpass_challenge/db/time.py
"""Clock used for token usage records."""

import time


def now_seconds() -> int:
    """Return the current wall-clock time in whole seconds since the epoch."""
    return int(time.time())
