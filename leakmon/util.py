from __future__ import annotations

import time


def now_s() -> float:
    """Monotonic clock in seconds."""
    return time.monotonic()


def wall_s() -> float:
    """Wall-clock seconds since the epoch (for timestamps shown to people)."""
    return time.time()


def iso_ms(t: float) -> str:
    """Local timestamp with milliseconds, e.g. 2024-01-05 12:00:01.250."""
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(t)) + f".{int((t - int(t)) * 1000):03d}"
