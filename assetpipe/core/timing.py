"""Per-group wall-clock timings for asset runs."""

from __future__ import annotations

import time
from typing import Optional


class TimingContext:
    """Records how long the wrapped block took under `key`, even when it raises.

    Usage:
        timings = {}
        with TimingContext(timings, group.group_id):
            builder.build(group)
    """

    def __init__(self, timings: dict[str, float], key: str) -> None:
        self.timings = timings
        self.key = key
        self._start: Optional[float] = None

    def __enter__(self) -> "TimingContext":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self._start is not None:
            self.timings[self.key] = time.perf_counter() - self._start
        return False


def format_duration(seconds: float) -> str:
    """Format seconds for run reports.

    Examples:
        0.0423 -> "42ms"
        3.5 -> "3.50s"
        75.2 -> "1m 15.2s"
    """
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)}m {rest:.1f}s"


def slowest(timings: dict[str, float], count: int = 5) -> list[tuple[str, float]]:
    """The `count` longest entries, longest first."""
    return sorted(timings.items(), key=lambda item: item[1], reverse=True)[:count]
