"""
A capacity-bounded, ordered buffer of human-readable session log lines.
"""

from collections import deque
from typing import Iterator

DEFAULT_LOG_CAPACITY = 400


class LogBuffer:
    """
    Append-only line buffer; the oldest lines are evicted once `capacity` is reached.

    Callers format lines fully before appending. No timestamps or
    deduplication are added here.
    """

    def __init__(self, capacity: int = DEFAULT_LOG_CAPACITY):
        if capacity < 1:
            raise ValueError("Log buffer capacity must be at least 1.")
        self.capacity = capacity
        self._lines: deque[str] = deque(maxlen=capacity)

    def append(self, line: str) -> None:
        self._lines.append(line)

    def clear(self) -> None:
        self._lines.clear()

    @property
    def lines(self) -> list[str]:
        """A snapshot of the current lines, oldest first."""
        return list(self._lines)

    def tail(self, count: int) -> list[str]:
        """Returns up to `count` of the most recent lines, oldest first."""
        if count <= 0:
            return []
        return list(self._lines)[-count:]

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._lines))
