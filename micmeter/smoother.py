"""Fixed-depth moving average used to calm the published measurements."""

from __future__ import annotations

from collections import deque
from typing import Optional


class Smoother:
    """Moving average over the ``capacity`` most recent values.

    Each measurement stream owns its own instance so histories never leak
    between streams or sessions.

    Parameters
    ----------
    capacity:
        Maximum number of values kept.  The oldest value is evicted once
        the history is full.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity: int = int(capacity)
        self._history: deque[float] = deque(maxlen=self.capacity)

    def push(self, value: float) -> float:
        """Append ``value`` and return the mean of the current history."""
        self._history.append(float(value))
        return sum(self._history) / len(self._history)

    @property
    def value(self) -> Optional[float]:
        """Current mean, or ``None`` before the first push."""
        if not self._history:
            return None
        return sum(self._history) / len(self._history)

    def reset(self) -> None:
        self._history.clear()

    def __len__(self) -> int:
        return len(self._history)


__all__ = ["Smoother"]
