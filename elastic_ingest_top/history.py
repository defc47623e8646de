"""Bounded FIFO history used for sparklines and the moving average."""

from collections import deque
from typing import Iterable, Iterator, List


class RingBuffer:
    """
    Fixed-capacity sequence of floats.

    Appending to a full buffer silently evicts the oldest value, so
    ``len(buffer) <= capacity`` always holds.
    """

    def __init__(self, capacity: int, values: Iterable[float] = ()):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1 (got: {capacity})")
        self._values = deque(values, maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._values.maxlen

    def append(self, value: float) -> None:
        self._values.append(float(value))

    def clear(self) -> None:
        self._values.clear()

    def mean(self) -> float:
        """Arithmetic mean of the retained values (0.0 when empty)."""
        if not self._values:
            return 0.0
        return sum(self._values) / len(self._values)

    def to_list(self) -> List[float]:
        return list(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[float]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"RingBuffer(capacity={self.capacity}, values={list(self._values)!r})"
