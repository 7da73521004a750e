"""
History Windows for Temporal Invariants

Fixed-capacity sliding windows over numeric signals, ordered oldest -> newest.

Queries used by windowed invariants:
- is_monotonic: sustained trend over the FULL window
- contiguous_segments_above: maximal runs of indices above a threshold
"""

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np

from ...core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Reserved signal name under which the commanded actuation is recorded
ACTUATION = "actuation"


class Direction(Enum):
    """Required ordering between adjacent samples."""
    NON_DECREASING = "non_decreasing"
    NON_INCREASING = "non_increasing"
    STRICTLY_INCREASING = "strictly_increasing"
    STRICTLY_DECREASING = "strictly_decreasing"

    def holds(self, older: np.ndarray, newer: np.ndarray) -> np.ndarray:
        """Element-wise check of the ordering between paired samples."""
        if self is Direction.NON_DECREASING:
            return newer >= older
        if self is Direction.NON_INCREASING:
            return newer <= older
        if self is Direction.STRICTLY_INCREASING:
            return newer > older
        return newer < older


class HistoryWindow:
    """
    Ring buffer of the most recent ``capacity`` samples.

    Pushing onto a full window evicts the oldest sample. Indices exposed by
    queries are positions in ``as_sequence()`` (0 = oldest).
    """

    def __init__(self, capacity: int, name: str = ""):
        if isinstance(capacity, bool) or not isinstance(capacity, (int, np.integer)):
            raise ConfigurationError(f"window capacity must be an integer, got {capacity!r}", field_name=name)
        if capacity <= 0:
            raise ConfigurationError(f"window capacity must be positive, got {capacity}", field_name=name)

        self.name = name
        self._capacity = int(capacity)
        self._buffer = np.zeros(self._capacity, dtype=float)
        self._head = 0  # Next write position
        self._size = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, value: float):
        """Append a sample, evicting the oldest when full."""
        self._buffer[self._head] = value
        self._head = (self._head + 1) % self._capacity
        if self._size < self._capacity:
            self._size += 1

    def as_sequence(self) -> np.ndarray:
        """Copy of the samples, oldest first."""
        if self._size < self._capacity:
            return self._buffer[:self._size].copy()
        return np.concatenate((self._buffer[self._head:], self._buffer[:self._head]))

    def is_full(self) -> bool:
        return self._size == self._capacity

    def latest(self, default: Optional[float] = None) -> Optional[float]:
        if self._size == 0:
            return default
        return float(self._buffer[(self._head - 1) % self._capacity])

    def replace_latest(self, value: float):
        """Overwrite the newest sample."""
        if self._size == 0:
            raise IndexError("window is empty")
        self._buffer[(self._head - 1) % self._capacity] = value

    def clear(self):
        self._head = 0
        self._size = 0

    def is_monotonic(self, direction: Direction) -> bool:
        """
        True when every adjacent pair satisfies ``direction``.

        A window that is not yet full never satisfies a sustained trend.
        """
        if not self.is_full():
            return False
        seq = self.as_sequence()
        return bool(np.all(direction.holds(seq[:-1], seq[1:])))

    def contiguous_segments_above(self, threshold: float) -> List[Tuple[int, int]]:
        """Maximal inclusive index ranges (i, j) where every value > threshold."""
        seq = self.as_sequence()
        if seq.size == 0:
            return []

        mask = (seq > threshold).astype(np.int8)
        edges = np.diff(np.concatenate(([0], mask, [0])))
        starts = np.flatnonzero(edges == 1)
        ends = np.flatnonzero(edges == -1) - 1
        return [(int(i), int(j)) for i, j in zip(starts, ends)]

    def __len__(self) -> int:
        return self._size

    def __getitem__(self, index: int) -> float:
        if index < 0:
            index += self._size
        if not 0 <= index < self._size:
            raise IndexError(f"window index {index} out of range")
        start = self._head if self.is_full() else 0
        return float(self._buffer[(start + index) % self._capacity])

    def __repr__(self) -> str:
        return f"HistoryWindow(name={self.name!r}, capacity={self._capacity}, values={self.as_sequence().tolist()})"


class SignalHistory(Mapping):
    """
    One HistoryWindow per tracked signal, pushed together once per tick.

    The commanded actuation is tracked under ``ACTUATION``.
    """

    def __init__(self, windows: Dict[str, int]):
        self._windows: Dict[str, HistoryWindow] = {
            name: HistoryWindow(size, name=name) for name, size in windows.items()
        }

    def record(self, sensors: Mapping, actuation: float):
        """Push this tick's value of every tracked signal."""
        for name, window in self._windows.items():
            if name == ACTUATION:
                window.push(actuation)
            else:
                window.push(sensors.get(name, float("nan")))

    def amend_actuation(self, actuation: float):
        """Overwrite this tick's recorded actuation (after self-correction)."""
        if ACTUATION in self._windows:
            self._windows[ACTUATION].replace_latest(actuation)

    def clear(self):
        for window in self._windows.values():
            window.clear()

    def __getitem__(self, name: str) -> HistoryWindow:
        return self._windows[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._windows)

    def __len__(self) -> int:
        return len(self._windows)
