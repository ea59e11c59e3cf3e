from collections import deque
from typing import Iterable, List

import numpy as np


class PeakHistory:
    """Most recent accepted peak timestamps, oldest evicted first."""

    def __init__(self, capacity: int = 10):
        self.capacity = capacity
        self._timestamps: deque[float] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._timestamps)

    def record_peak(self, timestamp: float) -> None:
        self._timestamps.append(float(timestamp))

    def timestamps(self) -> List[float]:
        return list(self._timestamps)

    def clear(self) -> None:
        self._timestamps.clear()


def estimate_bpm(timestamps: Iterable[float]) -> float:
    """Beats per minute from the mean spacing of consecutive peaks.

    Fewer than two peaks, or a non-positive mean interval, gives 0.0.
    """
    ts = np.asarray(list(timestamps), dtype=np.float64)
    if ts.size < 2:
        return 0.0
    mean_interval = float(np.diff(ts).mean())
    if not mean_interval > 0:
        return 0.0
    return 60.0 / mean_interval


class RateEstimator:
    def __init__(self, peaks: PeakHistory):
        self.peaks = peaks
        self.bpm = 0.0

    def update(self) -> float:
        self.bpm = estimate_bpm(self.peaks.timestamps())
        return self.bpm

    def reset(self) -> None:
        self.bpm = 0.0
