from collections import deque
from typing import List

from .samples import Sample


class SampleHistory:
    """Bounded FIFO of recent samples in arrival order."""

    def __init__(self, capacity: int = 500):
        self.capacity = capacity
        self._samples: deque[Sample] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._samples)

    def append(self, sample: Sample) -> None:
        # deque drops from the head once maxlen is reached
        self._samples.append(sample)

    def recent(self, window: float, now: float) -> List[Sample]:
        """Samples with timestamp >= now - window, oldest first."""
        cutoff = now - window
        return [s for s in self._samples if s.timestamp >= cutoff]

    def snapshot(self) -> List[Sample]:
        return list(self._samples)

    def clear(self) -> None:
        self._samples.clear()
