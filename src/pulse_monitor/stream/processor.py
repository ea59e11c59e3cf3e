"""Single-writer owner of all derived stream state.

Every mutation goes through `ingest` or `reset`, both serialised on one lock
together with `snapshot`, so readers on another thread never observe a
half-updated history or a peak count out of step with the BPM.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional

from ..config import StreamConfig
from ..signal.history import SampleHistory
from ..signal.peaks import PeakDetector
from ..signal.rate import PeakHistory, RateEstimator
from ..signal.samples import Sample, PeakEvent


@dataclass
class StreamSnapshot:
    voltage: float
    peak_count: int
    bpm: float
    history: List[Sample] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "voltage": self.voltage,
            "peak_count": self.peak_count,
            "bpm": self.bpm,
            "history": [s.to_dict() for s in self.history],
        }


class StreamProcessor:
    def __init__(self, cfg: StreamConfig | None = None):
        self.cfg = cfg or StreamConfig()
        self._lock = threading.Lock()
        self._history = SampleHistory(self.cfg.max_history_count)
        self._detector = PeakDetector(self.cfg.peak_threshold, self.cfg.min_peak_interval)
        self._peaks = PeakHistory(self.cfg.max_peak_timestamps)
        self._rate = RateEstimator(self._peaks)
        self._voltage = 0.0
        self._peak_count = 0

    def ingest(self, sample: Sample) -> Optional[PeakEvent]:
        """Fold one sample into the state; returns the peak it produced, if any."""
        with self._lock:
            self._voltage = sample.voltage
            self._history.append(sample)
            event = self._detector.process(sample)
            if event is not None:
                # first and later peaks take the same path into the rate buffer
                self._peak_count += 1
                self._peaks.record_peak(event.timestamp)
                self._rate.update()
            return event

    def reset(self) -> None:
        with self._lock:
            self._history.clear()
            self._detector.reset()
            self._peaks.clear()
            self._rate.reset()
            self._voltage = 0.0
            self._peak_count = 0

    @property
    def voltage(self) -> float:
        return self._voltage

    @property
    def peak_count(self) -> int:
        return self._peak_count

    @property
    def bpm(self) -> float:
        return self._rate.bpm

    def __len__(self) -> int:
        return len(self._history)

    def peak_timestamps(self) -> List[float]:
        with self._lock:
            return self._peaks.timestamps()

    def recent(self, window: float | None = None, now: float | None = None) -> List[Sample]:
        window = self.cfg.time_window if window is None else window
        now = time.time() if now is None else now
        with self._lock:
            return self._history.recent(window, now)

    def snapshot(
        self, window: float | None = None, now: float | None = None, include_history: bool = True
    ) -> StreamSnapshot:
        window = self.cfg.time_window if window is None else window
        now = time.time() if now is None else now
        with self._lock:
            return StreamSnapshot(
                voltage=self._voltage,
                peak_count=self._peak_count,
                bpm=self._rate.bpm,
                history=self._history.recent(window, now) if include_history else [],
            )
