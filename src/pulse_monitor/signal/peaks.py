from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .samples import Sample, PeakEvent


@dataclass(frozen=True)
class DetectorState:
    previous_voltage: float = 0.0
    last_peak_time: Optional[float] = None


def detect_peak(
    state: DetectorState,
    sample: Sample,
    threshold: float = 2.8,
    min_peak_interval: float = 0.3,
) -> Tuple[DetectorState, Optional[PeakEvent]]:
    """Rising-edge threshold crossing with a minimum spacing between peaks.

    An edge needs the previous voltage strictly below the threshold and the
    current one at or above it, so a signal held above the threshold yields a
    single edge. The first edge ever seen is always accepted; later edges are
    accepted only once `min_peak_interval` has elapsed since the last accepted
    peak. Suppressed edges leave `last_peak_time` unchanged.

    Voltages arrive as float32, so the threshold is compared at float32
    precision too; otherwise a reading of exactly 2.8 V would sit below it.
    """
    threshold = float(np.float32(threshold))
    rising = state.previous_voltage < threshold and sample.voltage >= threshold
    last_peak_time = state.last_peak_time
    event = None
    if rising:
        if last_peak_time is None or sample.timestamp - last_peak_time >= min_peak_interval:
            event = PeakEvent(timestamp=sample.timestamp)
            last_peak_time = sample.timestamp
    return DetectorState(previous_voltage=sample.voltage, last_peak_time=last_peak_time), event


class PeakDetector:
    def __init__(self, threshold: float = 2.8, min_peak_interval: float = 0.3):
        self.threshold = threshold
        self.min_peak_interval = min_peak_interval
        self.state = DetectorState()

    def process(self, sample: Sample) -> Optional[PeakEvent]:
        self.state, event = detect_peak(
            self.state, sample, threshold=self.threshold, min_peak_interval=self.min_peak_interval
        )
        return event

    def reset(self) -> None:
        self.state = DetectorState()
