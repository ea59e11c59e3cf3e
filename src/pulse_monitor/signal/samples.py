from dataclasses import dataclass
from typing import Optional

import numpy as np

# little-endian IEEE-754 float32, as notified by the sensor
VOLTAGE_DTYPE = np.dtype("<f4")
VOLTAGE_NBYTES = VOLTAGE_DTYPE.itemsize


@dataclass(frozen=True)
class Sample:
    timestamp: float  # receiver arrival time, seconds
    voltage: float

    def to_dict(self) -> dict:
        return {"timestamp": float(self.timestamp), "voltage": float(self.voltage)}


@dataclass(frozen=True)
class PeakEvent:
    timestamp: float


def decode_voltage(payload: bytes) -> Optional[float]:
    """Decode the leading float32 of a notification payload.

    Returns None when the payload is too short to hold one reading. Trailing
    bytes are ignored.
    """
    if payload is None or len(payload) < VOLTAGE_NBYTES:
        return None
    value = np.frombuffer(bytes(payload[:VOLTAGE_NBYTES]), dtype=VOLTAGE_DTYPE)[0]
    return float(value)


def sample_from_payload(payload: bytes, now_ts: float) -> Optional[Sample]:
    voltage = decode_voltage(payload)
    if voltage is None:
        return None
    return Sample(timestamp=now_ts, voltage=voltage)


def make_sample(timestamp: float, voltage: float) -> Sample:
    """Build a Sample with the voltage rounded to float32 precision."""
    return Sample(timestamp=float(timestamp), voltage=float(np.float32(voltage)))


def encode_voltage(voltage: float) -> bytes:
    """Inverse of decode_voltage, as the sensor firmware sends it."""
    return np.asarray([voltage], dtype=VOLTAGE_DTYPE).tobytes()
