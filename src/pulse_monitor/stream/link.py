"""Ingestion boundary between the wireless transport and the StreamProcessor.

The transport reports scanning, discovery and connection changes through the
`on_*` hooks and hands raw notification payloads to `on_payload`. Short
payloads, payloads from other characteristics and payloads delivered with a
transport error are dropped here and never reach the processor.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from ..config import LinkConfig
from ..signal.samples import Sample, PeakEvent, sample_from_payload
from .processor import StreamProcessor

logger = logging.getLogger(__name__)


@dataclass
class LinkMetrics:
    received: int = 0
    accepted: int = 0
    dropped: int = 0
    errors: int = 0
    connects: int = 0
    failed_connects: int = 0
    disconnects: int = 0


@dataclass
class PayloadResult:
    sample: Sample
    peak: Optional[PeakEvent] = None


class SensorLink:
    def __init__(
        self,
        processor: StreamProcessor,
        cfg: LinkConfig | None = None,
        clock: Optional[Callable[[], float]] = None,
        on_peak: Optional[Callable[[PeakEvent], None]] = None,
    ):
        self.processor = processor
        self.cfg = cfg or LinkConfig()
        self.clock = clock or time.time
        self.on_peak = on_peak
        self.connected = False
        self.scanning = False
        self.status = "Disconnected"
        self.metrics = LinkMetrics()
        self._scan_started: float | None = None

    def start_scan(self, now_ts: float | None = None) -> None:
        self.scanning = True
        self._scan_started = self.clock() if now_ts is None else now_ts
        self.status = f"Scanning for {self.cfg.device_name}..."

    def stop_scan(self) -> None:
        self.scanning = False
        self._scan_started = None

    def check_scan_timeout(self, now_ts: float | None = None) -> bool:
        """Give up a scan that found nothing within `scan_timeout_seconds`."""
        if not self.scanning or self.connected or self._scan_started is None:
            return False
        now = self.clock() if now_ts is None else now_ts
        if now - self._scan_started < self.cfg.scan_timeout_seconds:
            return False
        self.stop_scan()
        self.status = f"Device not found. Make sure {self.cfg.device_name} is powered on."
        logger.warning("Scan timed out after %.1fs", self.cfg.scan_timeout_seconds)
        return True

    def on_discover(self, name: str | None, advertised_services: Iterable[str] = ()) -> bool:
        """True when a discovered peripheral is the sensor; stops the scan if so."""
        if not self.cfg.matches_device(name, advertised_services):
            return False
        self.stop_scan()
        self.status = f"Connecting to {name or self.cfg.device_name}..."
        return True

    def on_connect(self, device_name: str | None = None, advertised_services: Iterable[str] = ()) -> bool:
        """Mark the link connected; returns False for a peripheral that is not the sensor."""
        if device_name is not None and not self.cfg.matches_device(device_name, advertised_services):
            logger.info("Ignoring connection to unknown device %s", device_name)
            return False
        self.stop_scan()
        self.connected = True
        self.metrics.connects += 1
        self.status = "Connected"
        logger.info("Link connected to %s", device_name or self.cfg.device_name)
        return True

    def on_connect_failed(self, error: Exception | str | None = None) -> None:
        # nothing was streamed yet, so stream state is left alone
        self.connected = False
        self.metrics.failed_connects += 1
        self.status = f"Connection failed: {error}" if error else "Connection failed"
        logger.warning("Connection failed: %s", error)

    def on_notification_error(self, error: Exception | str) -> None:
        self.metrics.errors += 1
        self.status = f"Notification error: {error}"
        logger.warning("Notification error: %s", error)

    def on_payload(
        self,
        payload: bytes,
        now_ts: float | None = None,
        characteristic: str | None = None,
        error: Exception | str | None = None,
    ) -> Optional[PayloadResult]:
        """Decode and ingest one notification; returns None if it was dropped."""
        self.metrics.received += 1
        if not self.cfg.matches_characteristic(characteristic):
            self.metrics.dropped += 1
            return None
        if error:
            self.metrics.errors += 1
            self.status = "Error reading data"
            logger.warning("Notification read error: %s", error)
            return None
        ts = self.clock() if now_ts is None else now_ts
        sample = sample_from_payload(payload, ts)
        if sample is None:
            self.metrics.dropped += 1
            logger.debug("Dropping %d-byte payload", len(payload or b""))
            return None
        event = self.processor.ingest(sample)
        self.metrics.accepted += 1
        if event is not None and self.on_peak is not None:
            self.on_peak(event)
        if self.connected:
            self.status = "Receiving data..."
        return PayloadResult(sample=sample, peak=event)

    def on_disconnect(self, error: Exception | str | None = None) -> None:
        """Any disconnect, clean or not, returns the processor to its initial state."""
        self.connected = False
        self.metrics.disconnects += 1
        if error:
            self.status = f"Disconnected: {error}"
            logger.warning("Link lost: %s", error)
        else:
            self.status = "Disconnected"
            logger.info("Link disconnected")
        self.processor.reset()
