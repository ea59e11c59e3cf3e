import os
from dataclasses import dataclass
from pathlib import Path
import json
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Paths:
    project_root: Path = Path(__file__).resolve().parents[2]
    data_root: Path = project_root / "data"


@dataclass
class StreamConfig:
    max_history_count: int = 500
    time_window: float = 5.0  # seconds of history exposed for display
    peak_threshold: float = 2.8  # volts
    min_peak_interval: float = 0.3  # seconds between accepted peaks
    max_peak_timestamps: int = 10

    def __post_init__(self) -> None:
        if self.max_history_count < 1:
            raise ValueError(f"max_history_count must be >= 1, got {self.max_history_count}")
        if self.max_peak_timestamps < 1:
            raise ValueError(f"max_peak_timestamps must be >= 1, got {self.max_peak_timestamps}")
        if self.time_window < 0:
            raise ValueError(f"time_window must be >= 0, got {self.time_window}")
        if self.min_peak_interval < 0:
            raise ValueError(f"min_peak_interval must be >= 0, got {self.min_peak_interval}")


@dataclass
class LinkConfig:
    device_name: str = "NanoPPG"
    service_uuid: str = "12345678-1234-5678-1234-56789abcdef0"
    characteristic_uuid: str = "12345678-1234-5678-1234-56789abcdef1"
    scan_timeout_seconds: float = 15.0

    def matches_device(self, name: str | None, advertised_services=()) -> bool:
        """Recognise the sensor by advertised name or service UUID."""
        if name and self.device_name in name:
            return True
        wanted = self.service_uuid.lower()
        return any(str(u).lower() == wanted for u in advertised_services or ())

    def matches_characteristic(self, uuid: str | None) -> bool:
        return uuid is None or str(uuid).lower() == self.characteristic_uuid.lower()


@dataclass
class ApiConfig:
    history_limit: int = 500


def _read_json(cfg_path: Path) -> dict | None:
    if not cfg_path.exists():
        return None
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except Exception as e:
        logger.warning("Ignoring unreadable config %s: %s", cfg_path, e)
        return None
    if not isinstance(payload, dict):
        logger.warning("Ignoring config %s: expected a JSON object", cfg_path)
        return None
    return payload


def load_stream_config(paths: Paths | None = None, path: Path | str | None = None) -> StreamConfig:
    """Load stream tunables; an explicitly named file (argument or PM_STREAM_CONFIG) must exist."""
    if path is None:
        path = os.getenv("PM_STREAM_CONFIG")
    if path is not None and not Path(path).exists():
        raise FileNotFoundError(f"Stream config file not found: {path}")
    if path is None:
        if paths is None:
            paths = Paths()
        path = paths.data_root / "stream_config.json"
    payload = _read_json(Path(path))
    if payload is None:
        return StreamConfig()

    return StreamConfig(
        max_history_count=int(payload.get("max_history_count", 500)),
        time_window=float(payload.get("time_window", 5.0)),
        peak_threshold=float(payload.get("peak_threshold", 2.8)),
        min_peak_interval=float(payload.get("min_peak_interval", 0.3)),
        max_peak_timestamps=int(payload.get("max_peak_timestamps", 10)),
    )


def load_link_config(paths: Paths | None = None) -> LinkConfig:
    if paths is None:
        paths = Paths()
    payload = _read_json(paths.data_root / "link_config.json")
    if payload is None:
        return LinkConfig()

    return LinkConfig(
        device_name=str(payload.get("device_name", "NanoPPG")),
        service_uuid=str(payload.get("service_uuid", LinkConfig.service_uuid)),
        characteristic_uuid=str(payload.get("characteristic_uuid", LinkConfig.characteristic_uuid)),
        scan_timeout_seconds=float(payload.get("scan_timeout_seconds", 15.0)),
    )


def load_api_config(paths: Paths | None = None) -> ApiConfig:
    if paths is None:
        paths = Paths()
    payload = _read_json(paths.data_root / "api_config.json")
    if payload is None:
        return ApiConfig()
    return ApiConfig(history_limit=int(payload.get("history_limit", 500)))
