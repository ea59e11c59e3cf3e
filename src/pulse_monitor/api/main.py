from typing import List
import asyncio
import json
import time

from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from ..config import load_stream_config, load_link_config, load_api_config
from ..signal.samples import PeakEvent, make_sample
from ..stream.processor import StreamProcessor
from ..stream.link import SensorLink
from ..utils.auth import require_token, validate_token_or_key

app = FastAPI(title="Pulse Monitor API")

app.add_middleware(
    __import__("fastapi.middleware.cors", fromlist=["CORSMiddleware"]).CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

stream_cfg = load_stream_config()
link_cfg = load_link_config()
api_cfg = load_api_config()
processor = StreamProcessor(stream_cfg)
_peak_queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=1000)


def _publish_peak(event: PeakEvent) -> None:
    try:
        _peak_queue.put_nowait({"timestamp": event.timestamp, "peak_count": processor.peak_count, "bpm": processor.bpm})
    except asyncio.QueueFull:
        pass


link = SensorLink(processor, link_cfg, on_peak=_publish_peak)


class SampleIngest(BaseModel):
    timestamp: float
    voltage: float


class StateResponse(BaseModel):
    voltage: float
    peak_count: int
    bpm: float
    connected: bool
    status: str
    voltage_text: str
    bpm_text: str


class HistoryPoint(BaseModel):
    timestamp: float
    voltage: float


@app.post("/ingest_payload")
async def ingest_payload(
    request: Request,
    timestamp: float | None = None,
    characteristic: str | None = None,
    error: str | None = None,
    _: None = Depends(require_token),
):
    """Ingest one raw sensor notification (little-endian float32 voltage).

    A transport read error is reported through `error`; the payload is then
    ignored and only the link status changes.
    """
    body = await request.body()
    result = link.on_payload(body, now_ts=timestamp, characteristic=characteristic, error=error)
    if result is None:
        return {"accepted": False, "status": link.status}
    return {"accepted": True, "voltage": result.sample.voltage, "peak": result.peak is not None}


@app.post("/ingest")
async def ingest_samples(samples: List[SampleIngest], _: None = Depends(require_token)):
    """Ingest decoded samples in the order given."""
    peaks = 0
    for s in samples:
        event = processor.ingest(make_sample(s.timestamp, s.voltage))
        if event is not None:
            peaks += 1
            _publish_peak(event)
    return {"accepted": len(samples), "peaks": peaks}


class DiscoveredDevice(BaseModel):
    name: str | None = None
    services: List[str] = []


@app.post("/link/scan")
def start_scan(_: None = Depends(require_token)):
    link.start_scan()
    return {"scanning": link.scanning, "status": link.status}


@app.post("/link/discover")
def discover(device: DiscoveredDevice, _: None = Depends(require_token)):
    """Report a peripheral seen while scanning; `matched` tells the transport to connect."""
    matched = link.on_discover(device.name, device.services)
    return {"matched": matched, "scanning": link.scanning, "status": link.status}


@app.post("/link/connect")
def connect(device: DiscoveredDevice | None = None, _: None = Depends(require_token)):
    device = device or DiscoveredDevice()
    if not link.on_connect(device.name, device.services):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"unknown device {device.name}")
    return {"connected": link.connected, "status": link.status}


@app.post("/link/connect_failed")
def connect_failed(error: str | None = None, _: None = Depends(require_token)):
    link.on_connect_failed(error)
    return {"connected": link.connected, "status": link.status}


@app.post("/link/notification_error")
def notification_error(error: str, _: None = Depends(require_token)):
    link.on_notification_error(error)
    return {"connected": link.connected, "status": link.status}


@app.post("/link/disconnect")
def disconnect(error: str | None = None, _: None = Depends(require_token)):
    """Report a transport disconnect; clears all stream state."""
    link.on_disconnect(error)
    return {"connected": link.connected, "status": link.status}


@app.get("/state", response_model=StateResponse)
def get_state(_: None = Depends(require_token)):
    link.check_scan_timeout()
    snap = processor.snapshot(include_history=False)
    return StateResponse(
        voltage=snap.voltage,
        peak_count=snap.peak_count,
        bpm=snap.bpm,
        connected=link.connected,
        status=link.status,
        voltage_text=f"Current: {snap.voltage:.3f} V",
        bpm_text=f"BPM: {snap.bpm:.1f}",
    )


@app.get("/history", response_model=List[HistoryPoint])
def get_history(window: float | None = None, now: float | None = None, _: None = Depends(require_token)):
    """Samples inside the trailing display window."""
    points = processor.recent(window=window, now=now)
    if len(points) > api_cfg.history_limit:
        points = points[-api_cfg.history_limit:]
    return [HistoryPoint(timestamp=s.timestamp, voltage=s.voltage) for s in points]


@app.get("/link/metrics")
def get_link_metrics(_: None = Depends(require_token)):
    return dict(link.metrics.__dict__, updated_at=time.time())


async def _peak_stream():
    while True:
        ev = await _peak_queue.get()
        yield f"data: {json.dumps(ev)}\n\n"


@app.get("/peaks/stream")
async def stream_peaks(token: str | None = None, api_key: str | None = None):
    # EventSource cannot set headers, so credentials come in the query string
    validate_token_or_key(token, api_key)
    return StreamingResponse(_peak_stream(), media_type="text/event-stream")
