import asyncio
import json
import struct

import pytest
from fastapi.testclient import TestClient

from pulse_monitor.api import main as api_main
from pulse_monitor.api.main import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("PM_API_TOKEN", raising=False)
    monkeypatch.delenv("PM_API_KEYS", raising=False)
    c = TestClient(app)
    c.post("/link/disconnect")
    api_main.link.stop_scan()
    while not api_main._peak_queue.empty():
        api_main._peak_queue.get_nowait()
    return c


def test_ingest_samples_and_read_state(client):
    samples = [
        {"timestamp": 0.0, "voltage": 3.0},
        {"timestamp": 0.25, "voltage": 1.0},
        {"timestamp": 0.5, "voltage": 3.0},
        {"timestamp": 0.75, "voltage": 1.0},
        {"timestamp": 1.0, "voltage": 3.0},
    ]
    resp = client.post("/ingest", json=samples)
    assert resp.status_code == 200
    assert resp.json() == {"accepted": 5, "peaks": 3}

    state = client.get("/state").json()
    assert state["peak_count"] == 3
    assert state["bpm"] == pytest.approx(120.0)
    assert state["bpm_text"] == "BPM: 120.0"
    assert state["voltage_text"] == "Current: 3.000 V"


def test_raw_payload_ingest_and_short_payload_drop(client):
    client.post("/link/connect", json={"name": "NanoPPG"})
    resp = client.post("/ingest_payload", content=struct.pack("<f", 3.0), params={"timestamp": 100.0})
    assert resp.json() == {"accepted": True, "voltage": 3.0, "peak": True}

    resp = client.post("/ingest_payload", content=b"\x01\x02", params={"timestamp": 100.1})
    assert resp.json() == {"accepted": False, "status": "Receiving data..."}
    assert client.get("/state").json()["status"] == "Receiving data..."


def test_history_window(client):
    client.post("/ingest", json=[
        {"timestamp": 10.0 - 5.01, "voltage": 0.5},
        {"timestamp": 10.0 - 4.99, "voltage": 1.5},
        {"timestamp": 10.0, "voltage": 2.5},
    ])
    points = client.get("/history", params={"window": 5.0, "now": 10.0}).json()
    assert [p["voltage"] for p in points] == [1.5, 2.5]


def test_disconnect_resets_state(client):
    client.post("/ingest", json=[{"timestamp": 1.0, "voltage": 3.0}])
    resp = client.post("/link/disconnect", params={"error": "timeout"})
    assert resp.json()["status"] == "Disconnected: timeout"
    state = client.get("/state").json()
    assert state["peak_count"] == 0
    assert state["bpm"] == 0.0
    assert client.get("/history", params={"window": 1e9, "now": 2.0}).json() == []


def test_token_required_when_configured(client, monkeypatch):
    monkeypatch.setenv("PM_API_TOKEN", "secret")
    assert client.get("/state").status_code == 401
    ok = client.get("/state", headers={"Authorization": "Bearer secret"})
    assert ok.status_code == 200


def test_api_key_header(client, monkeypatch):
    monkeypatch.setenv("PM_API_KEYS", "k1,k2")
    assert client.get("/state", headers={"x-api-key": "k2"}).status_code == 200
    assert client.get("/state", headers={"x-api-key": "nope"}).status_code == 401


def test_ingest_at_threshold_counts_a_peak(client):
    resp = client.post("/ingest", json=[{"timestamp": 0.0, "voltage": 1.0}, {"timestamp": 1.0, "voltage": 2.8}])
    assert resp.json() == {"accepted": 2, "peaks": 1}


def test_connect_unknown_device_rejected(client):
    assert client.post("/link/connect", json={"name": "Headphones"}).status_code == 400
    assert client.get("/state").json()["connected"] is False


def test_scan_and_discover(client):
    assert client.post("/link/scan").json()["status"] == "Scanning for NanoPPG..."
    assert client.post("/link/discover", json={"name": "Speaker"}).json()["matched"] is False
    resp = client.post("/link/discover", json={"name": "NanoPPG"}).json()
    assert resp["matched"] is True
    assert resp["scanning"] is False


def test_connect_failed_and_read_errors_keep_state(client):
    client.post("/ingest", json=[{"timestamp": 1.0, "voltage": 3.0}])
    resp = client.post("/link/connect_failed", params={"error": "timeout"}).json()
    assert resp == {"connected": False, "status": "Connection failed: timeout"}

    resp = client.post("/ingest_payload", content=struct.pack("<f", 1.0), params={"error": "read failed"})
    assert resp.json() == {"accepted": False, "status": "Error reading data"}

    resp = client.post("/link/notification_error", params={"error": "denied"}).json()
    assert resp["status"] == "Notification error: denied"
    state = client.get("/state").json()
    assert state["peak_count"] == 1
    assert state["voltage"] == 3.0


def test_link_metrics_count_payloads(client):
    before = client.get("/link/metrics").json()
    client.post("/ingest_payload", content=struct.pack("<f", 1.0), params={"timestamp": 1.0})
    client.post("/ingest_payload", content=b"\x00", params={"timestamp": 1.1})
    after = client.get("/link/metrics").json()
    assert after["received"] - before["received"] == 2
    assert after["accepted"] - before["accepted"] == 1
    assert after["dropped"] - before["dropped"] == 1


def test_peak_stream_emits_ingested_peak(client):
    client.post("/ingest", json=[{"timestamp": 7.0, "voltage": 3.0}])

    async def first_event():
        resp = await api_main.stream_peaks(token=None, api_key=None)
        return await resp.body_iterator.__anext__()

    chunk = asyncio.run(first_event())
    assert chunk.startswith("data: ")
    event = json.loads(chunk[len("data: "):])
    assert event["timestamp"] == 7.0
    assert event["peak_count"] == 1


def test_peak_stream_query_token(client, monkeypatch):
    monkeypatch.setenv("PM_API_TOKEN", "secret")
    assert client.get("/peaks/stream").status_code == 401
    assert client.get("/peaks/stream", params={"token": "wrong"}).status_code == 401
    # a valid token passes the guard and yields the event stream
    client.post("/ingest", json=[{"timestamp": 3.0, "voltage": 3.0}], headers={"Authorization": "Bearer secret"})

    async def first_event():
        resp = await api_main.stream_peaks(token="secret", api_key=None)
        assert resp.status_code == 200
        return await resp.body_iterator.__anext__()

    assert json.loads(asyncio.run(first_event())[len("data: "):])["timestamp"] == 3.0
