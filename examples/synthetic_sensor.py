"""Synthetic PPG sensor that posts raw float32 payloads to /ingest_payload.

Useful for exercising the API without the NanoPPG hardware.

Requires: numpy, requests.
Configure via env vars or CLI args.
"""

import argparse
import os
import time

import numpy as np
import requests

from pulse_monitor.signal.samples import encode_voltage


def synthetic_ppg(bpm: float = 72.0, sample_rate: float = 50.0, duration: float = 10.0,
                  baseline: float = 1.5, amplitude: float = 1.6, noise: float = 0.02, seed: int = 1337):
    """Pulse-like voltage trace: a sharp systolic bump once per beat on a flat baseline."""
    rng = np.random.default_rng(seed)
    t = np.arange(0.0, duration, 1.0 / sample_rate)
    phase = (t * bpm / 60.0) % 1.0
    pulse = np.exp(-((phase - 0.2) ** 2) / 0.005)
    return t, baseline + amplitude * pulse + rng.normal(0.0, noise, size=t.size)


def send_payload(api_url: str, voltage: float, token: str | None, timestamp: float | None = None):
    headers = {"Content-Type": "application/octet-stream"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    params = {"timestamp": timestamp} if timestamp is not None else None
    resp = requests.post(api_url, data=encode_voltage(voltage), headers=headers, params=params, timeout=5)
    resp.raise_for_status()
    return resp.json()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Synthetic PPG sensor -> ingest_payload")
    parser.add_argument("--api", default=os.getenv("API_URL", "http://localhost:8000/ingest_payload"))
    parser.add_argument("--bpm", type=float, default=72.0)
    parser.add_argument("--rate", type=float, default=50.0, help="Samples per second")
    parser.add_argument("--duration", type=float, default=10.0)
    parser.add_argument("--token", default=os.getenv("PM_API_TOKEN", ""))
    parser.add_argument("--no-pace", action="store_true", help="Send as fast as possible with synthetic timestamps")
    args = parser.parse_args(argv)

    t, volts = synthetic_ppg(args.bpm, args.rate, args.duration)
    token = args.token or None
    start = time.time()
    peaks = 0
    for ts, v in zip(t, volts):
        if args.no_pace:
            result = send_payload(args.api, float(v), token, timestamp=start + float(ts))
        else:
            time.sleep(max(0.0, start + float(ts) - time.time()))
            result = send_payload(args.api, float(v), token)
        peaks += bool(result.get("peak"))
    print(f"Sent {len(t)} samples, {peaks} peaks reported by {args.api}")
    return peaks


if __name__ == "__main__":
    main()
