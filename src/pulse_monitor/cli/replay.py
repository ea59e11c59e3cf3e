import argparse
import csv
import dataclasses
import json
import logging
from pathlib import Path
from typing import Iterator, Tuple

from ..config import StreamConfig, load_stream_config
from ..signal.samples import make_sample
from ..stream.processor import StreamProcessor

logger = logging.getLogger(__name__)


def iter_rows(path: Path) -> Iterator[Tuple[float, float] | None]:
    """Yield (timestamp, voltage) per row, or None for a row that cannot be parsed."""
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix in (".ndjson", ".jsonl"):
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    obj = json.loads(line)
                    yield float(obj["timestamp"]), float(obj["voltage"])
                except (ValueError, KeyError, TypeError):
                    yield None
        else:
            for row in csv.DictReader(f):
                try:
                    yield float(row["timestamp"]), float(row["voltage"])
                except (ValueError, KeyError, TypeError):
                    yield None


def replay(path: Path, cfg: StreamConfig) -> dict:
    processor = StreamProcessor(cfg)
    num_samples = 0
    skipped = 0
    peaks = []
    for row in iter_rows(path):
        if row is None:
            skipped += 1
            continue
        event = processor.ingest(make_sample(*row))
        num_samples += 1
        if event is not None:
            peaks.append(event.timestamp)
    if skipped:
        logger.warning("Skipped %d malformed rows in %s", skipped, path)
    return {
        "num_samples": num_samples,
        "skipped_rows": skipped,
        "peak_count": processor.peak_count,
        "bpm": processor.bpm,
        "peaks": peaks,
    }


def main(argv=None):
    parser = argparse.ArgumentParser(description="Replay recorded PPG samples through the peak/BPM pipeline.")
    parser.add_argument("input", type=Path, help="CSV with timestamp,voltage columns or NDJSON rows")
    parser.add_argument("--output", type=Path, default=None)
    parser.add_argument("--config", type=Path, default=None, help="stream_config.json to load")
    parser.add_argument("--threshold", type=float, default=None, help="Override peak threshold (V)")
    parser.add_argument("--min-interval", type=float, default=None, help="Override minimum peak spacing (s)")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    if not args.input.exists():
        raise SystemExit(f"Input file not found: {args.input}")

    try:
        cfg = load_stream_config(path=args.config) if args.config else load_stream_config()
        overrides = {}
        if args.threshold is not None:
            overrides["peak_threshold"] = args.threshold
        if args.min_interval is not None:
            overrides["min_peak_interval"] = args.min_interval
        cfg = dataclasses.replace(cfg, **overrides)
    except (FileNotFoundError, ValueError) as e:
        raise SystemExit(str(e))

    summary = replay(args.input, cfg)
    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            json.dump(summary, f, indent=2)
        print(f"Wrote replay summary to {args.output}")
    print(f"{summary['peak_count']} peaks, BPM {summary['bpm']:.1f} over {summary['num_samples']} samples")
    return summary


if __name__ == "__main__":
    main()
