"""
Generate a synthetic GPS track CSV for `python -m strive replay`.

    python scripts/generate_sample_track.py --out track.csv [--fixes 600] [--seed 7]

The track is a steady run around a loop with the kinds of noise the fix
filter has to deal with: stationary stretches (traffic lights) that produce
jitter of a metre or two, and occasional fixes with poor horizontal accuracy.
"""
import argparse
import csv
import math
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path

START_LAT = 48.8566
START_LON = 2.3522
METERS_PER_DEG_LAT = 111_320.0


def generate_rows(fixes: int, seed: int, speed_ms: float = 3.0):
    """Yield CSV row dicts, one per second."""
    rng = random.Random(seed)
    t = datetime(2025, 6, 1, 7, 0, tzinfo=timezone.utc)
    lat, lon = START_LAT, START_LON
    heading = 0.0
    stopped_for = 0

    for _ in range(fixes):
        if stopped_for == 0 and rng.random() < 0.01:
            stopped_for = rng.randint(10, 40)

        if stopped_for:
            stopped_for -= 1
            step, speed = 0.0, 0.0
        else:
            heading += rng.uniform(-0.05, 0.05)
            step, speed = speed_ms, speed_ms + rng.uniform(-0.3, 0.3)

        lat += step * math.cos(heading) / METERS_PER_DEG_LAT
        lon += step * math.sin(heading) / (METERS_PER_DEG_LAT * math.cos(math.radians(lat)))

        jitter = rng.uniform(-1.5, 1.5) / METERS_PER_DEG_LAT
        accuracy = rng.choice([4.0, 5.0, 8.0, 12.0, 12.0, 45.0])
        yield {
            "timestamp": t.isoformat(),
            "latitude": f"{lat + jitter:.7f}",
            "longitude": f"{lon + jitter:.7f}",
            "altitude": f"{35 + rng.uniform(-2, 2):.1f}",
            "accuracy": f"{accuracy:.1f}",
            "speed": f"{speed:.2f}",
        }
        t += timedelta(seconds=1)


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a synthetic track CSV")
    parser.add_argument("--out", type=Path, required=True, help="Output CSV path")
    parser.add_argument("--fixes", type=int, default=600, help="Number of fixes (1 per second)")
    parser.add_argument("--seed", type=int, default=7)
    args = parser.parse_args()

    fieldnames = ["timestamp", "latitude", "longitude", "altitude", "accuracy", "speed"]
    with args.out.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for row in generate_rows(args.fixes, args.seed):
            writer.writerow(row)
    print(f"Wrote {args.fixes} fixes to {args.out}")


if __name__ == "__main__":
    main()
