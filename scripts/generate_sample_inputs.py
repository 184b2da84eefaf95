#!/usr/bin/env python3
"""
Generate a synthetic device registry and device values file for manual runs
and benchmarking.
"""

import argparse
import random
from datetime import date, timedelta
from pathlib import Path

# Configuration
SHARED_DIR = Path("shared")
INPUT_DIR = SHARED_DIR / "input"
DEVICE_TYPES = ["humidity", "pressure", "sensorA", "sensorB", "temperature"]
NULL_SYMBOL = "\\N"


def generate_registry(path: Path, num_devices: int, rng: random.Random) -> int:
    """
    Write ``id,type`` lines for device ids 0..num_devices.

    Id 0 is included on purpose: its readings are excluded by the join.

    Returns:
        Number of lines written
    """
    with open(path, 'w', encoding='utf-8') as f:
        for device_id in range(num_devices + 1):
            f.write(f"{device_id},{rng.choice(DEVICE_TYPES)}\n")
    return num_devices + 1


def generate_values(path: Path, num_devices: int, days: int, readings_per_day: int,
                    null_fraction: float, rng: random.Random) -> int:
    """
    Write ``id,date,value`` readings.

    Args:
        path: Output file
        num_devices: Highest device id
        days: Number of consecutive dates, ending today
        readings_per_day: Readings per device and date
        null_fraction: Share of readings whose date is the null marker

    Returns:
        Number of lines written
    """
    start = date.today() - timedelta(days=days - 1)
    lines = 0
    with open(path, 'w', encoding='utf-8') as f:
        for offset in range(days):
            day = (start + timedelta(days=offset)).isoformat()
            for device_id in range(num_devices + 1):
                for _ in range(readings_per_day):
                    reading_date = NULL_SYMBOL if rng.random() < null_fraction else day
                    f.write(f"{device_id},{reading_date},{rng.uniform(0, 100):.2f}\n")
                    lines += 1
    return lines


def main():
    """Generate both input files."""
    parser = argparse.ArgumentParser(description="Generate sample device registry and values files")
    parser.add_argument('--output-dir', default=str(INPUT_DIR), help=f'Target directory (default: {INPUT_DIR})')
    parser.add_argument('--devices', type=int, default=12, help='Highest device id (default: 12)')
    parser.add_argument('--days', type=int, default=7, help='Number of dates (default: 7)')
    parser.add_argument('--readings-per-day', type=int, default=24, help='Readings per device and date (default: 24)')
    parser.add_argument('--null-fraction', type=float, default=0.05, help='Share of null dates (default: 0.05)')
    parser.add_argument('--seed', type=int, default=42, help='Random seed (default: 42)')
    args = parser.parse_args()

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    rng = random.Random(args.seed)

    registry = output_dir / "device.txt"
    values = output_dir / "dvalues.txt"

    print(f"Generating {registry} ...")
    print(f"  ✓ {generate_registry(registry, args.devices, rng)} devices")
    print(f"Generating {values} ...")
    count = generate_values(values, args.devices, args.days, args.readings_per_day, args.null_fraction, rng)
    print(f"  ✓ {count} readings ({values.stat().st_size / 1024:.1f} KB)")
    return 0


if __name__ == "__main__":
    exit(main())
