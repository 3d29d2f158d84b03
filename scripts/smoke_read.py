"""Local read-only smoke test for influxdb2-toolkit.

Usage:
    py scripts/smoke_read.py
    py scripts/smoke_read.py --measurement cpu --hours 6
"""

from __future__ import annotations

import argparse
from datetime import UTC, datetime, timedelta
import os
import sys

from influxdb2_toolkit import InfluxDBClient, V2Config, load_env


def _config_from_env() -> V2Config:
    load_env()
    url = os.getenv("INFLUXDB_V2_URL", os.getenv("INFLUXDB_URL", "http://localhost:8086"))
    token = os.getenv("INFLUXDB_V2_TOKEN", os.getenv("INFLUXDB_TOKEN", ""))
    org = os.getenv("INFLUXDB_V2_ORG", os.getenv("INFLUXDB_ORG", ""))
    bucket = os.getenv("INFLUXDB_V2_BUCKET", os.getenv("INFLUXDB_BUCKET", ""))

    if not token or not org or not bucket:
        raise ValueError("INFLUXDB_V2_TOKEN, INFLUXDB_V2_ORG, and INFLUXDB_V2_BUCKET are required for the smoke test")

    return V2Config(url=url, token=token, org=org, bucket=bucket, allow_write=False)


def run(config: V2Config, measurement: str | None = None, hours: int = 24) -> int:
    client = InfluxDBClient.from_config(config)
    try:
        measurements = client.list_measurements()
        print(f"bucket={config.bucket} measurements={len(measurements)}")
        if not measurements:
            print("No measurements found.")
            return 0

        measurement = measurement or measurements[0]
        print(f"sample measurement: {measurement}")

        tags = client.list_measurement_tag_keys(measurement)
        fields = client.list_measurement_field_keys(measurement)
        print(f"tag keys: {tags[:10]}")
        print(f"field keys: {fields[:10]}")

        if fields:
            end = datetime.now(UTC)
            start = end - timedelta(hours=hours)
            df = client.get_timeseries(
                measurement=measurement,
                fields=[fields[0]],
                start=start,
                end=end,
                interval="1h",
                aggregation="mean",
                timezone="UTC",
            )
            print(f"timeseries rows: {len(df)}")
            if not df.empty:
                print(df.head(3).to_string(index=False))
    finally:
        client.close()

    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run read-only smoke checks for influxdb2-toolkit")
    parser.add_argument("--measurement", type=str, help="Measurement to sample (default: first one listed)")
    parser.add_argument("--hours", type=int, default=24, help="Look-back window for the time series query")
    args = parser.parse_args()
    try:
        return run(_config_from_env(), measurement=args.measurement, hours=args.hours)
    except Exception as exc:
        print(f"Smoke test failed: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
