"""Generate read-only schema analysis markdown for one or more buckets.

Usage:
    py scripts/schema_report.py
    py scripts/schema_report.py --bucket telemetry --bucket weather
    py scripts/schema_report.py --output docs/data_structure_analysis.md
"""

from __future__ import annotations

import argparse
from datetime import UTC, datetime
from pathlib import Path
import os
import sys
from typing import Iterable
from urllib.parse import urlparse


PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from influxdb2_toolkit import InfluxDBClient, InfluxDBError, V2Config  # noqa: E402
from influxdb2_toolkit.config import v2_from_env  # noqa: E402


def _as_csv(items: Iterable[str], limit: int = 10) -> str:
    values = [str(x) for x in items if x]
    if not values:
        return "-"
    if len(values) <= limit:
        return ", ".join(values)
    return ", ".join(values[:limit]) + ", ..."


def _analyze_bucket(client: InfluxDBClient, bucket: str, max_measurements: int) -> list[str]:
    lines: list[str] = [f"## Bucket: `{bucket}`"]
    try:
        measurements = client.list_measurements(bucket=bucket)
    except InfluxDBError as exc:
        lines.append(f"- status: query failed: `{exc}`")
        lines.append("")
        return lines

    lines.append("- status: ok")
    lines.append(f"- measurement count: `{len(measurements)}`")
    lines.append(f"- measurement sample: {_as_csv(measurements, limit=10)}")
    lines.append("")
    lines.append("| Measurement | Tag keys (sample) | Field keys (sample) |")
    lines.append("|---|---|---|")

    for measurement in measurements[:max_measurements]:
        try:
            schema = client.get_measurement_schema(measurement, bucket=bucket)
            tag_text = _as_csv(schema.tags, limit=8)
            field_text = _as_csv(schema.fields, limit=8)
            lines.append(f"| `{measurement}` | {tag_text} | {field_text} |")
        except InfluxDBError as exc:
            lines.append(f"| `{measurement}` | error | `{exc}` |")

    lines.append("")
    return lines


def _append_no_proxy_hosts(url: str) -> None:
    parsed = urlparse(url)
    if not parsed.hostname:
        return

    current = os.getenv("NO_PROXY") or os.getenv("no_proxy") or ""
    values = [part.strip() for part in current.split(",") if part.strip()]
    if parsed.hostname in values:
        return
    values.append(parsed.hostname)
    merged = ",".join(values)
    os.environ["NO_PROXY"] = merged
    os.environ["no_proxy"] = merged


def _build_report(config: V2Config, buckets: list[str], max_measurements: int) -> str:
    now = datetime.now(UTC).isoformat()
    lines = [
        "# Data Structure Analysis",
        "",
        "## Run Info",
        f"- generated_at_utc: `{now}`",
        f"- endpoint: `{config.url}`",
        f"- org: `{config.org}`",
        "- mode: read-only metadata queries",
        "- source: `scripts/schema_report.py`",
        "",
    ]
    client = InfluxDBClient.from_config(config)
    try:
        for bucket in buckets:
            lines.extend(_analyze_bucket(client, bucket, max_measurements=max_measurements))
    finally:
        client.close()
    return "\n".join(lines) + "\n"


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate read-only InfluxDB schema analysis markdown.")
    parser.add_argument("--bucket", action="append", default=[], help="Bucket name (can be repeated)")
    parser.add_argument("--max-measurements", type=int, default=5, help="How many measurements to sample per bucket")
    parser.add_argument("--output", default="docs/data_structure_analysis.md", help="Output markdown path")
    args = parser.parse_args()

    config = v2_from_env()
    selected = args.bucket or ([config.bucket] if config.bucket else [])
    if not selected:
        print("No bucket given. Pass --bucket or set INFLUXDB_V2_BUCKET.", file=sys.stderr)
        return 1

    _append_no_proxy_hosts(config.url)
    content = _build_report(config, selected, max_measurements=args.max_measurements)

    output_path = (PROJECT_ROOT / args.output).resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(content, encoding="utf-8")
    print(f"wrote {output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
