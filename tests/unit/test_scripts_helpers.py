from __future__ import annotations

from datetime import UTC, datetime
import importlib.util
from pathlib import Path

import pandas as pd
import pytest

from influxdb2_toolkit import InfluxDBRequestError, V2Config
from influxdb2_toolkit.models import MeasurementSchema


def _load_script(module_name: str, relative_path: str):
    root = Path(__file__).resolve().parents[2]
    script_path = root / relative_path
    spec = importlib.util.spec_from_file_location(module_name, script_path)
    module = importlib.util.module_from_spec(spec)
    assert spec is not None and spec.loader is not None
    spec.loader.exec_module(module)
    return module


class FakeClient:
    def __init__(self) -> None:
        self.closed = False
        self.timeseries_calls = []

    def list_measurements(self, bucket=None):
        return ["m"]

    def list_measurement_tag_keys(self, measurement, bucket=None):
        return ["sensor"]

    def list_measurement_field_keys(self, measurement, bucket=None):
        return ["value"]

    def get_measurement_schema(self, measurement, bucket=None):
        return MeasurementSchema(measurement=measurement, tags=["sensor"], fields=["value"], bucket=bucket)

    def get_timeseries(self, **kwargs):
        self.timeseries_calls.append(kwargs)
        return pd.DataFrame({"time": [datetime.now(UTC)], "value": [1.0]})

    def close(self):
        self.closed = True


def test_smoke_config_requires_token_org_bucket(monkeypatch) -> None:
    smoke = _load_script("smoke_read_for_test_config", "scripts/smoke_read.py")
    monkeypatch.setattr(smoke, "load_env", lambda: None)
    for key in (
        "INFLUXDB_V2_TOKEN",
        "INFLUXDB_TOKEN",
        "INFLUXDB_V2_ORG",
        "INFLUXDB_ORG",
        "INFLUXDB_V2_BUCKET",
        "INFLUXDB_BUCKET",
    ):
        monkeypatch.delenv(key, raising=False)
    with pytest.raises(ValueError, match="INFLUXDB_V2_TOKEN"):
        smoke._config_from_env()


def test_smoke_config_is_read_only(monkeypatch) -> None:
    smoke = _load_script("smoke_read_for_test_read_only", "scripts/smoke_read.py")
    monkeypatch.setattr(smoke, "load_env", lambda: None)
    monkeypatch.setenv("INFLUXDB_V2_TOKEN", "t")
    monkeypatch.setenv("INFLUXDB_V2_ORG", "o")
    monkeypatch.setenv("INFLUXDB_V2_BUCKET", "b")
    monkeypatch.setenv("INFLUXDB_ALLOW_WRITE", "true")

    cfg = smoke._config_from_env()

    assert cfg.allow_write is False
    assert cfg.bucket == "b"


def test_smoke_run_uses_client_and_closes(monkeypatch) -> None:
    smoke = _load_script("smoke_read_for_test_run", "scripts/smoke_read.py")
    fake = FakeClient()
    monkeypatch.setattr(smoke.InfluxDBClient, "from_config", classmethod(lambda cls, config: fake))

    rc = smoke.run(V2Config(url="http://h", token="t", org="o", bucket="b"), hours=6)

    assert rc == 0
    assert fake.closed is True
    assert fake.timeseries_calls[0]["fields"] == ["value"]
    assert fake.timeseries_calls[0]["measurement"] == "m"


def test_schema_append_no_proxy_hosts_is_idempotent(monkeypatch) -> None:
    schema = _load_script("schema_report_for_test_proxy", "scripts/schema_report.py")
    monkeypatch.setenv("NO_PROXY", "localhost")
    schema._append_no_proxy_hosts("https://influx.example.org:8086")
    schema._append_no_proxy_hosts("https://influx.example.org:8086")

    values = [v.strip() for v in (schema.os.getenv("NO_PROXY") or "").split(",") if v.strip()]
    assert values.count("influx.example.org") == 1
    assert values.count("localhost") == 1


def test_schema_analyze_bucket_handles_query_error() -> None:
    schema = _load_script("schema_report_for_test_error", "scripts/schema_report.py")

    class BrokenClient(FakeClient):
        def list_measurements(self, bucket=None):
            raise InfluxDBRequestError(404, "bucket not found")

    lines = schema._analyze_bucket(BrokenClient(), "missing", max_measurements=3)
    assert any("query failed" in line for line in lines)


def test_schema_analyze_bucket_lists_measurements() -> None:
    schema = _load_script("schema_report_for_test_table", "scripts/schema_report.py")
    lines = schema._analyze_bucket(FakeClient(), "b", max_measurements=3)
    assert "| `m` | sensor | value |" in lines


def test_schema_build_report_includes_run_info(monkeypatch) -> None:
    schema = _load_script("schema_report_for_test_report", "scripts/schema_report.py")
    fake = FakeClient()
    monkeypatch.setattr(schema.InfluxDBClient, "from_config", classmethod(lambda cls, config: fake))
    monkeypatch.setattr(schema, "_analyze_bucket", lambda client, name, max_measurements: [f"## Bucket: `{name}`", ""])

    report = schema._build_report(V2Config(url="http://h", token="t", org="o"), ["demo"], max_measurements=2)

    assert "# Data Structure Analysis" in report
    assert "generated_at_utc" in report
    assert "## Bucket: `demo`" in report
    assert fake.closed is True
