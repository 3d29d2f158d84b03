"""Configuration loading for influxdb2_toolkit."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional
import os

from dotenv import load_dotenv


def load_env() -> None:
    """Load environment variables from a .env file if present."""
    load_dotenv()


def _get_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class V2Config:
    url: str
    token: str
    org: str
    bucket: Optional[str] = None
    allow_write: bool = False
    precision: str = "ns"
    timeout: float = 30.0


def v2_from_env() -> V2Config:
    load_env()
    return V2Config(
        url=os.getenv("INFLUXDB_V2_URL", os.getenv("INFLUXDB_URL", "")),
        token=os.getenv("INFLUXDB_V2_TOKEN", os.getenv("INFLUXDB_TOKEN", "")),
        org=os.getenv("INFLUXDB_V2_ORG", os.getenv("INFLUXDB_ORG", "")),
        bucket=os.getenv("INFLUXDB_V2_BUCKET", os.getenv("INFLUXDB_BUCKET")),
        allow_write=_get_bool(os.getenv("INFLUXDB_ALLOW_WRITE"), False),
        precision=os.getenv("INFLUXDB_V2_PRECISION", "ns"),
        timeout=float(os.getenv("INFLUXDB_V2_TIMEOUT", "30")),
    )


def _dict_get(d: Mapping[str, Any], key: str, fallback: Any = None) -> Any:
    if key in d:
        return d[key]
    return fallback


def resolve_v2_config(config: V2Config | Mapping[str, Any]) -> V2Config:
    if isinstance(config, V2Config):
        return config
    return V2Config(
        url=_dict_get(config, "url"),
        token=_dict_get(config, "token"),
        org=_dict_get(config, "org"),
        bucket=_dict_get(config, "bucket"),
        allow_write=bool(_dict_get(config, "allow_write", False)),
        precision=str(_dict_get(config, "precision", "ns")),
        timeout=float(_dict_get(config, "timeout", 30.0)),
    )
