"""Helper for loading application settings from YAML overrides."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from ..config import EndpointConfig, Settings


def load_settings(path: str | Path | None = None) -> Settings:
    settings = Settings()
    if path is None:
        settings.validate()
        return settings

    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(f"config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as fh:
        data: dict[str, Any] = yaml.safe_load(fh) or {}

    # Allow environment overrides for critical runtime thresholds
    env_overrides = [
        ("monitor", "periodic_interval_seconds", "CONNWATCH_PERIODIC_INTERVAL", float),
        ("monitor", "offline_mode_threshold", "CONNWATCH_OFFLINE_THRESHOLD", int),
        ("monitor", "settle_delay_seconds", "CONNWATCH_SETTLE_DELAY", float),
    ]
    for section, key, env_name, caster in env_overrides:
        raw_value = os.environ.get(env_name)
        if raw_value is None:
            continue
        try:
            cast_value = caster(raw_value)
        except ValueError as exc:
            raise ValueError(f"{env_name} value '{raw_value}' is invalid") from exc
        section_data = data.setdefault(section, {})
        section_data[key] = cast_value

    # Endpoints are a list of records, not a nested dataclass
    probes_data = data.get("probes") or {}
    if "endpoints" in probes_data:
        endpoints_data = probes_data.pop("endpoints") or []
        settings.probes.endpoints = [_parse_endpoint(raw, index) for index, raw in enumerate(endpoints_data)]

    update_dataclass(settings, data)
    settings.validate()
    return settings


def _parse_endpoint(raw: dict[str, Any], index: int) -> EndpointConfig:
    if not isinstance(raw, dict) or not raw.get("url"):
        raise ValueError(f"probes.endpoints[{index}] needs at least a url")
    return EndpointConfig(
        name=str(raw.get("name") or f"endpoint-{index}"),
        url=str(raw["url"]),
        method=str(raw.get("method", "HEAD")).upper(),
        timeout_ms=int(raw.get("timeout_ms", 5000)),
        classification=str(raw.get("classification", "general")).lower(),
    )


def update_dataclass(instance: Any, values: dict[str, Any]) -> None:
    for key, value in values.items():
        if not hasattr(instance, key):
            continue
        attr = getattr(instance, key)
        if hasattr(attr, "__dataclass_fields__") and value is None:
            # An empty YAML section keeps the defaults
            continue
        if hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
            update_dataclass(attr, value)
        else:
            setattr(instance, key, value)
