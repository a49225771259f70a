"""
Configuration loader (``yard_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``yard_config.schema``.  Runtime callers use
``yard_config.get_active_config()`` instead of calling this module.

Invariants enforced
-------------------
* Required keys raise ``KeyError``; bad values raise ``ValueError``.  There
  are no silent defaults for required fields.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from yard_config.schema import (
    AreaDef,
    DatabaseConfig,
    FacilityLayout,
    ReconciliationConfig,
    YardConfig,
    YardDef,
)
from yard_kernel.domain.values import AllocationMode


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_decimal(value: Any, name: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name}: not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"{name}: must be finite")
    return result


def parse_area(data: dict[str, Any]) -> AreaDef:
    mode = AllocationMode(data["allocation_mode"])
    rack_count = int(data["rack_count"])
    if rack_count <= 0:
        raise ValueError(f"area {data['code']}: rack_count must be > 0")

    if mode is AllocationMode.SLOT:
        capacity = int(data.get("capacity", 1))
        if capacity != 1:
            raise ValueError(f"area {data['code']}: slot capacity must be 1")
    else:
        capacity = int(data["capacity"])
        if capacity <= 0:
            raise ValueError(f"area {data['code']}: capacity must be > 0")

    if "capacity_meters" in data:
        capacity_meters = parse_decimal(data["capacity_meters"], "capacity_meters")
    else:
        joint_length = parse_decimal(data.get("joint_length_m", "12"), "joint_length_m")
        capacity_meters = joint_length * capacity

    return AreaDef(
        code=str(data["code"]),
        allocation_mode=mode,
        rack_count=rack_count,
        capacity=capacity,
        capacity_meters=capacity_meters,
        label_prefix=str(data.get("label_prefix", "Rack ")),
    )


def parse_yard(data: dict[str, Any]) -> YardDef:
    return YardDef(
        code=str(data["code"]),
        name=str(data.get("name", data["code"])),
        areas=tuple(parse_area(a) for a in data.get("areas", [])),
    )


def parse_layout(data: dict[str, Any]) -> FacilityLayout:
    yards = tuple(parse_yard(y) for y in data.get("yards", []))
    codes = [y.code for y in yards]
    if len(codes) != len(set(codes)):
        raise ValueError(f"duplicate yard codes in layout: {codes}")
    return FacilityLayout(name=str(data["name"]), yards=yards)


def parse_reconciliation(data: dict[str, Any]) -> ReconciliationConfig:
    threshold = parse_decimal(
        data.get("discrepancy_threshold", "0.05"), "reconciliation.discrepancy_threshold"
    )
    if threshold < 0:
        raise ValueError("reconciliation.discrepancy_threshold must be >= 0")
    return ReconciliationConfig(discrepancy_threshold=threshold)


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    return DatabaseConfig(
        url=str(data.get("url", defaults.url)),
        pool_size=int(data.get("pool_size", defaults.pool_size)),
        max_overflow=int(data.get("max_overflow", defaults.max_overflow)),
        pool_timeout=int(data.get("pool_timeout", defaults.pool_timeout)),
        echo=bool(data.get("echo", defaults.echo)),
    )


def parse_config(data: dict[str, Any]) -> YardConfig:
    return YardConfig(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        reconciliation=parse_reconciliation(data.get("reconciliation") or {}),
        database=parse_database(data.get("database") or {}),
        layout=parse_layout(data["layout"]),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
