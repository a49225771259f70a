"""
yard_config -- single public entrypoint for yard configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration: the reconciliation threshold, database settings and the
    facility layout used for provisioning.  YAML loading is internal.

Architecture position:
    Configuration -- sits beside ``yard_kernel``.  The kernel services take
    plain values (a ReconciliationPolicy, a FacilityLayout) and never import
    this package; ``yard_config.bridges`` and the scripts do the wiring.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with that name.
    - ``KeyError`` / ``ValueError`` -- schema violations.
"""

from __future__ import annotations

import logging
from pathlib import Path

from yard_config.loader import load_yaml_file, parse_config
from yard_config.schema import (
    AreaDef,
    DatabaseConfig,
    FacilityLayout,
    ReconciliationConfig,
    YardConfig,
    YardDef,
)

_logger = logging.getLogger("yard_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

DEFAULT_SET = "default"


def get_active_config(
    set_name: str = DEFAULT_SET,
    config_path: Path | str | None = None,
) -> YardConfig:
    """
    Load and parse a configuration set.

    Args:
        set_name: Name of a file ``yard_config/sets/<set_name>.yaml``.
        config_path: Explicit YAML path; overrides ``set_name``.

    Returns:
        A frozen ``YardConfig``.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_DIR / f"{set_name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = parse_config(load_yaml_file(path))

    _logger.info(
        "yard_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "rack_count": config.layout.rack_count,
            "discrepancy_threshold": str(config.reconciliation.discrepancy_threshold),
        },
    )
    return config


__all__ = [
    "AreaDef",
    "DatabaseConfig",
    "FacilityLayout",
    "ReconciliationConfig",
    "YardConfig",
    "YardDef",
    "get_active_config",
]
