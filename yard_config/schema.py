"""
Yard configuration schema.

Frozen dataclasses produced by ``yard_config.loader`` from the YAML files in
``yard_config/sets``.  Pure data; the kernel receives these values through
``get_active_config()`` and never reads YAML itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from yard_kernel.domain.values import AllocationMode

# ---------------------------------------------------------------------------
# Facility layout
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AreaDef:
    """
    One row of racks within a yard.

    Racks are numbered 1..rack_count; ids are ``<yard>-<area>-<n>``.
    """

    code: str
    allocation_mode: AllocationMode
    rack_count: int
    capacity: int
    capacity_meters: Decimal
    label_prefix: str = "Rack "

    def area_id(self, yard_code: str) -> str:
        return f"{yard_code}-{self.code}"

    def rack_id(self, yard_code: str, number: int) -> str:
        return f"{yard_code}-{self.code}-{number}"

    def rack_name(self, number: int) -> str:
        return f"{self.label_prefix}{number}"


@dataclass(frozen=True)
class YardDef:
    code: str
    name: str
    areas: tuple[AreaDef, ...] = ()


@dataclass(frozen=True)
class FacilityLayout:
    """All yards of one facility."""

    name: str
    yards: tuple[YardDef, ...] = ()

    @property
    def rack_count(self) -> int:
        return sum(area.rack_count for yard in self.yards for area in yard.areas)


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReconciliationConfig:
    """Relative estimate/manifest discrepancy above which an arrival is flagged."""

    discrepancy_threshold: Decimal = Decimal("0.05")


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///yard.db"
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    echo: bool = False


@dataclass(frozen=True)
class YardConfig:
    """The runtime configuration artifact."""

    config_id: str
    version: int
    reconciliation: ReconciliationConfig = field(default_factory=ReconciliationConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    layout: FacilityLayout = field(default_factory=lambda: FacilityLayout(name="empty"))
    checksum: str = ""
