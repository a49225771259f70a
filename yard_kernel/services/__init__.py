"""Kernel services: the imperative shell around the pure domain layer."""

from yard_kernel.services.capacity_ledger import CapacityLedger
from yard_kernel.services.event_publisher import EventPublisher
from yard_kernel.services.facility_service import FacilityService, ProvisionResult
from yard_kernel.services.lifecycle_engine import LifecycleEngine
from yard_kernel.services.lot_store import LotStore
from yard_kernel.services.yard_orchestrator import YardOrchestrator

__all__ = [
    "CapacityLedger",
    "EventPublisher",
    "FacilityService",
    "LifecycleEngine",
    "LotStore",
    "ProvisionResult",
    "YardOrchestrator",
]
