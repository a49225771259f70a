"""ORM models for the yard kernel."""

from yard_kernel.models.capacity_movement import CapacityMovement
from yard_kernel.models.inventory_lot import InventoryLot
from yard_kernel.models.lot_event import LotEvent
from yard_kernel.models.storage_location import StorageLocation

__all__ = [
    "CapacityMovement",
    "InventoryLot",
    "LotEvent",
    "StorageLocation",
]
