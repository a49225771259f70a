"""
Yard Kernel - Inventory Lifecycle & Rack Allocation Engine

Tracks lots of pipe joints through a storage yard with:
- A single write path for lot status transitions
- Capacity-safe rack reservation (linear-capacity and slot racks)
- Estimate vs. manifest reconciliation with advisory flags
- Lot splitting for partial pickups with full lineage
- Transactional change events for downstream notification
"""

__version__ = "0.1.0"
