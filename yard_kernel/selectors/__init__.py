"""Read-only query selectors."""

from yard_kernel.selectors.location_selector import LocationSelector
from yard_kernel.selectors.lot_selector import LotSelector

__all__ = ["LocationSelector", "LotSelector"]
