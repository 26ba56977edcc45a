"""
Restaurant-side services consumed by the order engine.

- FoodAvailabilityService: stop-list and daily-limit enforcement
- TableOccupancyResolver: read-time correction of cached table occupancy
"""

from .food_service import FoodAvailabilityService
from .occupancy_service import TableOccupancy, TableOccupancyResolver

__all__ = [
    'FoodAvailabilityService',
    'TableOccupancy',
    'TableOccupancyResolver',
]
