"""
Orders services package - the order aggregate's service layer.

- OrderService: creation, approval/rejection, derived totals and status,
  table transfers and waiter changes, the cascading delete/cancel post-condition
- OrderItemService: item add/remove/quantity/cancel and kitchen progress,
  per item or for the whole order
"""

# Core order operations
from .order_service import OrderService

# Item management
from .item_service import OrderItemService

__all__ = [
    'OrderService',
    'OrderItemService',
]
