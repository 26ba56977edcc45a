"""
Order domain signals.

Services send these inside their transaction; receivers that publish to the
real-time layer defer delivery until commit.
"""
from django.dispatch import Signal

# kwargs: order, actor
order_created = Signal()

# kwargs: order, items (newly added or merged OrderItems), actor
items_added = Signal()

# Any other change that affects what the kitchen or floor sees.
# kwargs: order, action, extra (optional dict merged into the broadcast payload)
order_updated = Signal()

# kwargs: order, actor, reason
order_cancelled = Signal()

# kwargs: order
table_occupied = Signal()

# The order no longer needs its table. Receivers must treat this as idempotent.
# kwargs: order, reason, table_id (optional, defaults to the order's table)
table_release_requested = Signal()
