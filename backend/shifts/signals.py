from django.dispatch import Signal

# kwargs: shift, adopted_order_ids
shift_opened = Signal()

# kwargs: shift, detached_order_ids
shift_closed = Signal()
