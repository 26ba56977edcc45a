from django.dispatch import Signal

# Sent once an order becomes fully paid, by either payment path.
# kwargs: order, actor, partial (True when completed by a partial payment)
payment_completed = Signal()

# Sent for every partial payment session, including the completing one.
# kwargs: order, session, is_fully_paid
partial_payment_recorded = Signal()
