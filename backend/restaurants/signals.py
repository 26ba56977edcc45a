from django.dispatch import Signal

# Sent after a table's cached occupancy has been written.
# kwargs: table, previous_status
table_status_changed = Signal()
