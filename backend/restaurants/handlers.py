"""
Receivers that keep the cached table occupancy in sync with order events.
"""
from django.dispatch import receiver
import logging

from orders.signals import table_occupied, table_release_requested
from restaurants.models import Table
from restaurants.signals import table_status_changed

logger = logging.getLogger(__name__)


@receiver(table_occupied)
def occupy_table(sender, order, **kwargs):
    if not order.table_id:
        return

    table = Table.objects.filter(pk=order.table_id).first()
    if table is None:
        logger.warning(f"Order {order.order_number} references missing table {order.table_id}")
        return

    previous_status = table.status
    table.status = Table.Status.OCCUPIED
    table.active_order_id = order.id
    table.save(update_fields=["status", "active_order_id"])
    logger.debug(f"Table {table.title} occupied by order {order.order_number}")

    table_status_changed.send(sender=Table, table=table, previous_status=previous_status)


@receiver(table_release_requested)
def release_table(sender, order, reason=None, table_id=None, **kwargs):
    """
    Free the table only if it still points at this order. Release is
    idempotent, so several release requests for one order are harmless.

    ``table_id`` names the table to release when it is not the order's
    current one (a transfer releases the table being left).
    """
    table_id = table_id or order.table_id
    if not table_id:
        return

    table = Table.objects.filter(pk=table_id).first()
    if table is None or table.active_order_id != order.id:
        return

    previous_status = table.status
    table.status = Table.Status.FREE
    table.active_order_id = None
    table.save(update_fields=["status", "active_order_id"])
    logger.info(f"Table {table.title} freed ({reason or 'released'}) after order {order.order_number}")

    table_status_changed.send(sender=Table, table=table, previous_status=previous_status)
