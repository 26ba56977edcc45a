from django.dispatch import receiver
import logging

from orders.signals import items_added, order_cancelled, order_created, order_updated
from payments.signals import partial_payment_recorded, payment_completed
from restaurants.signals import table_status_changed
from shifts.signals import shift_closed, shift_opened
from .publishers import KitchenEventPublisher

logger = logging.getLogger(__name__)


@receiver(order_created)
def handle_order_created(sender, order, **kwargs):
    KitchenEventPublisher.order_created(order)


@receiver(items_added)
def handle_items_added(sender, order, items, **kwargs):
    KitchenEventPublisher.items_added(order, items)


@receiver(order_updated)
def handle_order_updated(sender, order, action, extra=None, **kwargs):
    KitchenEventPublisher.order_updated(order, action, **(extra or {}))


@receiver(order_cancelled)
def handle_order_cancelled(sender, order, reason=None, **kwargs):
    KitchenEventPublisher.order_cancelled(order, reason)


@receiver(payment_completed)
def handle_payment_completed(sender, order, partial=False, **kwargs):
    KitchenEventPublisher.order_paid(order, partial=partial)


@receiver(partial_payment_recorded)
def handle_partial_payment(sender, order, session, is_fully_paid=False, **kwargs):
    """The completing session is announced by payment_completed instead"""
    if is_fully_paid:
        logger.debug(f"Partial payment {session.session_id} completed order {order.order_number}")
        return
    KitchenEventPublisher.order_updated(order, 'partial_payment', sessionId=session.session_id)


@receiver(shift_opened)
def handle_shift_opened(sender, shift, adopted_order_ids=(), **kwargs):
    KitchenEventPublisher.shift_opened(shift, adopted_order_ids)


@receiver(shift_closed)
def handle_shift_closed(sender, shift, detached_order_ids=(), **kwargs):
    KitchenEventPublisher.shift_closed(shift, detached_order_ids)


@receiver(table_status_changed)
def handle_table_status_changed(sender, table, previous_status=None, **kwargs):
    KitchenEventPublisher.table_status_changed(table, previous_status)
