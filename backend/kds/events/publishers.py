from typing import Callable, Iterable, Optional
import logging

from django.db import transaction

from restaurants.models import StaffMember
from shifts.services import ShiftService
from ..serializers import (
    KitchenItemSerializer,
    OrderEventSerializer,
    ShiftEventSerializer,
    TableEventSerializer,
)
from ..services.notification_service import notification_service
from ..services.projector import KitchenProjector

logger = logging.getLogger(__name__)


class KitchenEventPublisher:
    """
    Centralized real-time publishing for order, shift and table events.

    Every publish is deferred until the surrounding transaction commits so
    receivers never see rolled-back state, and every failure is logged
    instead of propagating into the mutation that triggered it.
    """

    @staticmethod
    def _defer(description: str, callback: Callable[[], None]):
        def run():
            try:
                callback()
            except Exception as e:
                logger.error(f"Error publishing {description}: {e}")

        if transaction.get_connection().in_atomic_block:
            logger.debug(f"Still in atomic block, deferring {description}")
            transaction.on_commit(run)
        else:
            run()

    @staticmethod
    def _order_payload(order, **extra):
        data = dict(OrderEventSerializer(order).data)
        data.update(extra)
        data['timestamp'] = notification_service._get_timestamp()
        return data

    # ------------------------------------------------------------------
    # Kitchen fan-out
    # ------------------------------------------------------------------

    @staticmethod
    def publish_kitchen_orders(restaurant, event: str = 'kitchen_orders_updated', order=None,
                               new_items: Optional[Iterable] = None, is_new_order: bool = False):
        """
        Push fresh kitchen projections: the full view to the admin role group
        and a per-cook view to each active cook.

        With ``new_items`` the event carries ``newItems`` (narrowed per cook)
        and ``isNewOrder``. A cook whose categories exclude every new item
        gets a plain ``kitchen_orders_updated`` instead.
        """
        active_shift = ShiftService.get_active_shift(restaurant)
        orders = KitchenProjector.source_orders(restaurant, active_shift)
        new_items = list(new_items or [])

        def payload(actor, kind):
            data = {
                'orders': KitchenProjector.project(restaurant, actor, active_shift, orders=orders),
                'timestamp': notification_service._get_timestamp(),
            }
            if kind == 'new_kitchen_order':
                visible = KitchenProjector.filter_for_actor(new_items, actor)
                data['orderId'] = str(order.id)
                data['orderNumber'] = order.order_number
                data['newItems'] = KitchenItemSerializer(visible, many=True).data
                data['isNewOrder'] = is_new_order
            return data

        notification_service.notify_role(restaurant.id, StaffMember.Role.ADMIN, event, payload(None, event))

        cooks = StaffMember.objects.filter(
            restaurant=restaurant, role=StaffMember.Role.COOK, is_active=True
        ).prefetch_related('assigned_categories')
        for cook in cooks:
            actor = cook.as_actor()
            cook_event = event
            if event == 'new_kitchen_order' and not KitchenProjector.filter_for_actor(new_items, actor):
                cook_event = 'kitchen_orders_updated'
            notification_service.notify_user(cook.id, cook_event, payload(actor, cook_event))

        logger.debug(f"Published {event} for {restaurant} to admins and {len(cooks)} cook(s)")

    # ------------------------------------------------------------------
    # Order events
    # ------------------------------------------------------------------

    @staticmethod
    def order_created(order):
        """Publish order created event"""
        logger.info(f"Publishing order:created for order {order.order_number}")

        def send():
            notification_service.notify_restaurant(
                order.restaurant_id, 'order:created', KitchenEventPublisher._order_payload(order)
            )
            KitchenEventPublisher.publish_kitchen_orders(
                order.restaurant, 'new_kitchen_order', order=order,
                new_items=list(order.items.all()), is_new_order=True,
            )

        KitchenEventPublisher._defer('order:created', send)

    @staticmethod
    def items_added(order, items):
        """Publish new lines on an existing order"""
        logger.info(f"Publishing {len(items)} new item(s) for order {order.order_number}")

        def send():
            notification_service.notify_restaurant(
                order.restaurant_id, 'order:updated',
                KitchenEventPublisher._order_payload(order, action='items_added'),
            )
            KitchenEventPublisher.publish_kitchen_orders(
                order.restaurant, 'new_kitchen_order', order=order,
                new_items=items, is_new_order=False,
            )

        KitchenEventPublisher._defer('items_added', send)

    @staticmethod
    def order_updated(order, action: str, **extra):
        """Publish any other order change"""
        logger.debug(f"Publishing order:updated ({action}) for order {order.order_number}")

        def send():
            notification_service.notify_restaurant(
                order.restaurant_id, 'order:updated',
                KitchenEventPublisher._order_payload(order, action=action, **extra),
            )
            KitchenEventPublisher.publish_kitchen_orders(order.restaurant)

        KitchenEventPublisher._defer('order:updated', send)

    @staticmethod
    def order_cancelled(order, reason: str = ''):
        logger.info(f"Publishing order:cancelled for order {order.order_number}")

        def send():
            notification_service.notify_restaurant(
                order.restaurant_id, 'order:cancelled',
                KitchenEventPublisher._order_payload(order, reason=reason or ''),
            )
            KitchenEventPublisher.publish_kitchen_orders(order.restaurant)

        KitchenEventPublisher._defer('order:cancelled', send)

    @staticmethod
    def order_paid(order, partial: bool = False):
        logger.info(f"Publishing order:paid for order {order.order_number}")

        def send():
            notification_service.notify_restaurant(
                order.restaurant_id, 'order:paid',
                KitchenEventPublisher._order_payload(order, settledByPartialPayments=partial),
            )
            KitchenEventPublisher.publish_kitchen_orders(order.restaurant)

        KitchenEventPublisher._defer('order:paid', send)

    # ------------------------------------------------------------------
    # Shift and table events
    # ------------------------------------------------------------------

    @staticmethod
    def shift_opened(shift, adopted_order_ids):
        logger.info(f"Publishing shift:opened for shift #{shift.shift_number}")

        def send():
            data = dict(ShiftEventSerializer(shift).data)
            data['adoptedOrderIds'] = [str(order_id) for order_id in adopted_order_ids]
            data['timestamp'] = notification_service._get_timestamp()
            notification_service.notify_restaurant(shift.restaurant_id, 'shift:opened', data)
            KitchenEventPublisher.publish_kitchen_orders(shift.restaurant)

        KitchenEventPublisher._defer('shift:opened', send)

    @staticmethod
    def shift_closed(shift, detached_order_ids):
        logger.info(f"Publishing shift:closed for shift #{shift.shift_number}")

        def send():
            data = dict(ShiftEventSerializer(shift).data)
            data['detachedOrderIds'] = [str(order_id) for order_id in detached_order_ids]
            data['timestamp'] = notification_service._get_timestamp()
            notification_service.notify_restaurant(shift.restaurant_id, 'shift:closed', data)
            KitchenEventPublisher.publish_kitchen_orders(shift.restaurant)

        KitchenEventPublisher._defer('shift:closed', send)

    @staticmethod
    def table_status_changed(table, previous_status: str):
        logger.debug(f"Publishing table:status_changed for {table}: {previous_status} -> {table.status}")

        def send():
            data = dict(TableEventSerializer(table).data)
            data['previousStatus'] = previous_status
            data['timestamp'] = notification_service._get_timestamp()
            notification_service.notify_restaurant(table.restaurant_id, 'table:status_changed', data)

        KitchenEventPublisher._defer('table:status_changed', send)
