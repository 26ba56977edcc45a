from typing import List, Optional

from django.conf import settings
from django.db.models import Prefetch
import logging

from core_backend.actors import resolve_actor
from orders.models import Order, OrderItem
from shifts.services import ShiftService
from ..serializers import KitchenOrderSerializer, kitchen_category_id

logger = logging.getLogger(__name__)

_ACTIVE_SHIFT = object()


class KitchenProjector:
    """
    Builds the kitchen view of a restaurant's orders.

    Pure read: nothing is written. The source set is the active shift's
    orders (any shifted order when no shift is active) whose status is
    kitchen-relevant and which still have something to cook, plus cancelled
    orders, which are shown in full so the kitchen can stop work on them.
    """

    @staticmethod
    def kitchen_order_statuses():
        return list(settings.KITCHEN_ORDER_STATUSES)

    @staticmethod
    def kitchen_item_statuses():
        return list(settings.KITCHEN_ITEM_STATUSES)

    @staticmethod
    def source_orders(restaurant, active_shift=_ACTIVE_SHIFT) -> List[Order]:
        if active_shift is _ACTIVE_SHIFT:
            active_shift = ShiftService.get_active_shift(restaurant)

        orders = Order.objects.filter(
            restaurant=restaurant,
            status__in=KitchenProjector.kitchen_order_statuses() + [Order.OrderStatus.CANCELLED],
        )
        if active_shift is not None:
            orders = orders.filter(shift=active_shift)
        else:
            orders = orders.filter(shift__isnull=False)

        orders = orders.select_related("table").prefetch_related(
            Prefetch(
                "items",
                queryset=OrderItem.objects.select_related("food").order_by("position"),
            )
        )

        item_statuses = set(KitchenProjector.kitchen_item_statuses())
        source = []
        for order in orders:
            if order.status == Order.OrderStatus.CANCELLED:
                source.append(order)
            elif any(item.status in item_statuses for item in order.items.all()):
                source.append(order)
        return source

    @staticmethod
    def visible_items(order: Order, actor=None) -> List[OrderItem]:
        """
        Items of ``order`` the actor should see.

        Cancelled orders keep every item. Otherwise only kitchen-status items
        remain. Cooks with assigned categories are narrowed further; cooks
        without assignments and admins see everything.
        """
        items = list(order.items.all())
        if order.status != Order.OrderStatus.CANCELLED:
            item_statuses = set(KitchenProjector.kitchen_item_statuses())
            items = [item for item in items if item.status in item_statuses]
        return KitchenProjector.filter_for_actor(items, actor)

    @staticmethod
    def filter_for_actor(items, actor=None) -> List[OrderItem]:
        actor = resolve_actor(actor)
        if actor is None or actor.role != "cook":
            return list(items)

        assigned = {str(category_id) for category_id in actor.assigned_category_ids}
        if not assigned:
            return list(items)
        return [item for item in items if str(kitchen_category_id(item)) in assigned]

    @staticmethod
    def project(restaurant, actor=None, active_shift=_ACTIVE_SHIFT, orders: Optional[List[Order]] = None) -> List[dict]:
        """
        Kitchen tickets for ``actor``, newest first.

        Args:
            restaurant: Restaurant to project
            actor: cook/admin viewing the display; None means the unfiltered view
            active_shift: pass to skip the lookup when projecting for many actors
            orders: pre-loaded source set, reused across actors during fan-out

        Returns:
            list of serialized orders; orders with no visible item are dropped
        """
        actor = resolve_actor(actor)
        if orders is None:
            orders = KitchenProjector.source_orders(restaurant, active_shift)

        projected = []
        for order in sorted(orders, key=lambda o: o.created_at, reverse=True):
            items = KitchenProjector.visible_items(order, actor)
            if not items:
                continue
            projected.append(KitchenOrderSerializer(order, context={"items": items}).data)

        logger.debug(
            f"Kitchen projection for {restaurant} ({getattr(actor, 'role', None) or 'all'}): "
            f"{len(projected)} of {len(orders)} order(s)"
        )
        return projected
