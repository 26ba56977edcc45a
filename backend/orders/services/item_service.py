from typing import List, Optional
from django.db import transaction
from django.db.models import Max
from django.utils import timezone
import logging

from core_backend.actors import resolve_actor
from core_backend.exceptions import AlreadyCancelled, AlreadyPaid, NotFound, ValidationFailed
from orders.models import Order, OrderItem
from orders.services.order_service import OrderService
from orders.signals import items_added, order_updated
from restaurants.services import FoodAvailabilityService

logger = logging.getLogger(__name__)


class OrderItemService:
    """Service for managing order items - adding, updating, removing, kitchen progress."""

    @staticmethod
    def _get_item(order: Order, item_id) -> OrderItem:
        """Fetch a non-deleted item of the order, or raise NotFound."""
        item = OrderItem.objects.filter(order=order, pk=item_id).first()
        if item is None:
            raise NotFound("Order item", item_id)
        return item

    @staticmethod
    def _ensure_not_settled(order: Order, item: OrderItem):
        """Lines already covered by a partial payment can no longer change."""
        from payments.services import PaymentService

        if item.pk in PaymentService.paid_item_ids(order):
            raise AlreadyPaid("Item is already paid")

    @staticmethod
    def _validate_quantity(quantity):
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationFailed("Quantity must be at least 1", field="quantity")

    @staticmethod
    def _reopen_for_kitchen(item: OrderItem):
        """New portions on a ready/served line need cooking again."""
        if item.status in (OrderItem.ItemStatus.READY, OrderItem.ItemStatus.SERVED):
            item.status = OrderItem.ItemStatus.PREPARING
            item.ready_at = None
            item.served_at = None

    @staticmethod
    def append_item(order: Order, food, quantity: int, actor=None, notes: str = "") -> OrderItem:
        """
        Add a line to an order, merging into an existing line for the same food.

        Does not recalculate the order; callers do that once after all lines.
        Lines already settled by a partial payment are never merged into.
        """
        from payments.services import PaymentService

        existing = (
            OrderItem.objects.filter(order=order, food=food)
            .exclude(status=OrderItem.ItemStatus.CANCELLED)
            .exclude(pk__in=PaymentService.paid_item_ids(order))
            .first()
        )
        if existing is not None:
            existing.quantity += quantity
            OrderItemService._reopen_for_kitchen(existing)
            existing.save()
            logger.debug(f"Merged {quantity} x {food.name} into order {order.order_number} (now {existing.quantity})")
            return existing

        # Positions count deleted lines too so addressed indexes never shift
        top = OrderItem.all_objects.filter(order=order).aggregate(top=Max("position"))["top"]
        return OrderItem.objects.create(
            order=order,
            position=0 if top is None else top + 1,
            food=food,
            food_name=food.name,
            category_id=food.category_id,
            price=food.price,
            quantity=quantity,
            notes=notes or "",
            added_by_id=actor.id if actor else None,
            added_by_name=actor.display_name if actor else "",
        )

    @staticmethod
    def add_lines(order: Order, lines, actor) -> Order:
        """
        Add several (food, quantity, notes) lines to a locked, editable order
        and emit ``items_added``.
        """
        order = OrderService.lock_order(order)
        OrderService.ensure_editable(order)

        added = [
            OrderItemService.append_item(order, food, quantity, actor, notes=notes)
            for food, quantity, notes in lines
        ]
        FoodAvailabilityService.record_ordered((food, qty) for food, qty, _ in lines)
        OrderService.save_derived_state(order)

        logger.info(f"Added {len(added)} line(s) to order {order.order_number}")
        items_added.send(sender=Order, order=order, items=added, actor=actor)
        return order

    @staticmethod
    @transaction.atomic
    def add_item(order, food, quantity: int = 1, actor=None, notes: str = "") -> Order:
        """
        Add a food to an order. An active line for the same food is incremented
        instead of creating a second line; there is no upper bound on quantity.

        Raises:
            ValidationFailed: quantity < 1
            FoodUnavailable: the food is stop-listed or over its daily limit
            AlreadyPaid / AlreadyCancelled: the order is terminal
        """
        actor = resolve_actor(actor)
        OrderItemService._validate_quantity(quantity)
        FoodAvailabilityService.ensure_available([(food, quantity)])
        return OrderItemService.add_lines(order, [(food, quantity, notes)], actor)

    @staticmethod
    @transaction.atomic
    def remove_item(order, item_id, actor=None) -> Order:
        """
        Soft-delete an item. Removing the last item soft-deletes the order.
        """
        actor = resolve_actor(actor)
        order = OrderService.lock_order(order)
        OrderService.ensure_editable(order)
        item = OrderItemService._get_item(order, item_id)
        OrderItemService._ensure_not_settled(order, item)

        item.mark_deleted(actor.id if actor else None)
        item.save()
        logger.info(f"Removed {item.food_name} from order {order.order_number}")

        OrderService.save_derived_state(order)
        if OrderService.enforce_active_items_postcondition(order, actor) is None:
            order_updated.send(sender=Order, order=order, action="item_removed")
        return order

    @staticmethod
    @transaction.atomic
    def update_item_quantity(order, item_id, quantity: int, actor=None) -> Order:
        """
        Set an item's quantity. ``ready_quantity`` is clamped down when the new
        quantity is below it.

        Raises:
            ValidationFailed: quantity < 1
            NotFound: the item is missing or deleted
        """
        OrderItemService._validate_quantity(quantity)
        order = OrderService.lock_order(order)
        OrderService.ensure_editable(order)
        item = OrderItemService._get_item(order, item_id)
        OrderItemService._ensure_not_settled(order, item)

        if item.is_cancelled:
            raise AlreadyCancelled("Item is cancelled")

        delta = quantity - item.quantity
        if delta > 0 and item.food_id:
            FoodAvailabilityService.ensure_available([(item.food, delta)])
            FoodAvailabilityService.record_ordered([(item.food, delta)])
            OrderItemService._reopen_for_kitchen(item)

        item.quantity = quantity
        if item.ready_quantity > quantity:
            item.ready_quantity = quantity
        if item.ready_quantity == quantity and item.status == OrderItem.ItemStatus.PREPARING:
            item.status = OrderItem.ItemStatus.READY
            item.ready_at = item.ready_at or timezone.now()
        item.save()

        OrderService.save_derived_state(order)
        logger.debug(f"Order {order.order_number}: {item.food_name} quantity set to {quantity}")
        order_updated.send(sender=Order, order=order, action="quantity_changed")
        return order

    @staticmethod
    @transaction.atomic
    def cancel_item(order, item_id, actor=None, reason: str = "") -> Order:
        """
        Cancel an item, keeping it visible for audit. When no uncancelled item
        remains the whole order is cancelled and its table released.

        Raises:
            NotFound: the item is missing or deleted
            AlreadyCancelled: the item is already cancelled or already served
        """
        actor = resolve_actor(actor)
        order = OrderService.lock_order(order)
        OrderService.ensure_editable(order)
        item = OrderItemService._get_item(order, item_id)
        OrderItemService._ensure_not_settled(order, item)

        if item.is_cancelled:
            raise AlreadyCancelled("Item is already cancelled")
        if item.status == OrderItem.ItemStatus.SERVED:
            raise AlreadyCancelled("Served items cannot be cancelled")

        item.status = OrderItem.ItemStatus.CANCELLED
        item.cancelled_at = timezone.now()
        item.cancelled_by_id = actor.id if actor else None
        item.cancelled_by_name = actor.display_name if actor else ""
        item.cancel_reason = reason or ""
        item.save()
        logger.info(f"Cancelled {item.quantity} x {item.food_name} on order {order.order_number}: {reason or '-'}")

        OrderService.save_derived_state(order)
        if OrderService.enforce_active_items_postcondition(order, actor) is None:
            order_updated.send(sender=Order, order=order, action="item_cancelled")
        return order

    # ------------------------------------------------------------------
    # Kitchen progress
    # ------------------------------------------------------------------

    @staticmethod
    def _get_kitchen_item(order: Order, item_id) -> OrderItem:
        if order.status == Order.OrderStatus.CANCELLED:
            raise AlreadyCancelled("Order is cancelled")
        item = OrderItemService._get_item(order, item_id)
        if item.is_cancelled:
            raise AlreadyCancelled("Item is cancelled")
        return item

    @staticmethod
    @transaction.atomic
    def mark_item_started(order, item_id, actor=None) -> Order:
        actor = resolve_actor(actor)
        order = OrderService.lock_order(order)
        item = OrderItemService._get_kitchen_item(order, item_id)

        if item.status == OrderItem.ItemStatus.PENDING:
            item.status = OrderItem.ItemStatus.PREPARING
            item.is_started = True
            item.started_at = timezone.now()
            item.started_by_id = actor.id if actor else None
            item.save()
            OrderService.save_derived_state(order)
            order_updated.send(sender=Order, order=order, action="item_started")
        return order

    @staticmethod
    @transaction.atomic
    def mark_item_ready(order, item_id, ready_count: Optional[int] = None, actor=None) -> Order:
        """
        Mark portions of an item ready.

        Args:
            ready_count: portions finished now; omitted means the whole quantity.
                         Accumulates and is clamped at the item quantity.
        """
        if ready_count is not None:
            OrderItemService._validate_quantity(ready_count)

        order = OrderService.lock_order(order)
        item = OrderItemService._get_kitchen_item(order, item_id)
        if item.status == OrderItem.ItemStatus.SERVED:
            raise ValidationFailed("Item is already served")

        now = timezone.now()
        if ready_count is None:
            item.ready_quantity = item.quantity
        else:
            item.ready_quantity = min(item.ready_quantity + ready_count, item.quantity)

        if not item.is_started:
            item.is_started = True
            item.started_at = now

        if item.ready_quantity >= item.quantity:
            item.status = OrderItem.ItemStatus.READY
            item.ready_at = now
            item.preparation_duration = int((now - item.added_at).total_seconds())
        else:
            item.status = OrderItem.ItemStatus.PREPARING
        item.save()

        OrderService.save_derived_state(order)
        logger.info(
            f"Order {order.order_number}: {item.food_name} ready {item.ready_quantity}/{item.quantity}"
        )
        order_updated.send(sender=Order, order=order, action="item_ready")
        return order

    @staticmethod
    @transaction.atomic
    def revert_item_ready(order, item_id, revert_count: Optional[int] = None, actor=None) -> Order:
        """
        Undo readiness. Subtracts ``revert_count`` portions (all when omitted)
        with a floor of 0 and demotes the item to preparing.
        """
        if revert_count is not None:
            OrderItemService._validate_quantity(revert_count)

        order = OrderService.lock_order(order)
        item = OrderItemService._get_kitchen_item(order, item_id)

        subtract = item.ready_quantity if revert_count is None else revert_count
        item.ready_quantity = max(item.ready_quantity - subtract, 0)
        if item.ready_quantity < item.quantity:
            item.status = OrderItem.ItemStatus.PREPARING
            item.ready_at = None
            item.served_at = None
            item.preparation_duration = None
        item.save()

        OrderService.save_derived_state(order)
        logger.info(
            f"Order {order.order_number}: {item.food_name} readiness reverted to {item.ready_quantity}/{item.quantity}"
        )
        order_updated.send(sender=Order, order=order, action="item_ready_reverted")
        return order

    @staticmethod
    @transaction.atomic
    def mark_item_served(order, item_id, actor=None) -> Order:
        order = OrderService.lock_order(order)
        item = OrderItemService._get_kitchen_item(order, item_id)

        if item.status != OrderItem.ItemStatus.READY:
            raise ValidationFailed("Only ready items can be served")

        item.status = OrderItem.ItemStatus.SERVED
        item.served_at = timezone.now()
        item.save()

        OrderService.save_derived_state(order)
        order_updated.send(sender=Order, order=order, action="item_served")
        return order

    # ------------------------------------------------------------------
    # Whole-order kitchen progress
    # ------------------------------------------------------------------

    @staticmethod
    def _lock_for_kitchen(order) -> Order:
        order = OrderService.lock_order(order)
        if order.status == Order.OrderStatus.CANCELLED:
            raise AlreadyCancelled("Order is cancelled")
        return order

    @staticmethod
    @transaction.atomic
    def start_order(order, actor=None) -> Order:
        """Start cooking every pending item of the order."""
        actor = resolve_actor(actor)
        order = OrderItemService._lock_for_kitchen(order)

        now = timezone.now()
        started = 0
        for item in OrderItem.objects.filter(order=order, status=OrderItem.ItemStatus.PENDING):
            item.status = OrderItem.ItemStatus.PREPARING
            item.is_started = True
            item.started_at = now
            item.started_by_id = actor.id if actor else None
            item.save()
            started += 1

        OrderService.save_derived_state(order)
        logger.info(f"Order {order.order_number}: started {started} item(s)")
        order_updated.send(sender=Order, order=order, action="order_started")
        return order

    @staticmethod
    @transaction.atomic
    def complete_order(order, actor=None) -> Order:
        """Mark every item still cooking as fully ready."""
        order = OrderItemService._lock_for_kitchen(order)

        now = timezone.now()
        for item in OrderItem.objects.filter(order=order, status=OrderItem.ItemStatus.PREPARING):
            item.status = OrderItem.ItemStatus.READY
            item.ready_quantity = item.quantity
            item.ready_at = now
            item.preparation_duration = int((now - item.added_at).total_seconds())
            item.save()

        OrderService.save_derived_state(order)
        logger.info(f"Order {order.order_number} completed by the kitchen")
        order_updated.send(sender=Order, order=order, action="order_completed")
        return order

    @staticmethod
    @transaction.atomic
    def mark_order_served(order, actor=None) -> Order:
        """Serve every item that is not cancelled, whatever its kitchen state."""
        order = OrderItemService._lock_for_kitchen(order)

        now = timezone.now()
        items = OrderItem.objects.filter(order=order).exclude(
            status__in=(OrderItem.ItemStatus.CANCELLED, OrderItem.ItemStatus.SERVED)
        )
        for item in items:
            item.status = OrderItem.ItemStatus.SERVED
            item.ready_quantity = item.quantity
            item.ready_at = item.ready_at or now
            item.served_at = now
            item.save()

        OrderService.save_derived_state(order)
        logger.info(f"Order {order.order_number} served")
        order_updated.send(sender=Order, order=order, action="served")
        return order

    @staticmethod
    def get_items(order) -> List[OrderItem]:
        """Every non-deleted item in positional order, cancelled ones included."""
        return list(OrderItem.objects.filter(order=order).order_by("position"))
