from decimal import Decimal
from typing import Iterable, List, Optional
from django.db import transaction
from django.db.models import Max
from django.utils import timezone
import logging

from core_backend.actors import resolve_actor
from core_backend.exceptions import (
    AlreadyApproved,
    AlreadyCancelled,
    AlreadyPaid,
    NoActiveShift,
    NotFound,
    ValidationFailed,
)
from orders.calculators import ItemSnapshot, calculate_totals, derive_status
from orders.models import Order, OrderItem
from orders.signals import (
    order_cancelled,
    order_created,
    order_updated,
    table_occupied,
    table_release_requested,
)
from restaurants.models import Food, SequenceCounter, StaffMember, Table
from restaurants.services import FoodAvailabilityService

logger = logging.getLogger(__name__)


class OrderService:
    """Core service for the order aggregate: creation, approval, derived state."""

    # ------------------------------------------------------------------
    # Loading and derived state
    # ------------------------------------------------------------------

    @staticmethod
    def lock_order(order) -> Order:
        """
        Re-read an order under a row lock. Accepts an Order or its id.

        Must be called inside ``transaction.atomic``.

        Raises:
            NotFound: if the order is missing or soft-deleted
        """
        order_id = getattr(order, "pk", order)
        locked = Order.objects.select_for_update().filter(pk=order_id).first()
        if locked is None:
            raise NotFound("Order", order_id)
        return locked

    @staticmethod
    def recalculate_totals(order: Order, items: Optional[List[OrderItem]] = None) -> Order:
        """
        Recompute the derived totals of an order in memory. Idempotent.

        Args:
            order: Order to update (not saved)
            items: billable items; loaded from the order when omitted
        """
        items = order.billable_items() if items is None else items
        totals = calculate_totals(
            [ItemSnapshot.from_item(item) for item in items],
            service_charge_percent=order.service_charge_percent,
            order_type=order.order_type,
            discount_percent=order.discount_percent,
            surcharge=order.surcharge,
            fixed_discount=order.discount,
        )
        order.subtotal = totals.subtotal
        order.service_charge = totals.service_charge
        order.service_charge_percent = totals.service_charge_percent
        order.discount = totals.discount
        order.surcharge = totals.surcharge
        order.grand_total = totals.grand_total
        order.all_items_ready = totals.all_items_ready
        return order

    @staticmethod
    def update_status_from_items(order: Order, items: Optional[List[OrderItem]] = None) -> Order:
        items = order.billable_items() if items is None else items
        new_status = derive_status(order.status, [ItemSnapshot.from_item(item) for item in items])
        if new_status != order.status:
            logger.debug(f"Order {order.order_number}: status {order.status} -> {new_status}")
            order.status = new_status
        return order

    @staticmethod
    def save_derived_state(order: Order) -> Order:
        """Recalculate totals and status from the current items, then save."""
        items = order.billable_items()
        OrderService.recalculate_totals(order, items)
        OrderService.update_status_from_items(order, items)
        order.save()
        return order

    @staticmethod
    def enforce_active_items_postcondition(order: Order, actor=None) -> Optional[str]:
        """
        Cascade item removal up to the order. Run after every operation that
        deletes or cancels an item.

        - no non-deleted items left: the order itself is soft-deleted
        - only cancelled items left: the order becomes cancelled
        - every remaining line covered by partial payments: the order is paid

        Returns:
            'deleted', 'cancelled', 'paid' or None when nothing cascaded
        """
        from payments.services import PaymentService

        actor = resolve_actor(actor)
        actor_id = actor.id if actor else None
        remaining = list(order.items.all())

        if not remaining:
            order.mark_deleted(actor_id)
            order.save()
            logger.info(f"Order {order.order_number} soft-deleted: no items left")
            table_release_requested.send(sender=Order, order=order, reason="deleted")
            order_updated.send(sender=Order, order=order, action="deleted")
            return "deleted"

        if order.is_terminal:
            return None

        if all(item.is_cancelled for item in remaining):
            OrderService._cancel(order, actor, reason="all items cancelled")
            return "cancelled"

        if PaymentService.complete_if_settled(order, actor):
            return "paid"

        return None

    @staticmethod
    def _cancel(order: Order, actor, reason: str = ""):
        order.status = Order.OrderStatus.CANCELLED
        order.cancelled_at = timezone.now()
        order.cancelled_by_id = actor.id if actor else None
        order.cancellation_reason = reason or ""
        OrderService.recalculate_totals(order)
        order.save()
        logger.info(f"Order {order.order_number} cancelled ({reason or 'no reason'})")
        order_cancelled.send(sender=Order, order=order, actor=actor, reason=reason)
        table_release_requested.send(sender=Order, order=order, reason="cancelled")

    @staticmethod
    def ensure_editable(order: Order):
        """Waiter-side edits are refused once the order is terminal."""
        if order.status == Order.OrderStatus.PAID or order.is_paid:
            raise AlreadyPaid()
        if order.status == Order.OrderStatus.CANCELLED:
            raise AlreadyCancelled("Order is cancelled")

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_lines(restaurant, items: Iterable[dict]):
        """
        Turn raw item payloads into (Food, quantity, notes) tuples.

        Each payload needs ``food`` (Food or id) and optionally ``quantity``
        (default 1) and ``notes``.
        """
        items = list(items or [])
        if not items:
            raise ValidationFailed("An order needs at least one item", field="items")

        food_ids = []
        for payload in items:
            food = payload.get("food")
            if food is None:
                raise ValidationFailed("Each item needs a food", field="items")
            food_ids.append(getattr(food, "pk", food))

        foods = {
            str(f.pk): f
            for f in Food.objects.filter(restaurant=restaurant, pk__in=food_ids).select_related("category")
        }

        lines = []
        for payload, food_id in zip(items, food_ids):
            food = foods.get(str(food_id))
            if food is None:
                raise NotFound("Food", food_id)
            quantity = payload.get("quantity", 1)
            if not isinstance(quantity, int) or quantity < 1:
                raise ValidationFailed("Quantity must be at least 1", field="quantity")
            lines.append((food, quantity, payload.get("notes", "")))
        return lines

    @staticmethod
    def _next_order_number(restaurant, business_date) -> int:
        def seed():
            current = Order.all_objects.filter(
                restaurant=restaurant, business_date=business_date
            ).aggregate(top=Max("order_number"))["top"]
            return current or 0

        return SequenceCounter.next_value(restaurant, f"order:{business_date.isoformat()}", seed=seed)

    @staticmethod
    def _next_saboy_number(restaurant, business_date) -> int:
        def seed():
            current = Order.all_objects.filter(
                restaurant=restaurant,
                business_date=business_date,
                order_type=Order.OrderType.SABOY,
            ).aggregate(top=Max("saboy_number"))["top"]
            return current or 0

        return SequenceCounter.next_value(restaurant, f"saboy:{business_date.isoformat()}", seed=seed)

    @staticmethod
    @transaction.atomic
    def create_order(
        restaurant,
        actor,
        items: Iterable[dict],
        order_type: str = Order.OrderType.DINE_IN,
        table=None,
        saboy_number: Optional[int] = None,
        comment: str = "",
        discount_percent=Decimal("0"),
    ) -> Order:
        """
        Create an order under the restaurant's active shift.

        A dine-in order for a table that already has an unpaid order in the
        current shift is not duplicated: the items are added to that order.

        Args:
            restaurant: Restaurant taking the order
            actor: waiter/admin placing it (anything resolve_actor accepts)
            items: list of {'food', 'quantity', 'notes'} payloads
            order_type: 'dine-in', 'saboy' or 'takeaway'
            table: Table for dine-in orders
            saboy_number: pickup number; assigned from the daily sequence when omitted
            comment: free-form note
            discount_percent: percent discount for the whole order

        Raises:
            NoActiveShift: no shift is open
            ValidationFailed: empty item list or bad quantity
            FoodUnavailable: stop-listed or over-limit foods
        """
        from orders.services.item_service import OrderItemService
        from shifts.services import ShiftService

        actor = resolve_actor(actor)

        if order_type not in Order.OrderType.values:
            raise ValidationFailed(f"Unknown order type '{order_type}'", field="order_type")

        shift = ShiftService.get_active_shift(restaurant)
        if shift is None:
            raise NoActiveShift()

        lines = OrderService._resolve_lines(restaurant, items)
        FoodAvailabilityService.ensure_available((food, qty) for food, qty, _ in lines)

        if order_type == Order.OrderType.DINE_IN and table is not None:
            existing = (
                Order.objects.select_for_update()
                .filter(restaurant=restaurant, table=table, shift=shift, is_paid=False)
                .exclude(status__in=Order.TERMINAL_STATUSES)
                .first()
            )
            if existing is not None:
                logger.info(f"Table {table.title} already has order {existing.order_number}; adding items to it")
                return OrderItemService.add_lines(existing, lines, actor)

        business_date = timezone.localdate()
        if order_type == Order.OrderType.SABOY and saboy_number is None:
            saboy_number = OrderService._next_saboy_number(restaurant, business_date)

        is_staff_order = actor is not None and actor.role in ("waiter", "admin", "cashier")
        now = timezone.now()

        order = Order.objects.create(
            restaurant=restaurant,
            shift=shift,
            order_number=OrderService._next_order_number(restaurant, business_date),
            business_date=business_date,
            order_type=order_type,
            saboy_number=saboy_number if order_type == Order.OrderType.SABOY else None,
            table=table if order_type == Order.OrderType.DINE_IN else None,
            comment=comment or "",
            waiter_id=actor.id if actor else None,
            waiter_name=actor.display_name if actor else "",
            waiter_approved=is_staff_order,
            approved_at=now if is_staff_order else None,
            approved_by_id=actor.id if is_staff_order else None,
            status=Order.OrderStatus.APPROVED if is_staff_order else Order.OrderStatus.PENDING,
            service_charge_percent=restaurant.service_charge_percent,
            discount_percent=discount_percent,
            surcharge=table.surcharge if table is not None and order_type == Order.OrderType.DINE_IN else Decimal("0"),
        )

        created_items = [
            OrderItemService.append_item(order, food, quantity, actor, notes=notes)
            for food, quantity, notes in lines
        ]
        FoodAvailabilityService.record_ordered((food, qty) for food, qty, _ in lines)
        OrderService.save_derived_state(order)

        logger.info(
            f"Order {order.order_number} created ({order.order_type}, {len(created_items)} items, "
            f"shift #{shift.shift_number}) by {order.waiter_name or order.waiter_id}"
        )

        order_created.send(sender=Order, order=order, actor=actor)
        if order.table_id:
            table_occupied.send(sender=Order, order=order)
        return order

    # ------------------------------------------------------------------
    # Approval
    # ------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def approve_order(order, actor) -> Order:
        actor = resolve_actor(actor)
        order = OrderService.lock_order(order)
        OrderService.ensure_editable(order)

        if order.waiter_approved:
            raise AlreadyApproved()

        order.waiter_approved = True
        order.approved_at = timezone.now()
        order.approved_by_id = actor.id if actor else None
        if order.status == Order.OrderStatus.PENDING:
            order.status = Order.OrderStatus.APPROVED
        OrderService.save_derived_state(order)

        logger.info(f"Order {order.order_number} approved")
        order_updated.send(sender=Order, order=order, action="approved")
        return order

    @staticmethod
    @transaction.atomic
    def reject_order(order, actor, reason: str = "") -> Order:
        actor = resolve_actor(actor)
        order = OrderService.lock_order(order)
        OrderService.ensure_editable(order)

        order.waiter_rejected = True
        order.rejected_at = timezone.now()
        OrderService._cancel(order, actor, reason=reason or "rejected")
        return order

    @staticmethod
    @transaction.atomic
    def set_discount(order, discount_percent) -> Order:
        """Apply a percent discount to the whole order."""
        order = OrderService.lock_order(order)
        OrderService.ensure_editable(order)

        discount_percent = Decimal(str(discount_percent))
        if discount_percent < 0 or discount_percent > 100:
            raise ValidationFailed("Discount must be between 0 and 100 percent", field="discount_percent")

        order.discount_percent = discount_percent
        if discount_percent == 0:
            order.discount = Decimal("0")
        OrderService.save_derived_state(order)
        order_updated.send(sender=Order, order=order, action="discount")
        return order

    # ------------------------------------------------------------------
    # Table and waiter reassignment
    # ------------------------------------------------------------------

    @staticmethod
    def _get_waiter(restaurant, waiter) -> StaffMember:
        """An active waiter of the restaurant, or NotFound."""
        waiter_id = getattr(waiter, "pk", waiter)
        found = StaffMember.objects.filter(
            restaurant=restaurant,
            pk=waiter_id,
            role=StaffMember.Role.WAITER,
            is_active=True,
        ).first()
        if found is None:
            raise NotFound("Waiter", waiter_id)
        return found

    @staticmethod
    @transaction.atomic
    def transfer_order(order, new_table, actor, new_waiter=None) -> Order:
        """
        Move a dine-in order to another table, optionally handing it to
        another waiter.

        The first transfer records the original table and waiter. The service
        charge stays credited to the original waiter. The table surcharge
        fixed at creation is kept.

        Args:
            order: Order or order id
            new_table: Table (or id) of the same restaurant
            actor: staff performing the move
            new_waiter: StaffMember (or id) taking over; keeps the waiter when omitted

        Raises:
            ValidationFailed: not a dine-in order, same table, or the target is occupied
            NotFound: unknown table or waiter
            AlreadyPaid / AlreadyCancelled: the order is terminal
        """
        actor = resolve_actor(actor)
        order = OrderService.lock_order(order)
        OrderService.ensure_editable(order)

        if order.order_type != Order.OrderType.DINE_IN:
            raise ValidationFailed("Only dine-in orders can change tables", field="table")

        table_id = getattr(new_table, "pk", new_table)
        table = Table.objects.filter(restaurant_id=order.restaurant_id, pk=table_id).first()
        if table is None:
            raise NotFound("Table", table_id)
        if table.pk == order.table_id:
            raise ValidationFailed("Order is already at this table", field="table")

        occupied = (
            Order.objects.filter(
                restaurant_id=order.restaurant_id, table=table, shift_id=order.shift_id, is_paid=False
            )
            .exclude(status__in=Order.TERMINAL_STATUSES)
            .exclude(pk=order.pk)
            .exists()
        )
        if occupied:
            raise ValidationFailed(f"Table {table.title} is occupied", field="table")

        waiter = OrderService._get_waiter(order.restaurant_id, new_waiter) if new_waiter is not None else None
        now = timezone.now()
        old_table_id = order.table_id

        order.transfer_history = list(order.transfer_history or []) + [{
            "from_table_id": str(old_table_id) if old_table_id else None,
            "to_table_id": str(table.pk),
            "from_waiter_id": str(order.waiter_id) if order.waiter_id else None,
            "to_waiter_id": str(waiter.pk) if waiter else None,
            "transferred_at": now.isoformat(),
            "transferred_by_id": str(actor.id) if actor else None,
        }]
        if order.original_table_id is None:
            order.original_table_id = old_table_id
            order.original_waiter_id = order.waiter_id
            order.original_waiter_name = order.waiter_name
        order.service_charge_waiter_id = order.original_waiter_id or order.waiter_id
        order.transferred_from_table_id = old_table_id
        order.transferred_at = now
        order.table = table
        if waiter is not None:
            order.waiter_id = waiter.pk
            order.waiter_name = waiter.full_name
        order.save()

        logger.info(f"Order {order.order_number} moved to table {table.title}")
        if old_table_id:
            table_release_requested.send(sender=Order, order=order, reason="transferred", table_id=old_table_id)
        table_occupied.send(sender=Order, order=order)
        order_updated.send(
            sender=Order,
            order=order,
            action="transferred",
            extra={"fromTableId": str(old_table_id) if old_table_id else None},
        )
        return order

    @staticmethod
    @transaction.atomic
    def change_waiter(order, waiter, actor=None) -> Order:
        """
        Hand an order to another active waiter of the same restaurant.

        Raises:
            NotFound: the waiter is unknown, inactive or not a waiter
        """
        order = OrderService.lock_order(order)
        OrderService.ensure_editable(order)
        waiter = OrderService._get_waiter(order.restaurant_id, waiter)

        old_waiter_id = order.waiter_id
        order.waiter_id = waiter.pk
        order.waiter_name = waiter.full_name
        order.save()

        logger.info(f"Order {order.order_number} handed to waiter {waiter.full_name}")
        order_updated.send(
            sender=Order,
            order=order,
            action="waiter_changed",
            extra={
                "oldWaiterId": str(old_waiter_id) if old_waiter_id else None,
                "newWaiterId": str(waiter.pk),
            },
        )
        return order
