from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone
import logging

from core_backend.actors import resolve_actor
from core_backend.exceptions import ActiveShiftExists, NotFound, ValidationFailed
from orders.models import Order
from payments.money import ZERO, round_amount, to_decimal
from restaurants.models import SequenceCounter
from .models import Shift
from .signals import shift_closed, shift_opened

logger = logging.getLogger(__name__)

SHIFT_COUNTER_KEY = "shift"


@dataclass
class ShiftStats:
    total_orders: int = 0
    paid_orders: int = 0
    cancelled_orders: int = 0
    total_revenue: Decimal = ZERO
    food_revenue: Decimal = ZERO
    service_revenue: Decimal = ZERO
    cash_payments: Decimal = ZERO
    card_payments: Decimal = ZERO
    click_payments: Decimal = ZERO
    mixed_payments: Decimal = ZERO
    average_order_value: Decimal = ZERO
    total_items_sold: int = 0
    total_cancelled_items: int = 0
    cancelled_items_value: Decimal = ZERO

    def as_dict(self):
        return asdict(self)


class ShiftStatsCalculator:
    """
    Scans a shift's orders into a ShiftStats snapshot.

    Revenue counts paid orders only. Mixed payments add to ``mixed_payments``
    and also distribute their recorded split over cash/card/click.
    """

    PAYMENT_BUCKETS = {
        Order.PaymentType.CASH: "cash_payments",
        Order.PaymentType.CARD: "card_payments",
        Order.PaymentType.CLICK: "click_payments",
    }

    @classmethod
    def calculate(cls, orders: Iterable[Order]) -> ShiftStats:
        stats = ShiftStats()

        for order in orders:
            stats.total_orders += 1

            if order.is_paid:
                stats.paid_orders += 1
                stats.total_revenue += order.grand_total
                stats.food_revenue += order.subtotal
                stats.service_revenue += order.service_charge

                if order.payment_type == Order.PaymentType.MIXED:
                    stats.mixed_payments += order.grand_total
                    stats.cash_payments += order.payment_split_cash
                    stats.card_payments += order.payment_split_card
                    stats.click_payments += order.payment_split_click
                elif order.payment_type in cls.PAYMENT_BUCKETS:
                    bucket = cls.PAYMENT_BUCKETS[order.payment_type]
                    setattr(stats, bucket, getattr(stats, bucket) + order.grand_total)

            if order.status == Order.OrderStatus.CANCELLED:
                stats.cancelled_orders += 1

            for item in order.items.all():
                if item.is_cancelled:
                    stats.total_cancelled_items += item.quantity
                    stats.cancelled_items_value += item.total_price
                else:
                    stats.total_items_sold += item.quantity

        if stats.paid_orders:
            stats.average_order_value = round_amount(stats.total_revenue / stats.paid_orders)
        return stats

    @classmethod
    def for_shift(cls, shift: Shift) -> ShiftStats:
        orders = Order.objects.filter(shift=shift).prefetch_related("items")
        return cls.calculate(orders)


class ShiftService:
    """Opens and closes shifts and moves unpaid orders across the boundary."""

    @staticmethod
    def get_active_shift(restaurant) -> Optional[Shift]:
        """The restaurant's single active shift, or None."""
        return Shift.objects.filter(restaurant=restaurant, status=Shift.Status.ACTIVE).first()

    @staticmethod
    def _shift_number_seed(restaurant):
        # Soft-deleted shifts count so numbers are never reused
        def seed():
            top = Shift.all_objects.filter(restaurant=restaurant).aggregate(top=Max("shift_number"))["top"]
            return top or 0

        return seed

    @staticmethod
    def _validate_cash(value, field_name) -> Decimal:
        if value is None:
            raise ValidationFailed(f"{field_name} is required", field=field_name)
        try:
            amount = to_decimal(value)
        except (ArithmeticError, ValueError, TypeError):
            raise ValidationFailed(f"{field_name} must be a number", field=field_name)
        if amount < ZERO:
            raise ValidationFailed(f"{field_name} cannot be negative", field=field_name)
        return amount

    @staticmethod
    @transaction.atomic
    def open_shift(restaurant, actor, opening_cash=ZERO, notes: str = "") -> Shift:
        """
        Open a new shift and adopt orphaned unpaid orders into it.

        Args:
            restaurant: Restaurant opening the shift
            actor: admin opening it
            opening_cash: cash in the drawer at open
            notes: opening notes

        Raises:
            ActiveShiftExists: another shift is still active
            ValidationFailed: negative or malformed opening cash
        """
        actor = resolve_actor(actor)
        opening_cash = ShiftService._validate_cash(opening_cash, "opening_cash")
        seed = ShiftService._shift_number_seed(restaurant)

        # Serializes concurrent open/close for this restaurant
        SequenceCounter.lock(restaurant, SHIFT_COUNTER_KEY, seed=seed)

        existing = ShiftService.get_active_shift(restaurant)
        if existing is not None:
            raise ActiveShiftExists(existing)

        shift_number = SequenceCounter.next_value(restaurant, SHIFT_COUNTER_KEY, seed=seed)
        try:
            with transaction.atomic():
                shift = Shift.objects.create(
                    restaurant=restaurant,
                    shift_number=shift_number,
                    status=Shift.Status.ACTIVE,
                    opened_at=timezone.now(),
                    opened_by_id=actor.id if actor else None,
                    opened_by_name=actor.display_name if actor else "",
                    opening_cash=opening_cash,
                    opening_notes=notes or "",
                )
        except IntegrityError:
            raise ActiveShiftExists(ShiftService.get_active_shift(restaurant))

        adopted_ids = ShiftService._adopt_orphaned_orders(shift)
        shift.transferred_order_ids = [str(order_id) for order_id in adopted_ids]
        shift.save(update_fields=["transferred_order_ids", "updated_at"])

        logger.info(
            f"Shift #{shift.shift_number} opened for {restaurant} by {shift.opened_by_name or shift.opened_by_id} "
            f"(opening cash {opening_cash}, adopted {len(adopted_ids)} order(s))"
        )
        shift_opened.send(sender=Shift, shift=shift, adopted_order_ids=adopted_ids)
        return shift

    @staticmethod
    def _adopt_orphaned_orders(shift: Shift) -> List:
        """Attach every unpaid, non-terminal order without a shift."""
        orphans = (
            Order.objects.select_for_update()
            .filter(restaurant=shift.restaurant, shift__isnull=True, is_paid=False)
            .exclude(status__in=Order.TERMINAL_STATUSES)
        )
        adopted_ids = list(orphans.values_list("id", flat=True))
        if adopted_ids:
            Order.objects.filter(id__in=adopted_ids).update(
                shift=shift, transferred_to_shift_at=timezone.now()
            )
            logger.debug(f"Shift #{shift.shift_number} adopted orders {adopted_ids}")
        return adopted_ids

    @staticmethod
    @transaction.atomic
    def close_shift(restaurant, actor, closing_cash, notes: str = "") -> Shift:
        """
        Close the active shift.

        Statistics are computed over every order of the shift, unpaid
        non-terminal orders are detached (shift cleared, origin recorded) for
        the next shift to adopt, and the drawer is reconciled:
        ``expected = opening_cash + cash_payments``,
        ``difference = closing_cash - expected``.

        Raises:
            ValidationFailed: closing cash missing or negative
            NotFound: no active shift
        """
        actor = resolve_actor(actor)
        closing_cash = ShiftService._validate_cash(closing_cash, "closing_cash")

        SequenceCounter.lock(restaurant, SHIFT_COUNTER_KEY, seed=ShiftService._shift_number_seed(restaurant))

        shift = (
            Shift.objects.select_for_update()
            .filter(restaurant=restaurant, status=Shift.Status.ACTIVE)
            .first()
        )
        if shift is None:
            raise NotFound("Active shift")

        stats = ShiftStatsCalculator.for_shift(shift)
        for name, value in stats.as_dict().items():
            setattr(shift, name, value)

        detached_ids = ShiftService._detach_unpaid_orders(shift)

        shift.status = Shift.Status.CLOSED
        shift.closed_at = timezone.now()
        shift.closed_by_id = actor.id if actor else None
        shift.closed_by_name = actor.display_name if actor else ""
        shift.closing_cash = closing_cash
        shift.closing_notes = notes or ""
        shift.expected_closing_cash = shift.opening_cash + stats.cash_payments
        shift.cash_difference = closing_cash - shift.expected_closing_cash
        shift.save()

        logger.info(
            f"Shift #{shift.shift_number} closed: {stats.paid_orders}/{stats.total_orders} paid, "
            f"revenue {stats.total_revenue}, cash difference {shift.cash_difference}, "
            f"{len(detached_ids)} unpaid order(s) carried over"
        )
        shift_closed.send(sender=Shift, shift=shift, detached_order_ids=detached_ids)
        return shift

    @staticmethod
    def _detach_unpaid_orders(shift: Shift) -> List:
        """Orphan unpaid, non-terminal orders. Paid orders keep their shift."""
        unpaid = (
            Order.objects.select_for_update()
            .filter(shift=shift, is_paid=False)
            .exclude(status__in=Order.TERMINAL_STATUSES)
        )
        detached_ids = list(unpaid.values_list("id", flat=True))
        if detached_ids:
            Order.objects.filter(id__in=detached_ids).update(shift=None, transferred_from_shift=shift)
        return detached_ids

    @staticmethod
    def get_current_stats(shift: Shift) -> ShiftStats:
        """Live statistics for a shift without persisting them."""
        return ShiftStatsCalculator.for_shift(shift)

    @staticmethod
    def get_shift_history(restaurant, limit: int = 20) -> List[Shift]:
        return list(
            Shift.objects.filter(restaurant=restaurant, status=Shift.Status.CLOSED)
            .order_by("-opened_at", "-shift_number")[:limit]
        )

    @staticmethod
    def get_shift_orders(shift: Shift, status: Optional[str] = None) -> List[Order]:
        orders = Order.objects.filter(shift=shift).prefetch_related("items")
        if status:
            orders = orders.filter(status=status)
        return list(orders.order_by("-created_at"))

    @staticmethod
    def update_notes(shift, opening_notes: Optional[str] = None, closing_notes: Optional[str] = None) -> Shift:
        shift_id = getattr(shift, "pk", shift)
        shift = Shift.objects.filter(pk=shift_id).first()
        if shift is None:
            raise NotFound("Shift", shift_id)

        update_fields = ["updated_at"]
        if opening_notes is not None:
            shift.opening_notes = opening_notes
            update_fields.append("opening_notes")
        if closing_notes is not None:
            shift.closing_notes = closing_notes
            update_fields.append("closing_notes")
        shift.save(update_fields=update_fields)
        return shift
