from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Set
import uuid

from django.db import transaction
from django.utils import timezone
import logging

from core_backend.actors import resolve_actor
from core_backend.exceptions import AlreadyPaid, ValidationFailed
from orders.calculators import ItemSnapshot, calculate_totals
from orders.models import Order, OrderItem
from orders.services import OrderService
from orders.signals import table_release_requested
from .models import PaymentSession
from .money import SPLIT_KEYS, ZERO, normalize_split
from .signals import partial_payment_recorded, payment_completed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartialPaymentResult:
    session: PaymentSession
    is_fully_paid: bool
    paid_total: Decimal
    remaining_total: Decimal

    @property
    def session_id(self):
        return self.session.session_id


class PaymentService:
    """
    Settles orders, fully or item by item.

    Full payment flags the order directly. Partial payment appends a
    PaymentSession per settlement and only flags the order once every
    billable item is covered by some session.
    """

    @staticmethod
    def paid_item_ids(order) -> Set[uuid.UUID]:
        """Ids of items covered by any payment session of the order."""
        ids = set()
        for item_ids in PaymentSession.objects.filter(order=order).values_list("paid_item_ids", flat=True):
            ids.update(uuid.UUID(str(item_id)) for item_id in item_ids)
        return ids

    @staticmethod
    def get_unpaid_items(order) -> List[OrderItem]:
        """Billable items not yet covered by a payment session."""
        paid = PaymentService.paid_item_ids(order)
        return [item for item in order.billable_items() if item.pk not in paid]

    @staticmethod
    def _subset_totals(order: Order, items: Iterable[OrderItem]):
        """Subtotal/service charge/total for a subset; exemptions still apply."""
        totals = calculate_totals(
            [ItemSnapshot.from_item(item) for item in items],
            service_charge_percent=order.service_charge_percent,
            order_type=order.order_type,
        )
        return totals.subtotal, totals.service_charge, totals.subtotal + totals.service_charge

    @staticmethod
    def _validate_payment(payment_type: str, split) -> dict:
        """
        Validate the payment type and return the normalized split.

        A mixed payment must carry its cash/card/click split; the split is
        persisted exactly as given.
        """
        if payment_type not in Order.PaymentType.values:
            raise ValidationFailed(f"Unknown payment type '{payment_type}'", field="payment_type")

        try:
            normalized = normalize_split(split)
        except ValueError as e:
            raise ValidationFailed(str(e), field="payment_split")

        if payment_type == Order.PaymentType.MIXED and sum(normalized.values(), ZERO) <= ZERO:
            raise ValidationFailed("A mixed payment requires a cash/card/click split", field="payment_split")
        return normalized

    @staticmethod
    def _session_split(session: PaymentSession) -> dict:
        if session.payment_type == Order.PaymentType.MIXED:
            return session.split
        split = {key: ZERO for key in SPLIT_KEYS}
        if session.payment_type in split:
            split[session.payment_type] = session.total
        return split

    @staticmethod
    def _aggregate_split(sessions: Iterable[PaymentSession]) -> dict:
        """Combined split over several sessions, used when they complete an order."""
        combined = {key: ZERO for key in SPLIT_KEYS}
        for session in sessions:
            for key, value in PaymentService._session_split(session).items():
                combined[key] += value
        return combined

    @staticmethod
    def _mark_paid(order: Order, actor, payment_type: str, split: dict, comment: str):
        now = timezone.now()
        order.is_paid = True
        order.status = Order.OrderStatus.PAID
        order.payment_type = payment_type
        order.set_payment_split(split)
        if comment:
            order.payment_comment = comment
        order.paid_at = now
        order.paid_by_id = actor.id if actor else None
        order.paid_by_name = actor.display_name if actor else ""

    @staticmethod
    def complete_if_settled(order: Order, actor=None, comment: str = "") -> bool:
        """
        Mark an order paid when its payment sessions cover every billable item.

        Called after a partial payment and after items are cancelled or
        removed, since dropping the last unpaid line also settles the order.
        The order must already be locked by the caller.

        Returns:
            True if the order was marked paid
        """
        if order.is_paid or order.status == Order.OrderStatus.CANCELLED:
            return False

        sessions = list(PaymentSession.objects.filter(order=order))
        if not sessions or PaymentService.get_unpaid_items(order):
            return False

        actor = resolve_actor(actor)
        PaymentService._mark_paid(
            order, actor, Order.PaymentType.MIXED, PaymentService._aggregate_split(sessions), comment
        )
        OrderService.recalculate_totals(order)
        order.save()
        logger.info(f"Order {order.order_number} fully settled by {len(sessions)} partial payment(s)")
        payment_completed.send(sender=Order, order=order, actor=actor, partial=True)
        table_release_requested.send(sender=Order, order=order, reason="paid")
        return True

    @staticmethod
    @transaction.atomic
    def process_payment(
        order,
        payment_type: str,
        actor,
        split: Optional[dict] = None,
        comment: str = "",
    ) -> Order:
        """
        Settle a whole order.

        Args:
            order: Order or order id
            payment_type: 'cash', 'card', 'click' or 'mixed'
            actor: cashier/admin taking the payment
            split: {'cash', 'card', 'click'} amounts; required for mixed
            comment: optional payment note

        Raises:
            AlreadyPaid: the order is already paid
            ValidationFailed: cancelled order, unknown type or missing mixed split
        """
        actor = resolve_actor(actor)
        order = OrderService.lock_order(order)

        if order.is_paid:
            raise AlreadyPaid()
        if order.status == Order.OrderStatus.CANCELLED:
            raise ValidationFailed("Cancelled orders cannot be paid")

        normalized = PaymentService._validate_payment(payment_type, split)

        sessions = list(PaymentSession.objects.filter(order=order))
        if sessions:
            # Earlier partial sessions plus this remainder make a mixed settlement.
            # Sessions never carry the surcharge or discount, so the remainder
            # is taken against the grand total.
            OrderService.recalculate_totals(order)
            already_paid = sum((session.total for session in sessions), ZERO)
            remaining = max(order.grand_total - already_paid, ZERO)
            remainder_split = normalized
            if payment_type != Order.PaymentType.MIXED:
                remainder_split = {key: ZERO for key in SPLIT_KEYS}
                remainder_split[payment_type] = remaining
            combined = PaymentService._aggregate_split(sessions)
            for key in SPLIT_KEYS:
                combined[key] += remainder_split[key]
            PaymentService._mark_paid(order, actor, Order.PaymentType.MIXED, combined, comment)
        else:
            PaymentService._mark_paid(order, actor, payment_type, normalized, comment)

        OrderService.recalculate_totals(order)
        order.save()

        logger.info(
            f"Order {order.order_number} paid ({order.payment_type}, {order.grand_total}) "
            f"by {order.paid_by_name or order.paid_by_id}"
        )

        payment_completed.send(sender=Order, order=order, actor=actor, partial=False)
        table_release_requested.send(sender=Order, order=order, reason="paid")
        return order

    @staticmethod
    @transaction.atomic
    def process_partial_payment(
        order,
        item_ids: Iterable,
        payment_type: str,
        actor,
        split: Optional[dict] = None,
        comment: str = "",
    ) -> PartialPaymentResult:
        """
        Settle a caller-selected subset of the order's unpaid items.

        The subset is totalled on its own (service charge exemption for
        saboy/takeaway still applies) and recorded as an immutable
        PaymentSession. Once every billable item is covered the order is
        marked paid with type 'mixed' and its table released.

        Returns:
            PartialPaymentResult with the session and the remaining unpaid total

        Raises:
            AlreadyPaid: the order is already paid
            ValidationFailed: no selected item is payable, or bad type/split
        """
        actor = resolve_actor(actor)
        order = OrderService.lock_order(order)

        if order.is_paid:
            raise AlreadyPaid()
        if order.status == Order.OrderStatus.CANCELLED:
            raise ValidationFailed("Cancelled orders cannot be paid")

        normalized = PaymentService._validate_payment(payment_type, split)

        requested = {str(item_id) for item_id in (item_ids or [])}
        unpaid = PaymentService.get_unpaid_items(order)
        selected = [item for item in unpaid if str(item.pk) in requested]
        if not selected:
            raise ValidationFailed("No payable items selected", field="item_ids")

        subtotal, service_charge, total = PaymentService._subset_totals(order, selected)

        session = PaymentSession.objects.create(
            order=order,
            paid_item_ids=[str(item.pk) for item in selected],
            subtotal=subtotal,
            service_charge=service_charge,
            total=total,
            payment_type=payment_type,
            split_cash=normalized["cash"],
            split_card=normalized["card"],
            split_click=normalized["click"],
            comment=comment or "",
            paid_by_id=actor.id if actor else None,
            paid_by_name=actor.display_name if actor else "",
        )

        selected_ids = {item.pk for item in selected}
        still_unpaid = [item for item in unpaid if item.pk not in selected_ids]
        _, _, remaining_total = PaymentService._subset_totals(order, still_unpaid)
        is_fully_paid = not still_unpaid

        logger.info(
            f"Partial payment {session.session_id} on order {order.order_number}: "
            f"{len(selected)} item(s), {total}; remaining {remaining_total}"
        )
        partial_payment_recorded.send(
            sender=Order, order=order, session=session, is_fully_paid=is_fully_paid
        )

        if is_fully_paid:
            PaymentService.complete_if_settled(order, actor, comment)

        return PartialPaymentResult(
            session=session,
            is_fully_paid=is_fully_paid,
            paid_total=total,
            remaining_total=remaining_total,
        )
