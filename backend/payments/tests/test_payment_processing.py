"""
Payment Processing Tests

Tests for payment processing functionality including:
- Full payments (cash, card, click)
- Mixed payments with a cash/card/click split
- Partial payments item by item
- Table release once an order is settled
"""
import uuid
import pytest
from decimal import Decimal

from core_backend.exceptions import AlreadyPaid, ValidationFailed
from orders.models import Order, OrderItem
from orders.services import OrderItemService, OrderService
from payments.models import PaymentSession
from payments.services import PaymentService
from restaurants.models import Table


@pytest.mark.django_db
class TestFullPayment:
    """Test settling a whole order at once"""

    def test_cash_payment(self, dine_in_order, cashier, table):
        """
        CRITICAL: A paid order is flagged, stamped and releases its table

        Business Impact: the table must be free for the next guests
        """
        order = PaymentService.process_payment(dine_in_order, Order.PaymentType.CASH, cashier)

        assert order.is_paid is True
        assert order.status == Order.OrderStatus.PAID
        assert order.payment_type == Order.PaymentType.CASH
        assert order.paid_by_id == cashier.id
        assert order.paid_by_name == "Bekzod"
        assert order.paid_at is not None
        assert order.grand_total == Decimal("71500")

        table.refresh_from_db()
        assert table.status == Table.Status.FREE
        assert table.active_order_id is None

    def test_mixed_payment_keeps_split(self, dine_in_order, cashier):
        split = {"cash": Decimal("30000"), "card": Decimal("41500")}

        order = PaymentService.process_payment(dine_in_order, Order.PaymentType.MIXED, cashier, split=split)

        order.refresh_from_db()
        assert order.payment_type == Order.PaymentType.MIXED
        assert order.payment_split == {
            "cash": Decimal("30000"),
            "card": Decimal("41500"),
            "click": Decimal("0"),
        }

    def test_mixed_payment_requires_split(self, dine_in_order, cashier):
        with pytest.raises(ValidationFailed):
            PaymentService.process_payment(dine_in_order, Order.PaymentType.MIXED, cashier)

    def test_unknown_payment_type(self, dine_in_order, cashier):
        with pytest.raises(ValidationFailed):
            PaymentService.process_payment(dine_in_order, "crypto", cashier)

    def test_double_payment(self, dine_in_order, cashier):
        """CRITICAL: an order can only be paid once"""
        PaymentService.process_payment(dine_in_order, Order.PaymentType.CARD, cashier)

        with pytest.raises(AlreadyPaid):
            PaymentService.process_payment(dine_in_order, Order.PaymentType.CASH, cashier)

    def test_cancelled_order_cannot_be_paid(self, active_shift, make_order, plov, cashier):
        order = make_order([(plov, 1)], order_type=Order.OrderType.TAKEAWAY)
        OrderItemService.cancel_item(order, order.items.get().id)

        with pytest.raises(ValidationFailed):
            PaymentService.process_payment(order, Order.PaymentType.CASH, cashier)


@pytest.mark.django_db
class TestPartialPayment:
    """Test settling an order item by item"""

    def test_partial_then_complete(self, dine_in_order, plov, tea, cashier, table):
        """
        CRITICAL: Paying every item separately completes the order as mixed

        Business Impact: guests splitting the bill must still close the table
        """
        plov_item = dine_in_order.items.get(food=plov)
        tea_item = dine_in_order.items.get(food=tea)

        first = PaymentService.process_partial_payment(
            dine_in_order, [plov_item.id], Order.PaymentType.CARD, cashier
        )

        assert first.is_fully_paid is False
        assert first.paid_total == Decimal("55000"), "50 000 + 10% service charge"
        assert first.remaining_total == Decimal("16500")
        assert first.session_id.startswith("PS-")

        order = Order.objects.get(pk=dine_in_order.pk)
        assert order.is_paid is False
        table.refresh_from_db()
        assert table.status == Table.Status.OCCUPIED

        second = PaymentService.process_partial_payment(
            dine_in_order, [str(tea_item.id)], Order.PaymentType.CASH, cashier
        )

        assert second.is_fully_paid is True
        assert second.remaining_total == Decimal("0")

        order.refresh_from_db()
        assert order.is_paid is True
        assert order.status == Order.OrderStatus.PAID
        assert order.payment_type == Order.PaymentType.MIXED
        assert order.payment_split == {
            "cash": Decimal("16500"),
            "card": Decimal("55000"),
            "click": Decimal("0"),
        }
        assert PaymentSession.objects.filter(order=order).count() == 2

        table.refresh_from_db()
        assert table.status == Table.Status.FREE

    def test_partial_payment_of_saboy_order_has_no_service_charge(self, active_shift, make_order, plov, tea, cashier):
        order = make_order([(plov, 2), (tea, 3)], order_type=Order.OrderType.SABOY)

        result = PaymentService.process_partial_payment(
            order, [order.items.get(food=plov).id], Order.PaymentType.CLICK, cashier
        )

        assert result.session.service_charge == Decimal("0")
        assert result.paid_total == Decimal("50000")
        assert result.remaining_total == Decimal("15000")

    def test_empty_selection(self, dine_in_order, cashier):
        with pytest.raises(ValidationFailed):
            PaymentService.process_partial_payment(dine_in_order, [], Order.PaymentType.CASH, cashier)

    def test_unknown_items_are_not_payable(self, dine_in_order, cashier):
        with pytest.raises(ValidationFailed):
            PaymentService.process_partial_payment(
                dine_in_order, [uuid.uuid4()], Order.PaymentType.CASH, cashier
            )

    def test_item_cannot_be_paid_twice(self, dine_in_order, plov, cashier):
        item = dine_in_order.items.get(food=plov)
        PaymentService.process_partial_payment(dine_in_order, [item.id], Order.PaymentType.CASH, cashier)

        with pytest.raises(ValidationFailed):
            PaymentService.process_partial_payment(dine_in_order, [item.id], Order.PaymentType.CASH, cashier)

    def test_cancelled_items_are_skipped(self, dine_in_order, plov, tea, cashier):
        tea_item = dine_in_order.items.get(food=tea)
        OrderItemService.cancel_item(dine_in_order, tea_item.id)

        result = PaymentService.process_partial_payment(
            dine_in_order, [dine_in_order.items.get(food=plov).id, tea_item.id], Order.PaymentType.CASH, cashier
        )

        assert result.is_fully_paid is True
        assert result.session.paid_item_ids == [str(dine_in_order.items.get(food=plov).id)]

    def test_settled_item_is_locked(self, dine_in_order, plov, cashier):
        """Items covered by a partial payment cannot be removed or changed"""
        item = dine_in_order.items.get(food=plov)
        PaymentService.process_partial_payment(dine_in_order, [item.id], Order.PaymentType.CASH, cashier)

        with pytest.raises(AlreadyPaid):
            OrderItemService.remove_item(dine_in_order, item.id)
        with pytest.raises(AlreadyPaid):
            OrderItemService.update_item_quantity(dine_in_order, item.id, 5)
        with pytest.raises(AlreadyPaid):
            OrderItemService.cancel_item(dine_in_order, item.id)

    def test_new_portions_do_not_merge_into_settled_line(self, dine_in_order, plov, cashier):
        item = dine_in_order.items.get(food=plov)
        PaymentService.process_partial_payment(dine_in_order, [item.id], Order.PaymentType.CASH, cashier)

        order = OrderItemService.add_item(dine_in_order, plov, 1)

        assert order.items.filter(food=plov).count() == 2
        item.refresh_from_db()
        assert item.quantity == 2

    def test_full_payment_after_partial_is_mixed(self, dine_in_order, plov, cashier):
        item = dine_in_order.items.get(food=plov)
        PaymentService.process_partial_payment(dine_in_order, [item.id], Order.PaymentType.CARD, cashier)

        order = PaymentService.process_payment(dine_in_order, Order.PaymentType.CASH, cashier)

        assert order.payment_type == Order.PaymentType.MIXED
        assert order.payment_split["card"] == Decimal("55000")
        assert order.payment_split["cash"] == Decimal("16500")

    def test_get_unpaid_items(self, dine_in_order, plov, tea, cashier):
        PaymentService.process_partial_payment(
            dine_in_order, [dine_in_order.items.get(food=plov).id], Order.PaymentType.CASH, cashier
        )

        unpaid = PaymentService.get_unpaid_items(dine_in_order)

        assert [item.food_id for item in unpaid] == [tea.id]

    def test_sessions_are_immutable(self, dine_in_order, plov, cashier):
        result = PaymentService.process_partial_payment(
            dine_in_order, [dine_in_order.items.get(food=plov).id], Order.PaymentType.CASH, cashier
        )

        result.session.comment = "edited"
        with pytest.raises(ValueError):
            result.session.save()


@pytest.mark.django_db
class TestSettlementByItemChanges:
    """Dropping the last unpaid line settles an order already covered by partial payments"""

    def test_cancelling_last_unpaid_item_settles_order(self, dine_in_order, plov, tea, cashier, table):
        """
        CRITICAL: Plov paid by card, tea cancelled: nothing is left to pay

        Business Impact: the table would stay occupied by an order nobody can pay
        """
        PaymentService.process_partial_payment(
            dine_in_order, [dine_in_order.items.get(food=plov).id], Order.PaymentType.CARD, cashier
        )

        OrderItemService.cancel_item(dine_in_order, dine_in_order.items.get(food=tea).id, cashier)

        dine_in_order.refresh_from_db()
        assert dine_in_order.is_paid is True
        assert dine_in_order.status == Order.OrderStatus.PAID
        assert dine_in_order.payment_type == Order.PaymentType.MIXED
        assert dine_in_order.payment_split["card"] == Decimal("55000")
        assert dine_in_order.grand_total == Decimal("55000")
        table.refresh_from_db()
        assert table.status == Table.Status.FREE
        assert table.active_order_id is None

    def test_removing_last_unpaid_item_settles_order(self, dine_in_order, plov, tea, cashier, table):
        PaymentService.process_partial_payment(
            dine_in_order, [dine_in_order.items.get(food=plov).id], Order.PaymentType.CASH, cashier
        )

        OrderItemService.remove_item(dine_in_order, dine_in_order.items.get(food=tea).id, cashier)

        dine_in_order.refresh_from_db()
        assert dine_in_order.is_paid is True
        assert dine_in_order.paid_by_id == cashier.id
        table.refresh_from_db()
        assert table.status == Table.Status.FREE

    def test_cancel_without_sessions_does_not_settle(self, dine_in_order, tea):
        OrderItemService.cancel_item(dine_in_order, dine_in_order.items.get(food=tea).id)

        dine_in_order.refresh_from_db()
        assert dine_in_order.is_paid is False
        assert PaymentService.complete_if_settled(dine_in_order) is False

    def test_unpaid_lines_left_do_not_settle(self, active_shift, make_order, plov, tea, lagman, cashier):
        order = make_order([(plov, 1), (tea, 1), (lagman, 1)], order_type=Order.OrderType.TAKEAWAY)
        PaymentService.process_partial_payment(
            order, [order.items.get(food=plov).id], Order.PaymentType.CASH, cashier
        )

        OrderItemService.cancel_item(order, order.items.get(food=tea).id)

        order.refresh_from_db()
        assert order.is_paid is False
        assert [item.food_id for item in PaymentService.get_unpaid_items(order)] == [lagman.id]


@pytest.mark.django_db
class TestRemainderIncludesSurcharge:
    """The full payment after partial sessions must collect the table surcharge"""

    def test_split_adds_up_to_grand_total(self, active_shift, make_order, plov, tea, vip_table, cashier):
        order = make_order([(plov, 2), (tea, 3)], table=vip_table)
        assert order.grand_total == Decimal("91500")

        PaymentService.process_partial_payment(
            order, [order.items.get(food=plov).id], Order.PaymentType.CARD, cashier
        )
        order = PaymentService.process_payment(order, Order.PaymentType.CASH, cashier)

        assert order.payment_split["card"] == Decimal("55000")
        assert order.payment_split["cash"] == Decimal("36500")
        assert sum(order.payment_split.values()) == order.grand_total

    def test_discount_is_taken_off_the_remainder(self, dine_in_order, plov, cashier):
        PaymentService.process_partial_payment(
            dine_in_order, [dine_in_order.items.get(food=plov).id], Order.PaymentType.CARD, cashier
        )
        OrderService.set_discount(dine_in_order, 10)

        order = PaymentService.process_payment(dine_in_order, Order.PaymentType.CASH, cashier)

        assert sum(order.payment_split.values()) == order.grand_total
