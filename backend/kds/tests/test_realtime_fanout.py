"""
Real-time Fan-out Tests

Order, payment, shift and table events are published to channel groups after
the surrounding transaction commits. These tests listen on the in-memory
channel layer.
"""
import asyncio
import logging
import pytest
from decimal import Decimal
from unittest.mock import patch

from asgiref.sync import async_to_sync

from kds.services import KitchenProjector, RealtimeNotificationService, notification_service
from orders.models import Order
from orders.services import OrderItemService, OrderService
from payments.services import PaymentService
from restaurants.models import StaffMember
from shifts.services import ShiftService


async def _drain(layer, channel, timeout=0.05):
    messages = []
    while True:
        try:
            messages.append(await asyncio.wait_for(layer.receive(channel), timeout))
        except asyncio.TimeoutError:
            return messages


@pytest.fixture
def listen(channel_layer):
    """
    Subscribe a fresh channel to a group and return a callable draining it.

    Usage:
        inbox = listen('restaurant_<id>')
        ...
        events = inbox()
    """
    def _listen(group):
        channel = async_to_sync(channel_layer.new_channel)()
        async_to_sync(channel_layer.group_add)(group, channel)
        return lambda: async_to_sync(_drain)(channel_layer, channel)

    return _listen


@pytest.fixture
def inboxes(listen, restaurant, hot_cook, head_cook):
    return {
        'restaurant': listen(notification_service.restaurant_group(restaurant.id)),
        'admin': listen(notification_service.role_group(restaurant.id, 'admin')),
        'hot_cook': listen(notification_service.user_group(hot_cook.id)),
        'head_cook': listen(notification_service.user_group(head_cook.id)),
    }


def by_event(messages):
    return {message['event']: message['data'] for message in messages}


@pytest.mark.django_db
class TestOrderFanout:
    """Test order events reaching restaurant, admin and cook groups"""

    def test_new_order(self, active_shift, inboxes, make_order, plov, tea, table,
                       django_capture_on_commit_callbacks):
        """
        CRITICAL: A new order reaches the floor, the admins and each cook

        Business Impact: the kitchen starts cooking from this push
        """
        with django_capture_on_commit_callbacks(execute=True):
            order = make_order([(plov, 2), (tea, 3)], table=table)

        floor = inboxes['restaurant']()
        assert all(message['type'] == 'realtime.event' for message in floor)
        floor_events = by_event(floor)
        assert floor_events['order:created']['orderNumber'] == order.order_number
        assert floor_events['order:created']['tableName'] == 'Table 5'
        assert floor_events['table:status_changed']['status'] == 'occupied'
        assert floor_events['table:status_changed']['previousStatus'] == 'free'

        admin = by_event(inboxes['admin']())['new_kitchen_order']
        assert admin['isNewOrder'] is True
        assert admin['orderId'] == str(order.id)
        assert len(admin['newItems']) == 2
        assert len(admin['orders']) == 1

        cook = by_event(inboxes['hot_cook']())['new_kitchen_order']
        assert [item['name'] for item in cook['newItems']] == ['Plov']
        assert [item['name'] for item in cook['orders'][0]['items']] == ['Plov']

        head = by_event(inboxes['head_cook']())['new_kitchen_order']
        assert len(head['newItems']) == 2

    def test_cook_without_matching_items_gets_refresh(self, active_shift, inboxes, make_order, tea,
                                                      django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            make_order([(tea, 1)], order_type=Order.OrderType.TAKEAWAY)

        cook = by_event(inboxes['hot_cook']())
        assert 'new_kitchen_order' not in cook
        assert cook['kitchen_orders_updated']['orders'] == []

    def test_items_added(self, dine_in_order, inboxes, plov, lagman, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            OrderItemService.add_item(dine_in_order, lagman, 1)

        floor = by_event(inboxes['restaurant']())
        assert floor['order:updated']['action'] == 'items_added'

        cook = by_event(inboxes['hot_cook']())['new_kitchen_order']
        assert cook['isNewOrder'] is False
        assert [item['name'] for item in cook['newItems']] == ['Lagman']

    def test_item_ready(self, dine_in_order, inboxes, plov, django_capture_on_commit_callbacks):
        item = dine_in_order.items.get(food=plov)

        with django_capture_on_commit_callbacks(execute=True):
            OrderItemService.mark_item_ready(dine_in_order, item.id, ready_count=1)

        floor = by_event(inboxes['restaurant']())
        assert floor['order:updated']['action'] == 'item_ready'
        admin = by_event(inboxes['admin']())['kitchen_orders_updated']
        plov_line = next(i for i in admin['orders'][0]['items'] if i['name'] == 'Plov')
        assert plov_line['readyQuantity'] == 1

    def test_cancelled_order(self, dine_in_order, inboxes, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            for item in dine_in_order.items.all():
                OrderItemService.cancel_item(dine_in_order, item.id, reason='guest left')

        floor = by_event(inboxes['restaurant']())
        assert floor['order:cancelled']['reason'] == 'all items cancelled'
        assert floor['table:status_changed']['status'] == 'free'

    def test_transfer(self, dine_in_order, inboxes, admin_staff, table, vip_table,
                      django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            OrderService.transfer_order(dine_in_order, vip_table, admin_staff)

        floor = inboxes['restaurant']()
        updated = by_event(floor)['order:updated']
        assert updated['action'] == 'transferred'
        assert updated['tableId'] == str(vip_table.id)
        assert updated['fromTableId'] == str(table.id)
        table_events = {m['data']['tableId']: m['data']['status'] for m in floor if m['event'] == 'table:status_changed'}
        assert table_events == {str(table.id): 'free', str(vip_table.id): 'occupied'}

    def test_waiter_changed(self, dine_in_order, inboxes, restaurant, waiter, admin_staff,
                            django_capture_on_commit_callbacks):
        other = StaffMember.objects.create(
            restaurant=restaurant, first_name='Malika', last_name='Yusupova', role=StaffMember.Role.WAITER
        )

        with django_capture_on_commit_callbacks(execute=True):
            OrderService.change_waiter(dine_in_order, other, admin_staff)

        updated = by_event(inboxes['restaurant']())['order:updated']
        assert updated['action'] == 'waiter_changed'
        assert updated['oldWaiterId'] == str(waiter.id)
        assert updated['newWaiterId'] == str(other.id)
        assert updated['waiterId'] == str(other.id)

    def test_order_served(self, dine_in_order, inboxes, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            OrderItemService.mark_order_served(dine_in_order)

        floor = by_event(inboxes['restaurant']())
        assert floor['order:updated']['action'] == 'served'
        assert floor['order:updated']['status'] == 'served'

    def test_nothing_is_published_before_commit(self, active_shift, inboxes, make_order, plov,
                                                django_capture_on_commit_callbacks):
        """Receivers never see state from a transaction that may roll back"""
        with django_capture_on_commit_callbacks() as callbacks:
            make_order([(plov, 1)], order_type=Order.OrderType.TAKEAWAY)

        assert callbacks
        assert inboxes['restaurant']() == []
        assert inboxes['admin']() == []


@pytest.mark.django_db
class TestPaymentFanout:
    """Test payment events"""

    def test_full_payment(self, dine_in_order, inboxes, cashier, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            PaymentService.process_payment(dine_in_order, Order.PaymentType.CARD, cashier)

        floor = by_event(inboxes['restaurant']())
        assert floor['order:paid']['isPaid'] is True
        assert floor['order:paid']['paymentType'] == 'card'
        assert floor['order:paid']['settledByPartialPayments'] is False
        assert floor['table:status_changed']['status'] == 'free'

    def test_partial_payment(self, dine_in_order, inboxes, plov, tea, cashier, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            result = PaymentService.process_partial_payment(
                dine_in_order, [dine_in_order.items.get(food=plov).id], Order.PaymentType.CASH, cashier
            )

        floor = by_event(inboxes['restaurant']())
        assert floor['order:updated']['action'] == 'partial_payment'
        assert floor['order:updated']['sessionId'] == result.session_id
        assert 'order:paid' not in floor

        with django_capture_on_commit_callbacks(execute=True):
            PaymentService.process_partial_payment(
                dine_in_order, [dine_in_order.items.get(food=tea).id], Order.PaymentType.CARD, cashier
            )

        floor = by_event(inboxes['restaurant']())
        assert floor['order:paid']['settledByPartialPayments'] is True
        assert floor['order:paid']['paymentType'] == 'mixed'
        assert 'order:updated' not in floor


@pytest.mark.django_db
class TestShiftFanout:
    """Test shift events"""

    def test_close_and_open(self, dine_in_order, inboxes, restaurant, admin_staff,
                            django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            ShiftService.close_shift(restaurant, admin_staff, closing_cash=Decimal('100000'))

        closed = by_event(inboxes['restaurant']())['shift:closed']
        assert closed['detachedOrderIds'] == [str(dine_in_order.id)]
        assert closed['status'] == 'closed'
        assert by_event(inboxes['admin']())['kitchen_orders_updated']['orders'] == []

        with django_capture_on_commit_callbacks(execute=True):
            shift = ShiftService.open_shift(restaurant, admin_staff, opening_cash=Decimal('100000'))

        opened = by_event(inboxes['restaurant']())['shift:opened']
        assert opened['shiftNumber'] == shift.shift_number
        assert opened['adoptedOrderIds'] == [str(dine_in_order.id)]
        assert len(by_event(inboxes['admin']())['kitchen_orders_updated']['orders']) == 1


@pytest.mark.django_db
class TestDeliveryFailures:
    """Publishing problems are logged and never break the mutation"""

    def test_channel_layer_failure(self, active_shift, make_order, plov, monkeypatch,
                                   django_capture_on_commit_callbacks):
        class BrokenLayer:
            async def group_send(self, group, message):
                raise ConnectionError('redis is down')

        monkeypatch.setattr(RealtimeNotificationService, 'channel_layer', property(lambda self: BrokenLayer()))
        notifier_logger = logging.getLogger('kds.services.notification_service')

        with patch.object(notifier_logger, 'error') as log_error:
            with django_capture_on_commit_callbacks(execute=True):
                order = make_order([(plov, 1)], order_type=Order.OrderType.TAKEAWAY)

        assert Order.objects.filter(pk=order.pk).exists()
        assert log_error.called
        assert 'redis is down' in log_error.call_args[0][0]

    def test_projection_failure(self, active_shift, make_order, plov, monkeypatch,
                                django_capture_on_commit_callbacks):
        def explode(*args, **kwargs):
            raise RuntimeError('projection broke')

        monkeypatch.setattr(KitchenProjector, 'source_orders', staticmethod(explode))
        publisher_logger = logging.getLogger('kds.events.publishers')

        with patch.object(publisher_logger, 'error') as log_error:
            with django_capture_on_commit_callbacks(execute=True):
                make_order([(plov, 1)], order_type=Order.OrderType.TAKEAWAY)

        assert log_error.called
        assert 'projection broke' in log_error.call_args[0][0]


@pytest.mark.django_db(transaction=True)
class TestCommittedTransactions:
    """Without a wrapping test transaction the real commit triggers publishing"""

    def test_published_after_commit(self, active_shift, listen, restaurant, make_order, plov):
        inbox = listen(notification_service.restaurant_group(restaurant.id))

        order = make_order([(plov, 1)], order_type=Order.OrderType.TAKEAWAY)

        assert by_event(inbox())['order:created']['orderId'] == str(order.id)


class TestGroupNames:
    def test_group_names(self):
        assert notification_service.restaurant_group('abc-1') == 'restaurant_abc-1'
        assert notification_service.role_group('abc-1', 'cook') == 'restaurant_abc-1_cook'
        assert notification_service.user_group('u 1') == 'user_u_1'

    def test_sanitize_replaces_unsafe_characters(self):
        assert notification_service.sanitize('café/1') == 'caf__1'
