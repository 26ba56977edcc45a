"""
Shared test fixtures for all backend tests.

This module provides reusable pytest fixtures for common test objects
like restaurants, menu, staff, shifts and orders.
"""
import pytest
from decimal import Decimal

from restaurants.models import Restaurant, Category, Food, Table, StaffMember
from orders.models import Order
from orders.services import OrderService
from shifts.services import ShiftService


# ============================================================================
# RESTAURANT FIXTURES
# ============================================================================

@pytest.fixture
def restaurant(db):
    """Create test restaurant with a 10% service charge"""
    return Restaurant.objects.create(
        name='Chorsu Plov Center',
        service_charge_percent=Decimal('10'),
    )


@pytest.fixture
def other_restaurant(db):
    """Create a second restaurant for isolation checks"""
    return Restaurant.objects.create(
        name='Oqtepa Lavash',
        service_charge_percent=Decimal('12'),
    )


# ============================================================================
# MENU FIXTURES
# ============================================================================

@pytest.fixture
def hot_category(restaurant):
    """Create the hot kitchen category"""
    return Category.objects.create(restaurant=restaurant, name='Hot dishes', sort_order=1)


@pytest.fixture
def drinks_category(restaurant):
    """Create the drinks category"""
    return Category.objects.create(restaurant=restaurant, name='Drinks', sort_order=2)


@pytest.fixture
def plov(restaurant, hot_category):
    """Create a 25 000 som hot dish"""
    return Food.objects.create(
        restaurant=restaurant,
        category=hot_category,
        name='Plov',
        price=Decimal('25000'),
    )


@pytest.fixture
def lagman(restaurant, hot_category):
    """Create a 30 000 som hot dish"""
    return Food.objects.create(
        restaurant=restaurant,
        category=hot_category,
        name='Lagman',
        price=Decimal('30000'),
    )


@pytest.fixture
def tea(restaurant, drinks_category):
    """Create a 5 000 som drink"""
    return Food.objects.create(
        restaurant=restaurant,
        category=drinks_category,
        name='Green tea',
        price=Decimal('5000'),
    )


@pytest.fixture
def table(restaurant):
    """Create a free table without surcharge"""
    return Table.objects.create(restaurant=restaurant, title='Table 5', table_number=5)


@pytest.fixture
def vip_table(restaurant):
    """Create a table with a flat surcharge"""
    return Table.objects.create(
        restaurant=restaurant,
        title='VIP 1',
        table_number=101,
        surcharge=Decimal('20000'),
    )


# ============================================================================
# STAFF FIXTURES
# ============================================================================

@pytest.fixture
def waiter(restaurant):
    """Create a waiter"""
    return StaffMember.objects.create(
        restaurant=restaurant, first_name='Aziz', last_name='Karimov', role=StaffMember.Role.WAITER
    )


@pytest.fixture
def admin_staff(restaurant):
    """Create a restaurant admin"""
    return StaffMember.objects.create(
        restaurant=restaurant, first_name='Dilnoza', last_name='Rahimova', role=StaffMember.Role.ADMIN
    )


@pytest.fixture
def cashier(restaurant):
    """Create a cashier"""
    return StaffMember.objects.create(
        restaurant=restaurant, first_name='Bekzod', role=StaffMember.Role.CASHIER
    )


@pytest.fixture
def hot_cook(restaurant, hot_category):
    """Create a cook assigned to hot dishes only"""
    cook = StaffMember.objects.create(
        restaurant=restaurant, first_name='Rustam', role=StaffMember.Role.COOK
    )
    cook.assigned_categories.add(hot_category)
    return cook


@pytest.fixture
def head_cook(restaurant):
    """Create a cook without category assignments (sees everything)"""
    return StaffMember.objects.create(
        restaurant=restaurant, first_name='Jamshid', role=StaffMember.Role.COOK
    )


# ============================================================================
# SHIFT AND ORDER FIXTURES
# ============================================================================

@pytest.fixture
def active_shift(restaurant, admin_staff):
    """Open a shift with 100 000 som in the drawer"""
    return ShiftService.open_shift(restaurant, admin_staff, opening_cash=Decimal('100000'))


@pytest.fixture
def make_order(restaurant, waiter):
    """
    Factory for orders placed through OrderService.

    Usage:
        order = make_order([(plov, 2), (tea, 3)], table=table)
    """
    def _make_order(lines, order_type=Order.OrderType.DINE_IN, table=None, actor=None, **kwargs):
        items = [{'food': food, 'quantity': quantity} for food, quantity in lines]
        return OrderService.create_order(
            restaurant,
            actor or waiter,
            items,
            order_type=order_type,
            table=table,
            **kwargs
        )

    return _make_order


@pytest.fixture
def dine_in_order(active_shift, make_order, plov, tea, table):
    """Dine-in order: 2 x plov + 3 x tea at table 5 (subtotal 65 000)"""
    return make_order([(plov, 2), (tea, 3)], table=table)
