"""
Pure order calculators: totals and derived status.

Nothing in this module touches the database. Both functions take immutable
item snapshots so they can be unit tested without fixtures and reused by the
payment path, which totals an arbitrary subset of items.

Usage:
    from orders.calculators import ItemSnapshot, calculate_totals, derive_status

    snapshots = [ItemSnapshot.from_item(item) for item in billable_items]
    totals = calculate_totals(snapshots, Decimal('10'), 'dine-in')
    status = derive_status(order.status, snapshots)
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from payments.money import ZERO, percentage_of, to_decimal

SERVICE_CHARGE_EXEMPT_ORDER_TYPES = frozenset({"takeaway", "saboy"})

TERMINAL_ORDER_STATUSES = frozenset({"paid", "cancelled"})

# Order statuses an order can sit in before the kitchen has touched anything
PRE_KITCHEN_ORDER_STATUSES = frozenset({"pending", "approved"})


@dataclass(frozen=True)
class ItemSnapshot:
    price: Decimal
    quantity: int
    ready_quantity: int = 0
    status: str = "pending"

    @classmethod
    def from_item(cls, item) -> "ItemSnapshot":
        return cls(
            price=to_decimal(item.price),
            quantity=item.quantity,
            ready_quantity=item.ready_quantity,
            status=item.status,
        )

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @property
    def is_fully_ready(self) -> bool:
        return self.ready_quantity >= self.quantity


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    service_charge: Decimal
    service_charge_percent: Decimal
    discount: Decimal
    surcharge: Decimal
    grand_total: Decimal
    all_items_ready: bool


def is_service_charge_exempt(order_type: str) -> bool:
    return order_type in SERVICE_CHARGE_EXEMPT_ORDER_TYPES


def calculate_totals(
    items: Sequence[ItemSnapshot],
    service_charge_percent,
    order_type: str,
    discount_percent=ZERO,
    surcharge=ZERO,
    fixed_discount: Optional[Decimal] = None,
) -> OrderTotals:
    """
    Calculate order totals over billable items.

    Args:
        items: snapshots of items that are neither deleted nor cancelled
        service_charge_percent: restaurant/order service charge, in percent
        order_type: 'dine-in', 'saboy' or 'takeaway'
        discount_percent: percent discount; when 0 the fixed discount is kept
        surcharge: flat table surcharge
        fixed_discount: previously stored absolute discount

    Returns:
        OrderTotals with grand_total = subtotal + service_charge + surcharge - discount
    """
    subtotal = sum((item.line_total for item in items), ZERO)

    if is_service_charge_exempt(order_type):
        percent = ZERO
        service_charge = ZERO
    else:
        percent = to_decimal(service_charge_percent)
        service_charge = percentage_of(subtotal, percent)

    discount_percent = to_decimal(discount_percent)
    if discount_percent > ZERO:
        discount = percentage_of(subtotal, discount_percent)
    else:
        discount = to_decimal(fixed_discount)

    surcharge = to_decimal(surcharge)

    return OrderTotals(
        subtotal=subtotal,
        service_charge=service_charge,
        service_charge_percent=percent,
        discount=discount,
        surcharge=surcharge,
        grand_total=subtotal + service_charge + surcharge - discount,
        all_items_ready=bool(items) and all(item.is_fully_ready for item in items),
    )


def derive_status(current_status: str, items: Sequence[ItemSnapshot]) -> str:
    """
    Derive the order status from its billable items.

    paid and cancelled are sticky, and an order without items keeps its
    status. Otherwise: all served -> served, all ready or served -> ready,
    any kitchen progress -> preparing. Pending items only pull an order back
    to preparing once the kitchen has already moved it past approval.
    """
    if current_status in TERMINAL_ORDER_STATUSES or not items:
        return current_status

    statuses = [item.status for item in items]

    if all(s == "served" for s in statuses):
        return "served"
    if all(s in ("ready", "served") for s in statuses):
        return "ready"

    any_progress = any(s == "preparing" or item.ready_quantity > 0 for s, item in zip(statuses, items))
    any_pending = any(s == "pending" for s in statuses)

    if any_progress:
        return "preparing"
    if any_pending and current_status not in PRE_KITCHEN_ORDER_STATUSES:
        return "preparing"
    return current_status
