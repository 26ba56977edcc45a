"""
Read-time resolution of table occupancy.

A table caches ``status`` and ``active_order_id`` when an order is placed.
When a shift closes mid-service those caches go stale: the unpaid order is
detached from the closed shift, but the table still says "occupied". Rather
than rewriting every table at close time, the stale state is corrected here
on every read. Nothing in this module writes to the database.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional
import uuid

from restaurants.models import Table


@dataclass(frozen=True)
class TableOccupancy:
    table_id: uuid.UUID
    status: str
    active_order_id: Optional[uuid.UUID]
    cached_status: str

    @property
    def is_stale(self) -> bool:
        return self.status != self.cached_status


class TableOccupancyResolver:
    """Pure read-time transform from cached table state to effective state."""

    @staticmethod
    def resolve_status(cached_status, active_order_id, order_shift_id, active_shift_id):
        """
        Return the effective status for one table.

        Args:
            cached_status: the table's stored status
            active_order_id: the order the table points at, if any
            order_shift_id: shift id of that order (None when orphaned or missing)
            active_shift_id: id of the restaurant's active shift, None if closed
        """
        if cached_status != Table.Status.OCCUPIED:
            return cached_status
        if active_shift_id is None:
            return Table.Status.FREE
        if active_order_id is None or order_shift_id != active_shift_id:
            return Table.Status.FREE
        return cached_status

    @classmethod
    def resolve(cls, table, order_shift_id, active_shift) -> TableOccupancy:
        active_shift_id = active_shift.id if active_shift is not None else None
        status = cls.resolve_status(
            table.status, table.active_order_id, order_shift_id, active_shift_id
        )
        return TableOccupancy(
            table_id=table.id,
            status=status,
            active_order_id=table.active_order_id if status == Table.Status.OCCUPIED else None,
            cached_status=table.status,
        )

    @classmethod
    def resolve_table(cls, table, active_shift=None) -> TableOccupancy:
        """Resolve a single table, looking up its referenced order."""
        return cls.resolve_tables(table.restaurant, [table], active_shift=active_shift)[0]

    @classmethod
    def resolve_tables(
        cls, restaurant, tables: Optional[Iterable[Table]] = None, active_shift=None
    ) -> List[TableOccupancy]:
        """
        Resolve a whole table map with one order lookup.

        Args:
            restaurant: Restaurant the tables belong to
            tables: tables to resolve (defaults to every table of the restaurant)
            active_shift: pass the active shift when the caller already has it
        """
        from orders.models import Order
        from shifts.services import ShiftService

        tables = list(tables) if tables is not None else list(restaurant.tables.all())
        if active_shift is None:
            active_shift = ShiftService.get_active_shift(restaurant)

        order_ids = {t.active_order_id for t in tables if t.active_order_id}
        shift_by_order = {}
        if order_ids and active_shift is not None:
            shift_by_order = dict(
                Order.objects.filter(id__in=order_ids).values_list("id", "shift_id")
            )

        return [
            cls.resolve(table, shift_by_order.get(table.active_order_id), active_shift)
            for table in tables
        ]
