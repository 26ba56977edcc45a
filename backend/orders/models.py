import uuid
from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core_backend.utils.archiving import SoftDeleteMixin
from payments.money import SPLIT_KEYS


class Order(SoftDeleteMixin):
    """
    One dine-in, takeaway or saboy transaction.

    ``status`` is derived from the items (see orders.calculators) except for
    the sticky terminal values ``paid`` and ``cancelled``. Totals are derived
    as well and recalculated by OrderService after every mutation.
    """

    class OrderStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        APPROVED = "approved", _("Approved")
        PREPARING = "preparing", _("Preparing")
        READY = "ready", _("Ready")
        SERVED = "served", _("Served")
        PAID = "paid", _("Paid")
        CANCELLED = "cancelled", _("Cancelled")

    class OrderType(models.TextChoices):
        DINE_IN = "dine-in", _("Dine-in")
        SABOY = "saboy", _("Saboy")
        TAKEAWAY = "takeaway", _("Takeaway")

    class PaymentType(models.TextChoices):
        CASH = "cash", _("Cash")
        CARD = "card", _("Card")
        CLICK = "click", _("Click")
        MIXED = "mixed", _("Mixed")

    TERMINAL_STATUSES = (OrderStatus.PAID, OrderStatus.CANCELLED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        "restaurants.Restaurant", on_delete=models.CASCADE, related_name="orders"
    )
    shift = models.ForeignKey(
        "shifts.Shift",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
        help_text=_("Null means orphaned: waiting for the next shift to adopt it"),
    )
    transferred_from_shift = models.ForeignKey(
        "shifts.Shift",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    transferred_to_shift_at = models.DateTimeField(null=True, blank=True)

    order_number = models.PositiveIntegerField()
    business_date = models.DateField(default=timezone.localdate)
    order_type = models.CharField(
        max_length=20, choices=OrderType.choices, default=OrderType.DINE_IN
    )
    saboy_number = models.PositiveIntegerField(null=True, blank=True)
    table = models.ForeignKey(
        "restaurants.Table",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    status = models.CharField(
        max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING, db_index=True
    )
    comment = models.TextField(blank=True)

    # Waiter (denormalized actor)
    waiter_id = models.UUIDField(null=True, blank=True)
    waiter_name = models.CharField(max_length=200, blank=True)

    # Table transfers. The original_* fields are set on the first transfer
    # only; the service charge stays credited to the waiter who opened the order.
    original_table_id = models.UUIDField(null=True, blank=True)
    original_waiter_id = models.UUIDField(null=True, blank=True)
    original_waiter_name = models.CharField(max_length=200, blank=True)
    service_charge_waiter_id = models.UUIDField(null=True, blank=True)
    transferred_from_table_id = models.UUIDField(null=True, blank=True)
    transferred_at = models.DateTimeField(null=True, blank=True)
    transfer_history = models.JSONField(default=list, blank=True)

    # Approval
    waiter_approved = models.BooleanField(default=False)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by_id = models.UUIDField(null=True, blank=True)
    waiter_rejected = models.BooleanField(default=False)
    rejected_at = models.DateTimeField(null=True, blank=True)

    # Cancellation (item cascade or rejection)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by_id = models.UUIDField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)

    # Totals (derived)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    service_charge_percent = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00")
    )
    service_charge = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    discount_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00"))
    discount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    surcharge = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    grand_total = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    all_items_ready = models.BooleanField(default=False)

    # Payment
    is_paid = models.BooleanField(default=False, db_index=True)
    payment_type = models.CharField(
        max_length=10, choices=PaymentType.choices, null=True, blank=True
    )
    payment_split_cash = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    payment_split_card = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    payment_split_click = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    payment_comment = models.TextField(blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    paid_by_id = models.UUIDField(null=True, blank=True)
    paid_by_name = models.CharField(max_length=200, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["restaurant", "shift", "status"], name="order_restaurant_shift_idx"),
            models.Index(fields=["restaurant", "business_date"], name="order_restaurant_date_idx"),
            models.Index(fields=["restaurant", "is_paid", "shift"], name="order_restaurant_paid_idx"),
            models.Index(fields=["table", "is_paid"], name="order_table_paid_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["restaurant", "business_date", "order_number"],
                name="unique_order_number_per_restaurant_day",
            ),
        ]

    def __str__(self):
        return f"Order #{self.order_number} ({self.get_status_display()})"

    @property
    def is_terminal(self):
        """True once the order is paid or cancelled; neither is ever left."""
        return self.status in self.TERMINAL_STATUSES

    @property
    def payment_split(self):
        return {key: getattr(self, f"payment_split_{key}") for key in SPLIT_KEYS}

    def set_payment_split(self, split):
        for key in SPLIT_KEYS:
            setattr(self, f"payment_split_{key}", split.get(key, Decimal("0.00")))

    @property
    def table_display_name(self):
        """Name shown on kitchen tickets."""
        if self.order_type == self.OrderType.SABOY:
            return f"Saboy #{self.saboy_number}" if self.saboy_number else "Saboy"
        if self.table_id:
            return self.table.title
        return "Takeaway"

    def billable_items(self):
        """Items that count towards totals: neither deleted nor cancelled."""
        return [
            item for item in self.items.all()
            if item.status != OrderItem.ItemStatus.CANCELLED
        ]


class OrderItem(SoftDeleteMixin):
    """
    A line on an order. Owned by its order; deleted lines are hidden from the
    default manager, cancelled lines stay visible for audit.
    """

    class ItemStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        PREPARING = "preparing", _("Preparing")
        READY = "ready", _("Ready")
        SERVED = "served", _("Served")
        CANCELLED = "cancelled", _("Cancelled")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    position = models.PositiveIntegerField(
        default=0, help_text=_("Index in the full item list; kitchen commands address items by it")
    )

    # Snapshot of the food at order time
    food = models.ForeignKey(
        "restaurants.Food",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_items",
    )
    food_name = models.CharField(max_length=255)
    category_id = models.UUIDField(null=True, blank=True)
    price = models.DecimalField(max_digits=12, decimal_places=2)

    quantity = models.PositiveIntegerField(default=1)
    ready_quantity = models.PositiveIntegerField(default=0)
    status = models.CharField(
        max_length=20, choices=ItemStatus.choices, default=ItemStatus.PENDING
    )
    notes = models.CharField(max_length=255, blank=True)

    # Kitchen trail
    is_started = models.BooleanField(default=False)
    started_at = models.DateTimeField(null=True, blank=True)
    started_by_id = models.UUIDField(null=True, blank=True)
    ready_at = models.DateTimeField(null=True, blank=True)
    preparation_duration = models.PositiveIntegerField(
        null=True, blank=True, help_text=_("Seconds from added to fully ready")
    )
    served_at = models.DateTimeField(null=True, blank=True)

    # Actor trail
    added_at = models.DateTimeField(default=timezone.now)
    added_by_id = models.UUIDField(null=True, blank=True)
    added_by_name = models.CharField(max_length=200, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by_id = models.UUIDField(null=True, blank=True)
    cancelled_by_name = models.CharField(max_length=200, blank=True)
    cancel_reason = models.CharField(max_length=255, blank=True)

    class Meta:
        ordering = ["position"]
        indexes = [
            models.Index(fields=["order", "status"], name="order_item_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(ready_quantity__lte=models.F("quantity")),
                name="order_item_ready_lte_quantity",
            ),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.food_name}"

    @property
    def total_price(self):
        return self.price * self.quantity

    @property
    def is_cancelled(self):
        return self.status == self.ItemStatus.CANCELLED
