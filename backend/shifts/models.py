import uuid
from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from core_backend.utils.archiving import SoftDeleteMixin


def money_field(**kwargs):
    return models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"), **kwargs)


class Shift(SoftDeleteMixin):
    """
    One open/close cycle of restaurant operations.

    Orders are scoped to a shift for accounting and kitchen visibility. A
    shift is created by an explicit open, mutated only by its own close and
    never reopened. At most one shift per restaurant is active.
    """

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        CLOSED = "closed", _("Closed")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        "restaurants.Restaurant", on_delete=models.CASCADE, related_name="shifts"
    )
    shift_number = models.PositiveIntegerField()
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE)

    # Opening
    opened_at = models.DateTimeField(default=timezone.now)
    opened_by_id = models.UUIDField(null=True, blank=True)
    opened_by_name = models.CharField(max_length=200, blank=True)
    opening_cash = money_field()
    opening_notes = models.TextField(blank=True)

    # Closing
    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by_id = models.UUIDField(null=True, blank=True)
    closed_by_name = models.CharField(max_length=200, blank=True)
    closing_cash = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    closing_notes = models.TextField(blank=True)

    # Cash reconciliation
    expected_closing_cash = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    cash_difference = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    # Orders adopted from earlier shifts when this one opened
    transferred_order_ids = models.JSONField(default=list, blank=True)

    # Stats snapshot, written at close
    total_orders = models.PositiveIntegerField(default=0)
    paid_orders = models.PositiveIntegerField(default=0)
    cancelled_orders = models.PositiveIntegerField(default=0)
    total_revenue = money_field()
    food_revenue = money_field()
    service_revenue = money_field()
    cash_payments = money_field()
    card_payments = money_field()
    click_payments = money_field()
    mixed_payments = money_field()
    average_order_value = money_field()
    total_items_sold = models.PositiveIntegerField(default=0)
    total_cancelled_items = models.PositiveIntegerField(default=0)
    cancelled_items_value = money_field()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-opened_at"]
        indexes = [
            models.Index(fields=["restaurant", "status"], name="shift_restaurant_status_idx"),
            models.Index(fields=["restaurant", "-opened_at"], name="shift_restaurant_opened_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["restaurant"],
                condition=Q(status="active", is_deleted=False),
                name="one_active_shift_per_restaurant",
            ),
            models.UniqueConstraint(
                fields=["restaurant", "shift_number"],
                name="unique_shift_number_per_restaurant",
            ),
        ]

    def __str__(self):
        return f"Shift #{self.shift_number} ({self.get_status_display()})"

    @property
    def is_active_shift(self):
        return self.status == self.Status.ACTIVE

    @property
    def duration(self):
        """Length of the shift as a timedelta; open shifts count up to now."""
        end = self.closed_at or timezone.now()
        return end - self.opened_at

    @property
    def duration_hours(self):
        """Duration in hours, one decimal place."""
        return round(self.duration.total_seconds() / 3600, 1)
