import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


def default_service_charge_percent():
    return settings.DEFAULT_SERVICE_CHARGE_PERCENT


class Restaurant(models.Model):
    """
    Root entity every order, shift and table belongs to.
    Restaurants are managed elsewhere; this backend only references them.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    service_charge_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=default_service_charge_percent,
        help_text=_("Service charge applied to dine-in orders, in percent"),
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Category(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        Restaurant, on_delete=models.CASCADE, related_name="categories"
    )
    name = models.CharField(max_length=255)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name_plural = "categories"
        ordering = ["sort_order", "name"]
        indexes = [
            models.Index(fields=["restaurant", "sort_order"], name="category_restaurant_sort_idx"),
        ]

    def __str__(self):
        return self.name


class Food(models.Model):
    """
    A menu item. Orders snapshot name, price and category at order time;
    the live record is still consulted for the kitchen display name and
    for stop-list checks.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        Restaurant, on_delete=models.CASCADE, related_name="foods"
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="foods",
    )
    name = models.CharField(max_length=255)
    price = models.DecimalField(max_digits=12, decimal_places=2)
    is_available = models.BooleanField(default=True)

    # Manual stop-list
    is_in_stop_list = models.BooleanField(default=False, db_index=True)
    stop_list_reason = models.CharField(max_length=255, blank=True)
    stopped_at = models.DateTimeField(null=True, blank=True)

    # Automatic stop-list by daily quantity cap
    auto_stop_list_enabled = models.BooleanField(default=False)
    daily_order_limit = models.PositiveIntegerField(
        default=0, help_text=_("Portions per day before the food is stop-listed. 0 means no limit.")
    )
    daily_order_count = models.PositiveIntegerField(default=0)
    daily_count_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["restaurant", "category"], name="food_restaurant_category_idx"),
            models.Index(fields=["restaurant", "is_available"], name="food_restaurant_available_idx"),
        ]

    def __str__(self):
        return self.name

    @property
    def has_daily_limit(self):
        return self.auto_stop_list_enabled and self.daily_order_limit > 0

    def ordered_today(self, today=None):
        """Portions ordered today; the counter is stale after midnight."""
        today = today or timezone.localdate()
        if self.daily_count_date != today:
            return 0
        return self.daily_order_count

    def remaining_today(self, today=None):
        """Portions left before the daily cap, or None when uncapped."""
        if not self.has_daily_limit:
            return None
        return max(self.daily_order_limit - self.ordered_today(today), 0)

    def put_in_stop_list(self, reason=""):
        self.is_in_stop_list = True
        self.stop_list_reason = reason
        self.stopped_at = timezone.now()
        self.save(update_fields=["is_in_stop_list", "stop_list_reason", "stopped_at", "updated_at"])

    def remove_from_stop_list(self):
        self.is_in_stop_list = False
        self.stop_list_reason = ""
        self.stopped_at = None
        self.save(update_fields=["is_in_stop_list", "stop_list_reason", "stopped_at", "updated_at"])


class Table(models.Model):
    """
    Dining table. ``status`` and ``active_order_id`` are a cache maintained by
    the table signal receivers; read them through TableOccupancyResolver.
    """

    class Status(models.TextChoices):
        FREE = "free", _("Free")
        OCCUPIED = "occupied", _("Occupied")
        RESERVED = "reserved", _("Reserved")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        Restaurant, on_delete=models.CASCADE, related_name="tables"
    )
    title = models.CharField(max_length=100)
    table_number = models.PositiveIntegerField(null=True, blank=True)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.FREE, db_index=True
    )
    active_order_id = models.UUIDField(null=True, blank=True)
    surcharge = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Flat surcharge added to every order placed at this table"),
    )

    class Meta:
        ordering = ["table_number", "title"]
        indexes = [
            models.Index(fields=["restaurant", "status"], name="table_restaurant_status_idx"),
        ]

    def __str__(self):
        return self.title


class StaffMember(models.Model):
    """
    Read-only view of restaurant staff. Authentication and staff management
    live outside this backend; the kitchen fan-out reads cooks from here.
    """

    class Role(models.TextChoices):
        ADMIN = "admin", _("Admin")
        WAITER = "waiter", _("Waiter")
        COOK = "cook", _("Cook")
        CASHIER = "cashier", _("Cashier")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        Restaurant, on_delete=models.CASCADE, related_name="staff"
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100, blank=True)
    role = models.CharField(max_length=20, choices=Role.choices)
    assigned_categories = models.ManyToManyField(
        Category,
        blank=True,
        related_name="cooks",
        help_text=_("Categories a cook prepares. Empty means all categories."),
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["first_name", "last_name"]
        indexes = [
            models.Index(fields=["restaurant", "role", "is_active"], name="staff_restaurant_role_idx"),
        ]

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def as_actor(self):
        from core_backend.actors import Actor

        return Actor(
            id=self.id,
            role=self.role,
            display_name=self.full_name,
            assigned_category_ids=tuple(
                self.assigned_categories.values_list("id", flat=True)
            ),
        )


class SequenceCounter(models.Model):
    """
    Per-restaurant atomic counter row.

    Used for order numbers (one key per day) and shift numbers. The row is
    locked while incrementing so concurrent creators never get the same value.
    """

    restaurant = models.ForeignKey(
        Restaurant, on_delete=models.CASCADE, related_name="counters"
    )
    key = models.CharField(max_length=64)
    value = models.PositiveBigIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["restaurant", "key"], name="unique_counter_per_restaurant"
            ),
        ]

    def __str__(self):
        return f"{self.key}={self.value}"

    @classmethod
    def next_value(cls, restaurant, key, seed=None):
        """
        Atomically increment and return the counter for ``key``.

        Args:
            restaurant: Restaurant owning the sequence
            key: Sequence name, e.g. ``shift`` or ``order:2025-01-31``
            seed: Optional callable returning the value to start from when the
                  counter row does not exist yet

        Returns:
            int: The new counter value
        """
        with transaction.atomic():
            counter, created = cls.objects.select_for_update().get_or_create(
                restaurant=restaurant,
                key=key,
                defaults={"value": seed() if seed else 0},
            )
            cls.objects.filter(pk=counter.pk).update(value=F("value") + 1)
            counter.refresh_from_db(fields=["value"])
            return counter.value

    @classmethod
    def lock(cls, restaurant, key, seed=None):
        """
        Lock (creating if needed) the counter row until the surrounding
        transaction ends. Must be called inside ``transaction.atomic``.
        """
        counter, _ = cls.objects.select_for_update().get_or_create(
            restaurant=restaurant,
            key=key,
            defaults={"value": seed() if seed else 0},
        )
        return counter
