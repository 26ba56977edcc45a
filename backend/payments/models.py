import uuid
from decimal import Decimal

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from payments.money import SPLIT_KEYS


class PaymentSession(models.Model):
    """
    Immutable record of one partial settlement of an order.

    Items are never flagged as paid; an item counts as settled when its id is
    in some session's ``paid_item_ids``.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    session_id = models.CharField(max_length=64, unique=True, editable=False)
    order = models.ForeignKey(
        "orders.Order", on_delete=models.CASCADE, related_name="payment_sessions"
    )
    paid_item_ids = models.JSONField(default=list, help_text=_("OrderItem ids settled by this session"))

    subtotal = models.DecimalField(max_digits=14, decimal_places=2)
    service_charge = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=14, decimal_places=2)

    payment_type = models.CharField(max_length=10)
    split_cash = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    split_card = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    split_click = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    comment = models.TextField(blank=True)

    paid_at = models.DateTimeField(default=timezone.now)
    paid_by_id = models.UUIDField(null=True, blank=True)
    paid_by_name = models.CharField(max_length=200, blank=True)

    class Meta:
        ordering = ["paid_at"]
        indexes = [
            models.Index(fields=["order", "paid_at"], name="payment_session_order_idx"),
        ]

    def __str__(self):
        return f"Payment session {self.session_id} ({self.total})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Payment sessions are immutable")
        if not self.session_id:
            self.session_id = f"PS-{uuid.uuid4().hex[:12].upper()}"
        super().save(*args, **kwargs)

    @property
    def split(self):
        return {key: getattr(self, f"split_{key}") for key in SPLIT_KEYS}
