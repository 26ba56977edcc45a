from collections import OrderedDict
from django.db import transaction
from django.db.models import F
from django.utils import timezone
import logging

from core_backend.exceptions import FoodUnavailable
from restaurants.models import Food

logger = logging.getLogger(__name__)


class FoodAvailabilityService:
    """Stop-list and daily-limit checks for foods being ordered."""

    @staticmethod
    def _requested_quantities(lines):
        """Sum requested portions per food, preserving first-seen order."""
        totals = OrderedDict()
        for food, quantity in lines:
            if food.id in totals:
                totals[food.id][1] += quantity
            else:
                totals[food.id] = [food, quantity]
        return totals.values()

    @staticmethod
    def ensure_available(lines):
        """
        Validate that every requested food can be ordered.

        Args:
            lines: iterable of (Food, quantity) pairs

        Raises:
            FoodUnavailable: carrying every offending food, not just the first
        """
        today = timezone.localdate()
        unavailable = []

        for food, quantity in FoodAvailabilityService._requested_quantities(lines):
            reason = None
            if food.is_in_stop_list:
                reason = food.stop_list_reason or "stop_list"
            elif not food.is_available:
                reason = "unavailable"
            elif food.has_daily_limit:
                remaining = food.remaining_today(today)
                if quantity > remaining:
                    reason = "daily_limit"

            if reason:
                entry = {"foodId": str(food.id), "name": food.name, "reason": reason}
                if reason == "daily_limit":
                    entry["remaining"] = food.remaining_today(today)
                unavailable.append(entry)

        if unavailable:
            logger.info(f"Rejected order lines for unavailable foods: {[f['name'] for f in unavailable]}")
            raise FoodUnavailable(unavailable)

    @staticmethod
    @transaction.atomic
    def record_ordered(lines):
        """
        Count ordered portions against daily limits and stop-list foods that
        reach their cap. Foods without a daily limit are skipped.
        """
        today = timezone.localdate()

        for food, quantity in FoodAvailabilityService._requested_quantities(lines):
            if not food.has_daily_limit:
                continue

            # A new day resets the counter before incrementing
            Food.objects.filter(pk=food.pk).exclude(daily_count_date=today).update(
                daily_order_count=0, daily_count_date=today
            )
            Food.objects.filter(pk=food.pk).update(
                daily_order_count=F("daily_order_count") + quantity
            )
            food.refresh_from_db(fields=["daily_order_count", "daily_count_date"])

            if food.daily_order_count >= food.daily_order_limit and not food.is_in_stop_list:
                food.put_in_stop_list(reason="daily_limit")
                logger.info(
                    f"Food '{food.name}' reached its daily limit of {food.daily_order_limit} and was stop-listed"
                )
