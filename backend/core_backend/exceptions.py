"""
Service-level exceptions shared by every app.

Each exception carries a stable machine-readable ``code`` that clients branch
on, plus the HTTP status used when the error surfaces through a DRF view.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base exception for order, shift and payment operations."""

    code = "SERVICE_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "The operation could not be completed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def get_extra(self):
        """Additional fields rendered next to ``code`` and ``message``."""
        return {}

    def as_dict(self):
        payload = {"code": self.code, "message": self.message}
        payload.update(self.get_extra())
        return payload


class ValidationFailed(ServiceError):
    """Raised for malformed or out-of-range input (e.g. quantity < 1)."""

    code = "VALIDATION_ERROR"
    default_message = "Invalid input"

    def __init__(self, message=None, field=None):
        self.field = field
        super().__init__(message)

    def get_extra(self):
        return {"field": self.field} if self.field else {}


class NotFound(ServiceError):
    """Raised when an order, item or shift is missing or soft-deleted."""

    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource="Resource", identifier=None, message=None):
        self.resource = resource
        self.identifier = identifier
        if message is None:
            suffix = f" '{identifier}'" if identifier is not None else ""
            message = f"{resource}{suffix} not found"
        super().__init__(message)


class AlreadyPaid(ServiceError):
    code = "ALREADY_PAID"
    default_message = "Order is already paid"


class AlreadyApproved(ServiceError):
    code = "ALREADY_APPROVED"
    default_message = "Order is already approved"


class AlreadyCancelled(ServiceError):
    code = "ALREADY_CANCELLED"
    default_message = "Already cancelled"


class ActiveShiftExists(ServiceError):
    """Raised when opening a shift while another one is still active."""

    code = "ACTIVE_SHIFT_EXISTS"

    def __init__(self, shift=None, message=None):
        self.shift = shift
        if message is None:
            number = f" #{shift.shift_number}" if shift is not None else ""
            message = f"Shift{number} is already open. Close it before opening a new one"
        super().__init__(message)

    def get_extra(self):
        return {"shiftId": str(self.shift.id)} if self.shift is not None else {}


class NoActiveShift(ServiceError):
    code = "NO_ACTIVE_SHIFT"
    default_message = "No shift is open. Open a shift before taking orders"


class FoodUnavailable(ServiceError):
    """Raised when ordered foods are stop-listed or over their daily limit."""

    code = "FOOD_UNAVAILABLE"

    def __init__(self, foods, message=None):
        # foods: list of {'foodId', 'name', 'reason'} dicts
        self.foods = list(foods)
        if message is None:
            names = ", ".join(f["name"] for f in self.foods)
            message = f"Not available right now: {names}"
        super().__init__(message)

    def get_extra(self):
        return {"foods": self.foods}


def service_exception_handler(exc, context):
    """
    DRF exception handler that renders ServiceError subclasses with their code.

    Anything else falls through to DRF's default handler.
    """
    if isinstance(exc, ServiceError):
        request = context.get("request") if context else None
        path = getattr(request, "path", None)
        logger.warning(f"{exc.code} on {path or 'internal call'}: {exc.message}")
        return Response(
            {"success": False, "error": exc.as_dict()},
            status=exc.status_code,
        )

    return exception_handler(exc, context)
