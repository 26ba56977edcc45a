from .notification_service import RealtimeNotificationService, notification_service
from .projector import KitchenProjector

__all__ = ["KitchenProjector", "RealtimeNotificationService", "notification_service"]
