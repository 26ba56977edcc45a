from typing import Any, Dict
import logging
from channels.layers import get_channel_layer
from asgiref.sync import async_to_sync

logger = logging.getLogger(__name__)


class RealtimeNotificationService:
    """Sends real-time events to restaurant, role and user channel groups"""

    @property
    def channel_layer(self):
        return get_channel_layer()

    @staticmethod
    def sanitize(value) -> str:
        """Group names only allow ASCII alphanumerics, hyphens, underscores and periods"""
        return ''.join(c if c.isascii() and (c.isalnum() or c in '-_.') else '_' for c in str(value))

    def restaurant_group(self, restaurant_id) -> str:
        return f'restaurant_{self.sanitize(restaurant_id)}'

    def role_group(self, restaurant_id, role: str) -> str:
        return f'restaurant_{self.sanitize(restaurant_id)}_{self.sanitize(role)}'

    def user_group(self, user_id) -> str:
        return f'user_{self.sanitize(user_id)}'

    def send(self, group_name: str, event: str, data: Dict[str, Any]) -> bool:
        """Deliver one event to a group. Failures are logged, never raised."""
        channel_layer = self.channel_layer
        if not channel_layer:
            logger.warning("No channel layer available for notifications")
            return False

        try:
            logger.debug(f"Sending {event} to group {group_name}")
            async_to_sync(channel_layer.group_send)(
                group_name,
                {
                    'type': 'realtime.event',
                    'event': event,
                    'data': data,
                }
            )
            return True
        except Exception as e:
            logger.error(f"Error sending {event} to group {group_name}: {e}")
            return False

    def notify_restaurant(self, restaurant_id, event: str, data: Dict[str, Any]) -> bool:
        """Broadcast to everyone connected for the restaurant"""
        return self.send(self.restaurant_group(restaurant_id), event, data)

    def notify_role(self, restaurant_id, role: str, event: str, data: Dict[str, Any]) -> bool:
        """Send to every connection of one staff role"""
        return self.send(self.role_group(restaurant_id, role), event, data)

    def notify_user(self, user_id, event: str, data: Dict[str, Any]) -> bool:
        """Unicast to one staff member's connections"""
        return self.send(self.user_group(user_id), event, data)

    def _get_timestamp(self):
        """Get current timestamp in ISO format"""
        from django.utils import timezone
        return timezone.now().isoformat()


# Global instance for easy access
notification_service = RealtimeNotificationService()
