from django.apps import AppConfig
import logging

logger = logging.getLogger(__name__)


class CoreBackendConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "core_backend"

    def ready(self):
        """
        Log the channel layer in use so misconfigured fan-out is visible at startup.
        """
        from django.conf import settings

        backend = settings.CHANNEL_LAYERS.get("default", {}).get("BACKEND", "none")
        logger.debug(f"Core backend ready (channel layer: {backend})")
