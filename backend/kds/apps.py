from django.apps import AppConfig


class KdsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'kds'
    verbose_name = 'Kitchen display'

    def ready(self):
        # Real-time fan-out for order, payment, shift and table events
        import kds.events.handlers  # noqa: F401
