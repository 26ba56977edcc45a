from django.apps import AppConfig


class RestaurantsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "restaurants"

    def ready(self):
        # Table cache receivers listen to order signals
        import restaurants.handlers  # noqa: F401
