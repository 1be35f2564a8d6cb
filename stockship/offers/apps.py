from django.apps import AppConfig


class OffersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'stockship.offers'

    def ready(self):
        """Import signals when app is ready"""
        import stockship.offers.signals  # noqa: F401
