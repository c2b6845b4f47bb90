from django.apps import AppConfig


class ExchangesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.exchanges'
    label = 'exchanges'
    verbose_name = 'Exchanges between establishments'
