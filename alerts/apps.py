"""
Alerts — Application Configuration
"""

from django.apps import AppConfig


class AlertsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'alerts'
    verbose_name = 'Variance Alerts'

    def ready(self):
        import alerts.receivers  # noqa: F401
