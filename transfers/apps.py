"""
Transfers — Application Configuration
"""

from django.apps import AppConfig


class TransfersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'transfers'
    verbose_name = 'Inter-store Transfers'
