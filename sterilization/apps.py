# sterilization/apps.py

from django.apps import AppConfig


class SterilizationConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "sterilization"
    verbose_name = "Sterilization"

    def ready(self):
        from . import signals  # noqa
