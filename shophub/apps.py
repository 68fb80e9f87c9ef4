import time

from django.apps import AppConfig


class ShophubConfig(AppConfig):
    name = "shophub"
    started_at = time.monotonic()

    def ready(self):
        from . import checks  # noqa: F401  registers system checks

        ShophubConfig.started_at = time.monotonic()
