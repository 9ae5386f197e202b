from django.apps import AppConfig


class SubsyncConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'subsync'
    verbose_name = 'Subscription catalog sync'

    def ready(self):
        from . import receivers  # noqa: F401
