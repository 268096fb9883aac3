from django.apps import AppConfig


class TrailConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'trail'
