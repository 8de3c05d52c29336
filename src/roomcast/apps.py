from django.apps import AppConfig


class RoomcastConfig(AppConfig):
    name = "roomcast"
    default_auto_field = "django.db.models.AutoField"
