from django.urls import path

from .consumers import DeliveryConsumer

websocket_urlpatterns = [
    path("ws/users/<str:user_id>/", DeliveryConsumer.as_asgi()),
]
