from django.urls import path

from .consumers import TaskEventConsumer

websocket_urlpatterns = [
    path('ws/tasks/', TaskEventConsumer.as_asgi()),
]
