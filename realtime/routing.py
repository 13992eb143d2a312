from django.urls import path

from . import consumers

websocket_urlpatterns = [
    path('ws/chats/<int:channel_id>/events/', consumers.ChannelEventsConsumer.as_asgi()),
]
