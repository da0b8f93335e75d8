"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/<chat_id>/ - Live messages and typing for one chat

Authentication:
    JWT token should be passed as query parameter: ?token=<jwt_access_token>
    JWTAuthMiddleware validates it and attaches the user to the scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path(
        "ws/chat/<str:chat_id>/",
        consumers.ChatConsumer.as_asgi(),
    ),
]
