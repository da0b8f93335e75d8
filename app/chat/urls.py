"""
URL configuration for chat API.

URL Structure:
    Chats:
        /chats/                                   GET, POST
        /chats/direct/                            POST
        /lobby/join/                              POST
        /chats/{chat_id}/mute/                    POST, DELETE

    Messages:
        /chats/{chat_id}/messages/                GET, POST
        /chats/{chat_id}/messages/{pk}/           PATCH, DELETE
        /chats/{chat_id}/messages/{pk}/reactions/ POST
        /chats/{chat_id}/read/                    POST

    Typing & Presence:
        /chats/{chat_id}/typing/                  POST
        /presence/                                POST

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
"""

from django.urls import path

from chat.views import (
    ChatListView,
    ChatMuteView,
    DirectChatView,
    LobbyJoinView,
    MarkReadView,
    MessageDetailView,
    MessageListView,
    MessageReactionView,
    PresenceView,
    TypingView,
)

app_name = "chat"

urlpatterns = [
    # Chats
    path("chats/", ChatListView.as_view(), name="chat-list"),
    path("chats/direct/", DirectChatView.as_view(), name="chat-direct"),
    path("lobby/join/", LobbyJoinView.as_view(), name="lobby-join"),
    path("chats/<str:chat_id>/mute/", ChatMuteView.as_view(), name="chat-mute"),
    # Messages
    path(
        "chats/<str:chat_id>/messages/",
        MessageListView.as_view(),
        name="chat-message-list",
    ),
    path(
        "chats/<str:chat_id>/messages/<str:message_id>/",
        MessageDetailView.as_view(),
        name="chat-message-detail",
    ),
    path(
        "chats/<str:chat_id>/messages/<str:message_id>/reactions/",
        MessageReactionView.as_view(),
        name="chat-message-reactions",
    ),
    path("chats/<str:chat_id>/read/", MarkReadView.as_view(), name="chat-read"),
    # Typing & presence
    path("chats/<str:chat_id>/typing/", TypingView.as_view(), name="chat-typing"),
    path("presence/", PresenceView.as_view(), name="presence"),
]
