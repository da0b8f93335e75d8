"""
URL configuration for AI app.

Routes:
    POST /chats/<chat_id>/summary/ - Summarize chat
    POST /chats/<chat_id>/draft/   - Draft replies
    POST /moderate/                - Moderate a message

Usage in config/urls.py:
    path("api/v1/ai/", include("ai.urls")),
"""

from django.urls import path

from . import views

app_name = "ai"

urlpatterns = [
    path(
        "chats/<str:chat_id>/summary/",
        views.ChatSummaryView.as_view(),
        name="chat-summary",
    ),
    path(
        "chats/<str:chat_id>/draft/",
        views.DraftReplyView.as_view(),
        name="chat-draft",
    ),
    path(
        "moderate/",
        views.ModerationView.as_view(),
        name="moderate",
    ),
]
