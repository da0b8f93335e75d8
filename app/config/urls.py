"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        token/                     - Obtain JWT pair (email/password)
        token/refresh/             - Refresh access token
        me/                        - Current user (GET/PATCH)
        push-tokens/               - Register a device push token
        users/search/              - User search-as-you-type
    /api/v1/chat/                  - Chat endpoints
        chats/                     - Roster list / group create
        chats/direct/              - Start or fetch a direct chat
        lobby/join/                - Join the shared lobby
        chats/{id}/mute/           - Mute / unmute notifications
        chats/{id}/messages/       - Message pages / send
        chats/{id}/messages/{pk}/  - Edit / soft delete
        chats/{id}/messages/{pk}/reactions/ - Toggle reaction
        chats/{id}/read/           - Read receipts
        chats/{id}/typing/         - Typing flag
        presence/                  - Presence ping
    /api/v1/ai/                    - AI assists
        chats/{id}/summary/        - Summarize chat
        chats/{id}/draft/          - Draft replies
        moderate/                  - Moderate a message

WebSocket routes live in chat/routing.py (ws/chat/{id}/).

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # JWT
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Profile, push tokens, user search
    path("auth/", include("authentication.urls")),
    # Chat
    path("chat/", include("chat.urls")),
    # AI
    path("ai/", include("ai.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Chat Admin"
admin.site.site_title = "Chat Admin Portal"
admin.site.index_title = "Welcome to the Chat Admin Portal"
