"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/token/            - Obtain JWT pair (configured in config/urls.py)
    /api/v1/auth/token/refresh/    - Refresh access token (config/urls.py)
    /api/v1/auth/me/               - Current user (GET/PATCH)
    /api/v1/auth/push-tokens/      - Register push token (POST)
    /api/v1/auth/users/search/     - User search (GET ?q=)
"""

from django.urls import path

from authentication.views import MeView, PushTokenView, UserSearchView

app_name = "authentication"

urlpatterns = [
    path("me/", MeView.as_view(), name="me"),
    path("push-tokens/", PushTokenView.as_view(), name="push-tokens"),
    path("users/search/", UserSearchView.as_view(), name="user-search"),
]
