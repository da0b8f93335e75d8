"""
Authentication views.

Endpoints:
    GET/PATCH /api/v1/auth/me/            - Current user's public identity
    POST      /api/v1/auth/push-tokens/   - Register a device push token
    GET       /api/v1/auth/users/search/  - Search-as-you-type user lookup

Token issuance lives in config/urls.py (simplejwt TokenObtainPairView).
"""

import logging

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from authentication.serializers import (
    ProfileUpdateSerializer,
    PushTokenSerializer,
    UserSearchQuerySerializer,
    UserSerializer,
)
from authentication.services import UserDirectoryService

logger = logging.getLogger(__name__)


class MeView(APIView):
    """Read or update the authenticated user's public identity."""

    permission_classes = [IsAuthenticated]

    @extend_schema(responses=UserSerializer, tags=["Auth"])
    def get(self, request):
        return Response(UserSerializer(request.user).data)

    @extend_schema(request=ProfileUpdateSerializer, responses=UserSerializer, tags=["Auth"])
    def patch(self, request):
        serializer = ProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserDirectoryService.update_profile(
            request.user,
            display_name=serializer.validated_data.get("display_name"),
            photo_url=serializer.validated_data.get("photo_url"),
        )
        return Response(UserSerializer(user).data)


class PushTokenView(APIView):
    """Add a push-registration token to the caller's token set."""

    permission_classes = [IsAuthenticated]

    @extend_schema(request=PushTokenSerializer, tags=["Auth"])
    def post(self, request):
        serializer = PushTokenSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = UserDirectoryService.register_push_token(
            request.user, serializer.validated_data["token"]
        )
        if not result:
            return Response(result.to_response(), status=status.HTTP_400_BAD_REQUEST)
        return Response({"registered": True}, status=status.HTTP_201_CREATED)


class UserSearchView(APIView):
    """Search users by display-name prefix or exact email, excluding the caller."""

    permission_classes = [IsAuthenticated]

    @extend_schema(parameters=[UserSearchQuerySerializer], responses=UserSerializer(many=True), tags=["Auth"])
    def get(self, request):
        query = UserSearchQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        users = UserDirectoryService.search(
            query.validated_data["q"],
            exclude_ids=[request.user.id],
            limit=query.validated_data["limit"],
        )
        return Response(UserSerializer(users, many=True).data)
