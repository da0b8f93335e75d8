"""
Serializers for authentication models.

Related files:
    - models.py: User, DeviceToken
    - views.py: Views that use these serializers
"""

from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """
    Public view of a user.

    This is the shape the chat roster and user search return; it carries no
    private fields (tokens, permissions).
    """

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "display_name",
            "photo_url",
            "is_online",
            "last_seen",
        ]
        read_only_fields = fields


class ProfileUpdateSerializer(serializers.Serializer):
    """Partial update of public identity fields."""

    display_name = serializers.CharField(
        max_length=120, required=False, allow_blank=True
    )
    photo_url = serializers.URLField(
        max_length=500, required=False, allow_blank=True
    )


class PushTokenSerializer(serializers.Serializer):
    """Push-registration token submitted by a device."""

    token = serializers.CharField(max_length=512, trim_whitespace=True)


class UserSearchQuerySerializer(serializers.Serializer):
    """Query parameters for user search."""

    q = serializers.CharField(required=False, allow_blank=True, default="")
    limit = serializers.IntegerField(required=False, min_value=1, max_value=50, default=12)
