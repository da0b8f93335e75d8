"""
DRF serializers for AI app.

Usage:
    serializer = DraftRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = AIService.draft_reply(chat_id, serializer.validated_data["message_context"])
"""

from __future__ import annotations

from rest_framework import serializers

from chat.constants import MESSAGE_CONFIG


class DraftRequestSerializer(serializers.Serializer):
    """The message to draft replies for."""

    message_context = serializers.CharField(max_length=MESSAGE_CONFIG.MAX_TEXT_LENGTH)


class ModerationRequestSerializer(serializers.Serializer):
    message = serializers.CharField(max_length=MESSAGE_CONFIG.MAX_TEXT_LENGTH)


class SummaryResponseSerializer(serializers.Serializer):
    summary = serializers.CharField()


class DraftResponseSerializer(serializers.Serializer):
    suggestions = serializers.ListField(child=serializers.CharField())


class ModerationResponseSerializer(serializers.Serializer):
    approved = serializers.BooleanField()
    reason = serializers.CharField(allow_null=True)
