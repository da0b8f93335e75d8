"""
DRF views for AI app.

Endpoints:
    POST /api/v1/ai/chats/{chat_id}/summary/ - Summarize the latest messages
    POST /api/v1/ai/chats/{chat_id}/draft/   - Suggest three replies
    POST /api/v1/ai/moderate/                - Check a message before sending

Summary and draft require chat participation, checked before the rate
limit so rejected callers do not spend their budget. Limits per user:
summary 3/min, draft 5/min, moderate 10 per 30s.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ai.constants import RATE_LIMITS
from ai.serializers import (
    DraftRequestSerializer,
    DraftResponseSerializer,
    ModerationRequestSerializer,
    ModerationResponseSerializer,
    SummaryResponseSerializer,
)
from ai.services import AIService
from chat.store import MessageStore
from core.decorators import rate_limit, rate_limit_key
from core.ratelimit import get_rate_limiter

logger = logging.getLogger(__name__)


def _enforce(scope: str, rule, request) -> None:
    get_rate_limiter().enforce(rate_limit_key(scope, request), rule)


class ChatSummaryView(APIView):
    """Summarize a chat the caller participates in."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="ai_summarize_chat",
        summary="Summarize chat",
        request=None,
        responses={
            200: SummaryResponseSerializer,
            403: OpenApiResponse(description="Not a participant"),
            429: OpenApiResponse(description="Rate limited"),
        },
        tags=["AI"],
    )
    def post(self, request, chat_id):
        MessageStore().require_participant(chat_id, request.user.id)
        _enforce("ai:summarize", RATE_LIMITS.SUMMARIZE, request)

        result = AIService.summarize(chat_id)
        logger.info(f"Summarized chat {chat_id} for {request.user.id}")
        return Response(SummaryResponseSerializer(result).data)


class DraftReplyView(APIView):
    """Suggest replies to a message in a chat the caller participates in."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="ai_draft_reply",
        summary="Draft replies",
        request=DraftRequestSerializer,
        responses={200: DraftResponseSerializer},
        tags=["AI"],
    )
    def post(self, request, chat_id):
        serializer = DraftRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        MessageStore().require_participant(chat_id, request.user.id)
        _enforce("ai:draft", RATE_LIMITS.DRAFT, request)

        result = AIService.draft_reply(chat_id, serializer.validated_data["message_context"])
        return Response(DraftResponseSerializer(result).data)


class ModerationView(APIView):
    """Moderate message text."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="ai_moderate_message",
        summary="Moderate message",
        request=ModerationRequestSerializer,
        responses={200: ModerationResponseSerializer},
        tags=["AI"],
    )
    @rate_limit(scope="ai:moderate", rule=RATE_LIMITS.MODERATE)
    def post(self, request):
        serializer = ModerationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = AIService.moderate(serializer.validated_data["message"])
        return Response(ModerationResponseSerializer(result).data)
