"""
Views for the chat API.

This module provides REST API endpoints for the chat system:
- Chat roster, group and direct chat creation, lobby membership, muting
- Message pages, send, edit, soft delete, reactions, read receipts
- Typing flags and the HTTP presence ping

URL Structure:
    /api/v1/chat/chats/                                   GET, POST
    /api/v1/chat/chats/direct/                            POST
    /api/v1/chat/lobby/join/                              POST
    /api/v1/chat/chats/{chat_id}/mute/                    POST, DELETE
    /api/v1/chat/chats/{chat_id}/messages/                GET, POST
    /api/v1/chat/chats/{chat_id}/messages/{id}/           PATCH, DELETE
    /api/v1/chat/chats/{chat_id}/messages/{id}/reactions/ POST
    /api/v1/chat/chats/{chat_id}/read/                    POST
    /api/v1/chat/chats/{chat_id}/typing/                  POST
    /api/v1/chat/presence/                                POST

Design Decisions:
    - Views are thin: validation in serializers, business logic in the
      store and services
    - Domain errors from the store propagate as core.exceptions and are
      rendered by core.views.application_exception_handler
    - ServiceResult failures from services map to 400/403/404 here
    - The presence ping answers {"ok": ...} bodies for every outcome
"""

from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed, MethodNotAllowed, NotAuthenticated
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from chat.constants import PRESENCE_CONFIG
from chat.roster import ChatRoster
from chat.sender import SendPipeline
from chat.serializers import (
    ChatSummarySerializer,
    DirectChatSerializer,
    GroupCreateSerializer,
    MarkReadSerializer,
    MessageCreateSerializer,
    MessageEditSerializer,
    MessagePageQuerySerializer,
    MessageRecordSerializer,
    PresenceSerializer,
    ReactionSerializer,
    TypingSerializer,
)
from chat.services import ChatService, PresenceService
from chat.store import MessageStore
from chat.timeline import MessageTimeline
from chat.typing_indicators import TypingService
from core.decorators import rate_limit
from core.exceptions import NotFoundError, RateLimitError

logger = logging.getLogger(__name__)

User = get_user_model()

FAILURE_STATUS = {
    "CHAT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "NOT_A_PARTICIPANT": status.HTTP_403_FORBIDDEN,
}


def _failure_response(result) -> Response:
    return Response(
        result.to_response(),
        status=FAILURE_STATUS.get(result.error_code, status.HTTP_400_BAD_REQUEST),
    )


def _page_response(snapshot) -> Response:
    return Response(
        {
            "messages": MessageRecordSerializer(snapshot.messages, many=True).data,
            "has_more": snapshot.has_more,
            "cursor": snapshot.cursor,
        }
    )


# =============================================================================
# Chats
# =============================================================================


class ChatListView(APIView):
    """
    The caller's chat roster.

    GET  /api/v1/chat/chats/
        Summaries sorted by latest activity. A user without chats gets a
        single lobby placeholder.

    POST /api/v1/chat/chats/
        Create a group chat with the caller and the given members.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_chats",
        summary="List chats",
        responses=ChatSummarySerializer(many=True),
        tags=["Chat - Chats"],
    )
    def get(self, request):
        summaries = ChatRoster(request.user.id).summaries()
        return Response(ChatSummarySerializer(summaries, many=True).data)

    @extend_schema(
        operation_id="create_group_chat",
        summary="Create group chat",
        request=GroupCreateSerializer,
        responses={
            201: ChatSummarySerializer,
            400: OpenApiResponse(description="Missing name or unknown members"),
        },
        tags=["Chat - Chats"],
    )
    def post(self, request):
        serializer = GroupCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = ChatService.create_group(
            creator=request.user,
            name=data["name"],
            member_ids=data["member_ids"],
            description=data.get("description"),
            avatar_url=data.get("avatar_url"),
        )
        if not result:
            return _failure_response(result)

        summary = ChatRoster(request.user.id).summary_of(result.data)
        return Response(ChatSummarySerializer(summary).data, status=status.HTTP_201_CREATED)


class DirectChatView(APIView):
    """
    POST /api/v1/chat/chats/direct/

    Create or fetch the direct chat with another user. Both sides resolve
    to the same chat.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="start_direct_chat",
        summary="Start direct chat",
        request=DirectChatSerializer,
        responses={200: ChatSummarySerializer},
        tags=["Chat - Chats"],
    )
    def post(self, request):
        serializer = DirectChatSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        other = User.objects.filter(
            id=serializer.validated_data["user_id"], is_active=True
        ).first()
        if other is None:
            raise NotFoundError("User not found", error_code="USER_NOT_FOUND")

        result = ChatService.start_direct(request.user, other)
        if not result:
            return _failure_response(result)

        summary = ChatRoster(request.user.id).summary_of(result.data)
        return Response(ChatSummarySerializer(summary).data)


class LobbyJoinView(APIView):
    """POST /api/v1/chat/lobby/join/ - Join the shared lobby, creating it if needed."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="join_lobby",
        summary="Join lobby",
        request=None,
        responses={200: ChatSummarySerializer},
        tags=["Chat - Chats"],
    )
    def post(self, request):
        result = ChatService.ensure_lobby(request.user)
        if not result:
            return _failure_response(result)

        summary = ChatRoster(request.user.id).summary_of(result.data)
        return Response(ChatSummarySerializer(summary).data)


class ChatMuteView(APIView):
    """
    POST   /api/v1/chat/chats/{chat_id}/mute/ - Stop push notifications
    DELETE /api/v1/chat/chats/{chat_id}/mute/ - Resume push notifications
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(operation_id="mute_chat", request=None, tags=["Chat - Chats"])
    def post(self, request, chat_id):
        return self._set_muted(request, chat_id, True)

    @extend_schema(operation_id="unmute_chat", request=None, tags=["Chat - Chats"])
    def delete(self, request, chat_id):
        return self._set_muted(request, chat_id, False)

    def _set_muted(self, request, chat_id, muted: bool) -> Response:
        result = ChatService.set_muted(chat_id, request.user, muted)
        if not result:
            return _failure_response(result)
        return Response({"chat_id": chat_id, "muted": muted})


# =============================================================================
# Messages
# =============================================================================


class MessageListView(APIView):
    """
    GET  /api/v1/chat/chats/{chat_id}/messages/
        Newest page, or the page older than ?before=<message_id>.
        Messages are oldest first; "cursor" is the id to pass as before.

    POST /api/v1/chat/chats/{chat_id}/messages/
        Send a message. Text passes moderation before it is stored.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_messages",
        summary="List messages",
        parameters=[MessagePageQuerySerializer],
        tags=["Chat - Messages"],
    )
    def get(self, request, chat_id):
        query = MessagePageQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        page_size = query.validated_data["page_size"]

        store = MessageStore()
        store.require_participant(chat_id, request.user.id)

        before = query.validated_data.get("before")
        if before:
            return _page_response(store.load_older(chat_id, before, page_size))
        return _page_response(store.latest_page(chat_id, page_size))

    @extend_schema(
        operation_id="send_message",
        summary="Send message",
        request=MessageCreateSerializer,
        responses={
            201: MessageRecordSerializer,
            400: OpenApiResponse(description="Empty message or blocked by moderation"),
            403: OpenApiResponse(description="Not a participant"),
        },
        tags=["Chat - Messages"],
    )
    def post(self, request, chat_id):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        pipeline = SendPipeline(timeline=MessageTimeline())
        record = pipeline.send(
            chat_id,
            request.user.id,
            text=serializer.validated_data.get("text"),
            attachments=serializer.attachment_records(),
        )
        return Response(MessageRecordSerializer(record).data, status=status.HTTP_201_CREATED)


class MessageDetailView(APIView):
    """
    PATCH  /api/v1/chat/chats/{chat_id}/messages/{message_id}/ - Edit text
    DELETE /api/v1/chat/chats/{chat_id}/messages/{message_id}/ - Soft delete

    Only the sender may edit or delete.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="edit_message",
        request=MessageEditSerializer,
        responses=MessageRecordSerializer,
        tags=["Chat - Messages"],
    )
    def patch(self, request, chat_id, message_id):
        serializer = MessageEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        record = MessageStore().edit(
            chat_id, message_id, serializer.validated_data["text"], actor_id=request.user.id
        )
        return Response(MessageRecordSerializer(record).data)

    @extend_schema(
        operation_id="delete_message",
        responses=MessageRecordSerializer,
        tags=["Chat - Messages"],
    )
    def delete(self, request, chat_id, message_id):
        record = MessageStore().soft_delete(chat_id, message_id, actor_id=request.user.id)
        return Response(MessageRecordSerializer(record).data)


class MessageReactionView(APIView):
    """POST /api/v1/chat/chats/{chat_id}/messages/{message_id}/reactions/ - Toggle own reaction."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="toggle_reaction",
        request=ReactionSerializer,
        responses=MessageRecordSerializer,
        tags=["Chat - Messages"],
    )
    def post(self, request, chat_id, message_id):
        serializer = ReactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        record = MessageStore().toggle_reaction(
            chat_id, message_id, serializer.validated_data["emoji"], request.user.id
        )
        return Response(MessageRecordSerializer(record).data)


class MarkReadView(APIView):
    """POST /api/v1/chat/chats/{chat_id}/read/ - Add the caller to readers of messages."""

    permission_classes = [IsAuthenticated]

    @extend_schema(operation_id="mark_read", request=MarkReadSerializer, tags=["Chat - Messages"])
    def post(self, request, chat_id):
        serializer = MarkReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        marked = MessageStore().mark_read(
            chat_id, serializer.validated_data["message_ids"], request.user.id
        )
        return Response({"marked": marked})


# =============================================================================
# Typing & Presence
# =============================================================================


class TypingView(APIView):
    """POST /api/v1/chat/chats/{chat_id}/typing/ - Set the caller's typing flag."""

    permission_classes = [IsAuthenticated]

    @extend_schema(operation_id="set_typing", request=TypingSerializer, tags=["Chat - Presence"])
    def post(self, request, chat_id):
        serializer = TypingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        record = TypingService.set_typing(
            chat_id, request.user.id, serializer.validated_data["typing"]
        )
        return Response({"user_id": record.user_id, "typing": record.typing})


class PresenceView(APIView):
    """
    HTTP presence ping.

    POST /api/v1/chat/presence/
        Payload: {"status": "online" | "away" | "offline"} (default online)

    Used where a visibility-change write may not complete (mobile
    backgrounding). Every outcome is an {"ok": ...} body:
        200 {"ok": true}
        400 invalid payload, 401 missing/invalid token, 405 wrong method,
        429 rate limited, 500 write failed
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="presence_ping",
        summary="Presence ping",
        request=PresenceSerializer,
        responses={
            200: OpenApiResponse(description='{"ok": true}'),
            429: OpenApiResponse(description="Rate limited"),
        },
        tags=["Chat - Presence"],
    )
    @rate_limit(scope="presence", rule=PRESENCE_CONFIG.RATE_LIMIT)
    def post(self, request):
        serializer = PresenceSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {"ok": False, "message": "Invalid payload."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        result = PresenceService.set_status(request.user.id, serializer.validated_data["status"])
        if not result:
            logger.error(f"Failed to update presence for {request.user.id}: {result.error}")
            return Response(
                {"ok": False, "message": "Unable to update presence."},
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        return Response({"ok": True})

    def handle_exception(self, exc):
        if isinstance(exc, (NotAuthenticated, AuthenticationFailed)):
            message = (
                "Authentication failed."
                if isinstance(exc, AuthenticationFailed)
                else "Authentication is required."
            )
            return Response({"ok": False, "message": message}, status=status.HTTP_401_UNAUTHORIZED)
        if isinstance(exc, MethodNotAllowed):
            return Response(
                {"ok": False, "message": "Method Not Allowed"},
                status=status.HTTP_405_METHOD_NOT_ALLOWED,
            )
        if isinstance(exc, RateLimitError):
            response = Response(
                {"ok": False, "message": exc.message}, status=status.HTTP_429_TOO_MANY_REQUESTS
            )
            response["Retry-After"] = str(exc.details.get("retry_after", 1))
            return response
        return super().handle_exception(exc)
