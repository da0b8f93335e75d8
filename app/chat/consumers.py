"""
WebSocket consumers for the chat application.

This module implements the WebSocket consumer that streams a chat's live
message window and typing indicators to connected clients.

Consumers:
    ChatConsumer: Handles WebSocket connections for one chat

Authentication:
    Users are authenticated via JWT token passed as query parameter.
    JWTAuthMiddleware attaches the user to self.scope["user"].

Channel Groups:
    Each chat has a channel group named "chat_{chat_id}". Committed writes
    (chat.signals) broadcast "chat.changed" and "chat.typing" events to it.

Message Types (from client):
    - typing: {"type": "typing", "typing": true}
    - read: {"type": "read", "message_ids": ["<uuid>", ...]}
    - react: {"type": "react", "message_id": "<uuid>", "emoji": "👍"}
    - load_older: {"type": "load_older", "before": "<uuid>", "page_size": 30}

Message Types (to client):
    - snapshot: Full latest window of messages
    - older: One page of older messages
    - typing: Another user's typing flag changed
    - error: Error response

Close Codes:
    4001: Not authenticated
    4003: Not a participant
    4004: Chat does not exist
"""

from __future__ import annotations

import asyncio
import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.contrib.auth.models import AnonymousUser

from chat.constants import MESSAGE_CONFIG
from chat.models import Chat
from chat.realtime import chat_group_name
from chat.serializers import MessageRecordSerializer
from chat.store import MessageStore
from chat.typing_indicators import TypingDebouncer, TypingService
from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def _snapshot_payload(event_type: str, snapshot) -> dict:
    return {
        "type": event_type,
        "messages": [MessageRecordSerializer(record).data for record in snapshot.messages],
        "has_more": snapshot.has_more,
        "cursor": snapshot.cursor,
    }


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for one chat's live window.

    Handles:
        - Connection authentication and authorization
        - Joining/leaving the chat's channel group
        - Re-sending the latest window after every committed change
        - Typing indicators and read receipts
        - Reaction toggles

    Attributes:
        chat_id: Id of the connected chat
        room_group_name: Channel layer group name for the chat
        page_size: Size of the live window
    """

    page_size = MESSAGE_CONFIG.ROOM_PAGE_SIZE

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.chat_id: str | None = None
        self.room_group_name: str | None = None
        self.store = MessageStore()
        self.typing_debouncer: TypingDebouncer | None = None
        self.typing_writes: set[asyncio.Task] = set()

    async def connect(self):
        """
        Handle WebSocket connection.

        Validates:
            1. User is authenticated
            2. Chat exists
            3. User is a participant in the chat

        On success, joins the channel group, accepts the connection and
        sends the current window.
        """
        self.chat_id = self.scope["url_route"]["kwargs"]["chat_id"]
        user = self.scope.get("user")

        if not user or isinstance(user, AnonymousUser):
            logger.warning(f"Rejected unauthenticated connection to chat {self.chat_id}")
            await self.close(code=4001)
            return

        chat = await self._get_chat()
        if chat is None:
            logger.warning(f"User {user.id} tried to connect to non-existent chat {self.chat_id}")
            await self.close(code=4004)
            return

        if not await self._is_participant(chat, user):
            logger.warning(f"User {user.id} is not a participant in chat {self.chat_id}")
            await self.close(code=4003)
            return

        self.room_group_name = chat_group_name(self.chat_id)
        await self.channel_layer.group_add(self.room_group_name, self.channel_name)
        self.typing_debouncer = TypingDebouncer(
            emit=lambda typing: self._schedule_typing_write(user, typing),
            scheduler=asyncio.get_running_loop(),
        )

        await self.accept()
        logger.info(f"User {user.id} connected to chat {self.chat_id}")

        await self._send_snapshot()

    async def disconnect(self, close_code):
        """Clear the typing flag, wait for pending typing writes, leave the group."""
        if self.typing_debouncer is not None:
            self.typing_debouncer.flush()
        if self.typing_writes:
            # Let the final typing=false write land before the socket goes away
            await asyncio.gather(*self.typing_writes, return_exceptions=True)
        if self.room_group_name:
            await self.channel_layer.group_discard(self.room_group_name, self.channel_name)
            user = self.scope.get("user")
            user_id = user.id if user and not isinstance(user, AnonymousUser) else "anonymous"
            logger.info(f"User {user_id} disconnected from chat {self.chat_id} ({close_code})")

    async def receive_json(self, content, **kwargs):
        """
        Handle incoming WebSocket frames.

        Domain errors are reported back as {"type": "error"} frames and
        never close the socket.
        """
        if not isinstance(content, dict):
            await self._send_error("Frames must be JSON objects")
            return

        frame_type = content.get("type")
        handler = {
            "typing": self._handle_typing,
            "read": self._handle_read,
            "react": self._handle_react,
            "load_older": self._handle_load_older,
        }.get(frame_type)

        if handler is None:
            await self._send_error(f"Unknown message type: {frame_type}")
            return

        try:
            await handler(self.scope["user"], content)
        except BaseApplicationError as e:
            logger.info(f"Chat {self.chat_id} frame {frame_type} rejected: {e}")
            await self._send_error(e.message, code=e.error_code)

    async def _handle_typing(self, user, content):
        # Keystroke bursts collapse into one true write and one false write
        if content.get("typing", True):
            self.typing_debouncer.input()
        else:
            self.typing_debouncer.flush()

    async def _handle_read(self, user, content):
        message_ids = content.get("message_ids") or []
        if not isinstance(message_ids, list):
            await self._send_error("message_ids must be a list")
            return
        await self._mark_read(user, message_ids)

    async def _handle_react(self, user, content):
        await self._toggle_reaction(user, content.get("message_id"), content.get("emoji") or "")

    async def _handle_load_older(self, user, content):
        try:
            page_size = int(content.get("page_size") or MESSAGE_CONFIG.DEFAULT_PAGE_SIZE)
        except (TypeError, ValueError):
            await self._send_error("page_size must be an integer")
            return
        page_size = min(page_size, MESSAGE_CONFIG.MAX_PAGE_SIZE)
        payload = await self._older_payload(content.get("before"), page_size)
        await self.send_json(payload)

    async def chat_changed(self, event):
        """
        Handle chat.changed events from channel layer.

        Sends the full current window; clients merge it like any snapshot.
        """
        await self._send_snapshot()

    async def chat_typing(self, event):
        """
        Handle chat.typing events from channel layer.

        Sends typing indicator to the WebSocket client (except the typist).
        """
        user = self.scope.get("user")
        if user and str(user.id) == str(event["user_id"]):
            return

        await self.send_json(
            {
                "type": "typing",
                "user_id": str(event["user_id"]),
                "typing": event["typing"],
                "updated_at": event.get("updated_at"),
            }
        )

    async def _send_snapshot(self):
        payload = await self._snapshot_payload()
        await self.send_json(payload)

    async def _send_error(self, message: str, code: str | None = None):
        frame = {"type": "error", "message": message}
        if code:
            frame["code"] = code
        await self.send_json(frame)

    def _schedule_typing_write(self, user, typing: bool) -> asyncio.Task:
        task = asyncio.ensure_future(self._write_typing(user, typing))
        self.typing_writes.add(task)
        task.add_done_callback(self.typing_writes.discard)
        return task

    async def _write_typing(self, user, typing: bool):
        try:
            await self._set_typing(user, typing)
        except Exception:
            logger.warning(f"Typing write for {user.id} in chat {self.chat_id} failed", exc_info=True)

    @database_sync_to_async
    def _get_chat(self) -> Chat | None:
        return Chat.objects.filter(id=self.chat_id).first()

    @database_sync_to_async
    def _is_participant(self, chat: Chat, user) -> bool:
        return chat.has_participant(user.id)

    @database_sync_to_async
    def _snapshot_payload(self) -> dict:
        return _snapshot_payload("snapshot", self.store.latest_page(self.chat_id, self.page_size))

    @database_sync_to_async
    def _older_payload(self, before, page_size: int) -> dict:
        return _snapshot_payload("older", self.store.load_older(self.chat_id, before, page_size))

    @database_sync_to_async
    def _set_typing(self, user, typing: bool):
        return TypingService.set_typing(self.chat_id, user.id, typing)

    @database_sync_to_async
    def _mark_read(self, user, message_ids: list) -> int:
        return self.store.mark_read(self.chat_id, message_ids, user.id)

    @database_sync_to_async
    def _toggle_reaction(self, user, message_id, emoji: str):
        return self.store.toggle_reaction(self.chat_id, message_id, emoji, user.id)
