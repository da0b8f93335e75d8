"""
Tests for the chat WebSocket consumer.

The ASGI stack (JWTAuthMiddleware + URLRouter) is driven synchronously
through asgiref.async_to_sync.
"""

import pytest
from asgiref.sync import async_to_sync
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from rest_framework_simplejwt.tokens import AccessToken

from chat.middleware import JWTAuthMiddleware
from chat.models import TypingState
from chat.routing import websocket_urlpatterns

application = JWTAuthMiddleware(URLRouter(websocket_urlpatterns))


def _path(chat_id, user=None):
    path = f"/ws/chat/{chat_id}/"
    if user is not None:
        path += f"?token={AccessToken.for_user(user)}"
    return path


@async_to_sync
async def _connect_and_collect(path, frames=(), replies=0):
    """Connect, send frames, collect replies, disconnect."""
    communicator = WebsocketCommunicator(application, path)
    connected, close_code = await communicator.connect()
    received = []
    if connected:
        received.append(await communicator.receive_json_from())
        for frame in frames:
            await communicator.send_json_to(frame)
        for _ in range(replies):
            received.append(await communicator.receive_json_from())
        await communicator.disconnect()
    return connected, close_code, received


@pytest.mark.django_db(transaction=True)
class TestChatConsumer:
    """Tests for ChatConsumer."""

    def test_anonymous_connection_is_closed(self, group_chat):
        connected, close_code, _ = _connect_and_collect(_path(group_chat.id))

        assert connected is False
        assert close_code == 4001

    def test_unknown_chat_is_closed(self, alice):
        connected, close_code, _ = _connect_and_collect(_path("missing", alice))

        assert connected is False
        assert close_code == 4004

    def test_outsider_is_closed(self, group_chat, outsider):
        connected, close_code, _ = _connect_and_collect(_path(group_chat.id, outsider))

        assert connected is False
        assert close_code == 4003

    def test_participant_receives_snapshot(self, group_chat, alice, make_messages):
        """
        Connecting sends the latest window immediately.

        Why it matters: The room renders without a separate REST call.
        """
        make_messages(group_chat, alice, 2)

        connected, _, received = _connect_and_collect(_path(group_chat.id, alice))

        assert connected is True
        snapshot = received[0]
        assert snapshot["type"] == "snapshot"
        assert [m["text"] for m in snapshot["messages"]] == ["msg 0", "msg 1"]
        assert snapshot["has_more"] is False

    def test_load_older_returns_older_frame(self, group_chat, alice, make_messages):
        messages = make_messages(group_chat, alice, 3)

        _, _, received = _connect_and_collect(
            _path(group_chat.id, alice),
            frames=[{"type": "load_older", "before": str(messages[2].id), "page_size": 5}],
            replies=1,
        )

        older = received[1]
        assert older["type"] == "older"
        assert [m["text"] for m in older["messages"]] == ["msg 0", "msg 1"]

    def test_unknown_frame_type_reports_error(self, group_chat, alice):
        _, _, received = _connect_and_collect(
            _path(group_chat.id, alice), frames=[{"type": "shout"}], replies=1
        )

        assert received[1] == {"type": "error", "message": "Unknown message type: shout"}

    def test_domain_error_is_reported_without_closing(self, group_chat, alice):
        _, _, received = _connect_and_collect(
            _path(group_chat.id, alice),
            frames=[{"type": "react", "message_id": "not-a-message", "emoji": "👍"}],
            replies=1,
        )

        assert received[1]["type"] == "error"
        assert received[1]["code"]

    def test_typing_writes_finish_before_disconnect(self, group_chat, alice):
        """
        A typing burst followed by a disconnect leaves typing=False stored.

        Why it matters: Pending typing writes are tracked and awaited, so a
        closed tab never leaves others seeing "Alice is typing".
        """
        _connect_and_collect(
            _path(group_chat.id, alice), frames=[{"type": "typing", "typing": True}]
        )

        state = TypingState.objects.get(chat=group_chat, user=alice)
        assert state.typing is False
