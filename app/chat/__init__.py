"""
Chat app for real-time messaging.

This app handles:
- Direct, group and lobby chats
- The message store (send, edit, soft delete, reactions, read receipts)
- Optimistic send and the client-side message timeline
- Chat roster summaries
- Typing indicators and presence
- WebSocket real-time updates

Related apps:
    - authentication: User model and directory lookups
    - notifications: Push fan-out after each message
    - ai: Moderation gate for outgoing text

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.

Usage:
    from chat.store import CreateMessageParams, MessageStore
    from chat.services import ChatService

    chat = ChatService.start_direct(user, other_user).data
    record = MessageStore().create(
        CreateMessageParams(chat_id=chat.id, sender_id=user.id, text="Hello!")
    )
"""
