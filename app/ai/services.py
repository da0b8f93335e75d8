"""
AI service for chat assists.

This module provides the AIService class for:
- Chat summaries over the latest messages
- Three short reply suggestions for a message
- Moderation of outgoing message text

Related files:
    - providers/: Provider implementations
    - constants.py: Limits, fallbacks and the blocklist
    - views.py: HTTP endpoints (participant checks and rate limits)

Configuration:
    - OPENAI_API_KEY: without it every operation answers with stub output
    - AI_PROVIDER: provider type (default "openai")
    - AI_MODEL: model name

Failure behavior:
    Provider errors never reach the caller. summarize falls back to the
    default summary, draft_reply to a fixed suggestion list, and moderate
    approves the message.

Usage:
    from ai.services import AIService

    AIService.summarize(chat_id)["summary"]
    AIService.draft_reply(chat_id, "Can you review?")["suggestions"]
    AIService.moderate(text)["approved"]
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ai.constants import AI_CONFIG
from ai.providers import get_default_provider
from ai.providers.base import ProviderError
from chat.models import Message
from core.services import BaseService

SUMMARY_PROMPT = """
You are an assistant summarizing a chat conversation.
Provide a concise summary (2-3 sentences) focusing on decisions, blockers, and next steps if mentioned.
Transcript:
{transcript}
""".strip()

DRAFT_PROMPT = """
You are an assistant composing short chat replies (max {max_length} characters each).
Provide three practical, friendly reply options in bullet form.
Latest message to respond to:
{message}

Recent context:
{context}
""".strip()

MODERATION_PROMPT = """
You are a safety filter for a chat platform.
Classify the following message as either "allow" or "block".
If blocked, provide a short reason referencing policy categories.
Message:
{message}
""".strip()

# Bullets, numbering and surrounding whitespace before a suggestion
_BULLET_PREFIX = re.compile(r"^[\-\d\.\s]+")


@dataclass(frozen=True)
class TranscriptLine:
    sender_id: str
    text: str | None
    message_type: str

    def render(self) -> str:
        return f"{self.sender_id}: {self.text or f'[{self.message_type}]'}"


def parse_suggestions(text: str, limit: int = AI_CONFIG.SUGGESTION_COUNT) -> list[str]:
    """Split a bulleted model answer into at most limit suggestions."""
    suggestions = []
    for line in text.splitlines():
        cleaned = _BULLET_PREFIX.sub("", line).strip()
        if cleaned:
            suggestions.append(cleaned)
    return suggestions[:limit]


class AIService(BaseService):
    """
    Chat assists backed by a completion provider.

    Methods:
        recent_transcript: Latest messages of a chat, oldest first
        summarize: {"summary": str}
        draft_reply: {"suggestions": [str, str, str]}
        moderate: {"approved": bool, "reason": str | None}
    """

    @classmethod
    def recent_transcript(cls, chat_id: str, limit: int) -> list[TranscriptLine]:
        rows = (
            Message.objects.filter(chat_id=chat_id, is_deleted=False)
            .order_by("-created_at", "-id")
            .values_list("sender_id", "text", "message_type")[:limit]
        )
        lines = [
            TranscriptLine(
                sender_id=str(sender_id) if sender_id else "unknown",
                text=text,
                message_type=message_type or "text",
            )
            for sender_id, text, message_type in rows
        ]
        lines.reverse()
        return lines

    @classmethod
    def summarize(cls, chat_id: str) -> dict:
        messages = cls.recent_transcript(chat_id, AI_CONFIG.SUMMARY_MESSAGE_LIMIT)
        if not messages:
            return {"summary": AI_CONFIG.DEFAULT_SUMMARY_MESSAGE}

        provider = get_default_provider()
        if provider is None:
            last = messages[-1]
            return {
                "summary": f'Recent activity from {last.sender_id}: "{last.text or "sent an update"}".'
            }

        prompt = SUMMARY_PROMPT.format(
            transcript="\n".join(line.render() for line in messages)
        )
        try:
            response = provider.complete(
                prompt, temperature=AI_CONFIG.TEMPERATURE, max_tokens=AI_CONFIG.MAX_TOKENS
            )
        except ProviderError as e:
            cls.get_logger().error(f"Failed to summarize chat {chat_id}: {e}")
            return {"summary": AI_CONFIG.DEFAULT_SUMMARY_MESSAGE}
        return {"summary": response["content"]}

    @classmethod
    def draft_reply(cls, chat_id: str, message_context: str) -> dict:
        provider = get_default_provider()
        if provider is None:
            return {
                "suggestions": [
                    f"On {chat_id}: sounds good!",
                    "I'll take a look shortly.",
                    "Thanks for the update, let's keep the thread going.",
                ]
            }

        messages = cls.recent_transcript(chat_id, AI_CONFIG.DRAFT_MESSAGE_LIMIT)
        prompt = DRAFT_PROMPT.format(
            max_length=AI_CONFIG.MAX_SUGGESTION_LENGTH,
            message=message_context,
            context="\n".join(line.render() for line in messages),
        )
        try:
            response = provider.complete(
                prompt, temperature=AI_CONFIG.TEMPERATURE, max_tokens=AI_CONFIG.MAX_TOKENS
            )
            suggestions = parse_suggestions(response["content"])
            if not suggestions:
                raise ProviderError("No suggestions returned")
        except ProviderError as e:
            cls.get_logger().error(f"Draft reply failure for chat {chat_id}: {e}")
            return {"suggestions": list(AI_CONFIG.DRAFT_FALLBACK)}
        return {"suggestions": suggestions}

    @classmethod
    def moderate(cls, text: str) -> dict:
        """
        Decide whether a message may be sent.

        Blocklisted terms are rejected without a provider call. A model
        answer containing "block" rejects with the answer as reason.
        """
        normalized = (text or "").lower()
        if any(term in normalized for term in AI_CONFIG.BLOCKLIST):
            return {"approved": False, "reason": AI_CONFIG.RESTRICTED_REASON}

        provider = get_default_provider()
        if provider is None:
            return {"approved": True, "reason": None}

        try:
            response = provider.complete(MODERATION_PROMPT.format(message=text), temperature=0)
        except ProviderError as e:
            cls.get_logger().error(f"Moderation failure, approving message: {e}")
            return {"approved": True, "reason": None}

        verdict = response["content"]
        if "block" in verdict.lower():
            return {"approved": False, "reason": verdict}
        return {"approved": True, "reason": None}
