"""
AI app: chat summaries, draft replies and message moderation.

This app handles:
- Provider abstraction over chat-completion APIs (OpenAI)
- Deterministic stub answers when no API key is configured
- Per-user rate limits on every AI endpoint

Related apps:
    - chat: transcripts are read from chat messages; SendPipeline uses
      AIService.moderate before a message is stored

Usage:
    from ai.services import AIService

    AIService.summarize(chat_id)            # {"summary": "..."}
    AIService.draft_reply(chat_id, "Ship?") # {"suggestions": [...]}
    AIService.moderate("hello")             # {"approved": True, "reason": None}
"""
