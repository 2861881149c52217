from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import uuid4

from issuechat.core.config import get_settings
from issuechat.models.schemas import Sender, SessionSummary
from issuechat.store.message_store import MessageStore, now_ms

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New chat"
TITLE_MAX_LENGTH = 40


@dataclass
class ChatSession:
    session_id: str
    store: MessageStore
    title: str = DEFAULT_TITLE
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    # Serializes pipeline runs started from this session.
    pipeline_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    def summary(self) -> SessionSummary:
        return SessionSummary(
            sessionId=self.session_id,
            title=self.title,
            createdAt=self.created_at,
            updatedAt=self.updated_at,
            messageCount=len(self.store),
        )


class SessionRegistry:
    """Process-scoped chat sessions. Nothing here outlives the process."""

    def __init__(self, greeting: str | None = None) -> None:
        self._greeting = get_settings().greeting_message if greeting is None else greeting
        self._sessions: dict[str, ChatSession] = {}

    def create(self, title: str | None = None, *, session_id: str | None = None) -> ChatSession:
        session_id = session_id or f"chat-{uuid4().hex[:8]}"
        if session_id in self._sessions:
            raise ValueError(f"Session already exists: {session_id}")

        session = ChatSession(
            session_id=session_id,
            store=MessageStore(session_id),
            title=(title or "").strip() or DEFAULT_TITLE,
        )
        if self._greeting:
            session.store.insert(self._greeting, Sender.bot)

        self._sessions[session_id] = session
        logger.info("Chat session created (session=%s)", session_id)
        return session

    def get(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(session_id)
        return session

    def get_or_create(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            session = self.create(session_id=session_id)
        return session

    def list(self) -> list[ChatSession]:
        return sorted(self._sessions.values(), key=lambda item: item.updated_at, reverse=True)

    def touch(self, session_id: str, user_text: str | None = None) -> ChatSession:
        session = self.get(session_id)
        session.updated_at = now_ms()
        if user_text and session.title == DEFAULT_TITLE:
            session.title = user_text.strip()[:TITLE_MAX_LENGTH] or DEFAULT_TITLE
        return session


registry = SessionRegistry()
