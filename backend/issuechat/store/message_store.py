from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from uuid import uuid4

from issuechat.models.schemas import (
    Message,
    MessageEvent,
    MessageEventKind,
    MessageType,
    Sender,
)

logger = logging.getLogger(__name__)

MessageListener = Callable[[MessageEvent], None]
MessageUpdater = Callable[[list[Message]], Sequence[Message]]


class DuplicateMessageError(ValueError):
    """Raised when a message id is already present in the session."""


def now_ms() -> int:
    return int(time.time() * 1000)


def new_message_id(sender: Sender) -> str:
    # Millisecond clock alone collides on rapid inserts; the random part keeps ids unique.
    return f"{sender.value}-{now_ms()}-{uuid4().hex[:12]}"


class MessageStore:
    """Ordered chat messages of one session.

    Messages are only ever appended or replaced in place, so positions are
    stable. All operations are synchronous and never await.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self._messages: list[Message] = []
        self._index: dict[str, int] = {}
        self._listeners: list[MessageListener] = []

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def get(self, message_id: str) -> Message | None:
        position = self._index.get(message_id)
        if position is None:
            return None
        return self._messages[position]

    def insert(
        self,
        content: str,
        sender: Sender = Sender.bot,
        message_type: MessageType = MessageType.text,
        *,
        message_id: str | None = None,
    ) -> str:
        if message_id is None:
            message_id = new_message_id(sender)
        elif message_id in self._index:
            raise DuplicateMessageError(f"Message id already exists: {message_id}")

        message = Message(
            id=message_id,
            content=content,
            sender=sender,
            timestamp=now_ms(),
            type=message_type,
        )
        self._index[message.id] = len(self._messages)
        self._messages.append(message)

        self._notify(MessageEventKind.created, message=message)
        return message.id

    def update(self, message_id: str, content: str) -> bool:
        position = self._index.get(message_id)
        if position is None:
            logger.debug(
                "Ignoring update for unknown message (session=%s message=%s)",
                self.session_id,
                message_id,
            )
            return False

        message = self._messages[position].model_copy(
            update={"content": content, "timestamp": now_ms()}
        )
        self._messages[position] = message

        self._notify(MessageEventKind.updated, message=message)
        return True

    def replace_all(self, updater: MessageUpdater) -> None:
        replaced = [Message.model_validate(item) for item in updater(self.messages)]

        index: dict[str, int] = {}
        for position, message in enumerate(replaced):
            if message.id in index:
                raise DuplicateMessageError(f"Message id already exists: {message.id}")
            index[message.id] = position

        self._messages = replaced
        self._index = index

        self._notify(MessageEventKind.replaced, messages=list(replaced))

    def subscribe(self, listener: MessageListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(
        self,
        kind: MessageEventKind,
        *,
        message: Message | None = None,
        messages: list[Message] | None = None,
    ) -> None:
        if not self._listeners:
            return

        event = MessageEvent(
            kind=kind,
            sessionId=self.session_id,
            ts=now_ms(),
            message=message,
            messages=messages,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Message listener failed (session=%s kind=%s)",
                    self.session_id,
                    kind.value,
                )
