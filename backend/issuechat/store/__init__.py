from issuechat.store.message_store import DuplicateMessageError, MessageStore
from issuechat.store.sessions import ChatSession, SessionRegistry, registry

__all__ = [
    "ChatSession",
    "DuplicateMessageError",
    "MessageStore",
    "SessionRegistry",
    "registry",
]
