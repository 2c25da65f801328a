"""Content-addressed conversation storage.

Messages are stored as blobs keyed by their hash, indexed per session by named
references, and annotated with metadata through a side table.

Typical usage
-------------
from chat_context import ConversationStore, MessageManager, MessageType

manager = MessageManager(ConversationStore("data/conversations"))
msg = manager.create_message("session-1", MessageType.USER_INPUT, "hello")
manager.get_message("session-1", msg.id)

or, from the command line:

chat-context --store data/conversations add session-1 --type user-input --content hello
"""

from __future__ import annotations

from .adapters import from_anthropic_message, from_openai_message
from .config import load_config
from .errors import (
    BackendFailure,
    BranchCreationError,
    ChatContextError,
    MessageNotFound,
    NotFound,
    ObjectNotFound,
    RefExists,
    RefNotFound,
    SerializationError,
)
from .manager import MessageManager
from .message import Message, MessageDraft, MessageType
from .notes import AnnotationStore
from .objects import ObjectStore
from .refs import ReferenceIndex
from .storage import ConversationStore

__all__ = [
    "AnnotationStore",
    "BackendFailure",
    "BranchCreationError",
    "ChatContextError",
    "ConversationStore",
    "Message",
    "MessageDraft",
    "MessageManager",
    "MessageNotFound",
    "MessageType",
    "NotFound",
    "ObjectNotFound",
    "ObjectStore",
    "RefExists",
    "RefNotFound",
    "ReferenceIndex",
    "SerializationError",
    "__version__",
    "from_anthropic_message",
    "from_openai_message",
    "get_version",
    "load_config",
]

__version__ = "0.1.0"


def get_version() -> str:
    """Return the package version."""
    return __version__
