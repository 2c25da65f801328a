"""Typed errors raised by the conversation store.

Absence of an annotation is *not* an error: :meth:`AnnotationStore.get_annotation`
returns ``None`` for that case.
"""
from __future__ import annotations


class ChatContextError(Exception):
    """Base class for every error raised by this package."""


# -----------------------------
# Not found
# -----------------------------
class NotFound(ChatContextError, LookupError):
    """A reference or blob is absent on read."""


class ObjectNotFound(NotFound):
    def __init__(self, digest: str) -> None:
        super().__init__(f"Object not found: {digest}")
        self.digest = digest


class RefNotFound(NotFound):
    def __init__(self, name: str) -> None:
        super().__init__(f"Reference not found: {name}")
        self.name = name


class MessageNotFound(NotFound):
    def __init__(self, session_id: str, message_id: str) -> None:
        super().__init__(f"Message {message_id} not found in session {session_id}")
        self.session_id = session_id
        self.message_id = message_id


# -----------------------------
# Everything else
# -----------------------------
class RefExists(ChatContextError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Reference already exists: {name}")
        self.name = name


class BranchCreationError(ChatContextError):
    """Source reference missing or target branch name already taken."""


class SerializationError(ChatContextError, ValueError):
    """Stored bytes could not be decoded into the expected shape."""


class BackendFailure(ChatContextError, OSError):
    """The underlying store is unreadable/unwritable or returned garbage."""
