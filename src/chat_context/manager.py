from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from . import adapters
from .errors import BranchCreationError, MessageNotFound, RefExists
from .message import Message, MessageDraft, MessageType
from .storage import ConversationStore, branch_ref, message_ref

logger = logging.getLogger(__name__)


class MessageManager:
    """
    Builds messages and hands them to a :class:`ConversationStore`.

    Also owns branching: a branch is a new reference, in the same store, that
    starts at an existing message's hash and evolves independently.
    """

    def __init__(
        self,
        store: ConversationStore,
        *,
        id_prefix: str = "msg-",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.id_prefix = id_prefix
        self._clock = clock

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "MessageManager":
        msg_cfg = cfg.get("messages", {}) or {}
        return cls(
            ConversationStore.from_config(cfg),
            id_prefix=str(msg_cfg.get("id_prefix", "msg-")),
        )

    def _new_id(self) -> str:
        # 48 random bits
        return f"{self.id_prefix}{uuid.uuid4().hex[:12]}"

    # ---------- messages ----------
    def create_message(
        self,
        session_id: str,
        type: Union[MessageType, str],
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        """Build, persist and return a new message.

        When ``metadata`` is given it is stored inside the message and also
        attached as an annotation on the blob hash. The mapping is copied, so
        later changes by the caller do not leak into the returned message.
        """
        if metadata is not None:
            metadata = dict(metadata)
        message = Message(
            id=self._new_id(),
            type=MessageType(type),
            timestamp=int(self._clock()),
            content=content,
            metadata=metadata,
        )
        digest = self.store.store_message(session_id, message)
        if metadata:
            self.store.add_metadata(digest, metadata)
        return message

    def create_from_draft(self, session_id: str, draft: MessageDraft) -> Message:
        return self.create_message(session_id, draft.type, draft.content, draft.metadata or None)

    def get_message(self, session_id: str, message_id: str) -> Message:
        return self.store.get_message(session_id, message_id)

    def list_messages(self, session_id: str) -> List[Message]:
        return self.store.list_messages(session_id)

    # ---------- branching ----------
    def create_branch(self, session_id: str, message_id: str, new_session_id: str) -> str:
        """Fork ``session_id`` at ``message_id`` into ``new_session_id``.

        Creates ``heads/session-<new_session_id>`` pointing at the message's
        hash and seeds the fork point into the new session. Returns the hash.
        """
        try:
            digest = self.store.message_hash(session_id, message_id)
        except MessageNotFound as e:
            raise BranchCreationError(f"Failed to create branch: {e}") from e

        with self.store.lock:
            try:
                self.store.refs.create_ref(branch_ref(new_session_id), digest)
            except RefExists as e:
                raise BranchCreationError(f"Failed to create branch: {e}") from e
            self.store.refs.set_ref(message_ref(new_session_id, message_id), digest)
        logger.info("branched %s/%s -> session %s (%s)", session_id, message_id, new_session_id, digest)
        return digest

    def get_branch(self, new_session_id: str) -> str:
        return self.store.refs.get_ref(branch_ref(new_session_id))

    # ---------- format adapters ----------
    @staticmethod
    def from_anthropic_message(msg: Union[adapters.AnthropicMessage, Mapping[str, Any]]) -> MessageDraft:
        return adapters.from_anthropic_message(msg)

    @staticmethod
    def from_openai_message(msg: Union[adapters.OpenAIMessage, Mapping[str, Any]]) -> MessageDraft:
        return adapters.from_openai_message(msg)
