"""Conversation store: messages as blobs, indexed per session, with annotations."""
from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, List, Optional

from .errors import BackendFailure, MessageNotFound, RefNotFound
from .io import PathLike, atomic_write_bytes, ensure_dir, read_bytes
from .message import Message
from .notes import AnnotationStore
from .objects import HASH_ALGORITHMS, ObjectStore
from .refs import ReferenceIndex, check_ref_name

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
SESSION_NAMESPACE = "conversations"
BRANCH_NAMESPACE = "heads"


def _segment(kind: str, value: str) -> str:
    # one path segment each, so session listings never pick up nested names
    if not isinstance(value, str) or not value or "/" in value:
        raise ValueError(f"Invalid {kind}: {value!r}")
    return value


def message_ref(session_id: str, message_id: str) -> str:
    return check_ref_name(
        f"{SESSION_NAMESPACE}/{_segment('session id', session_id)}/{_segment('message id', message_id)}"
    )


def branch_ref(new_session_id: str) -> str:
    return check_ref_name(f"{BRANCH_NAMESPACE}/session-{_segment('session id', new_session_id)}")


class ConversationStore:
    """Composes the object store, reference index and annotation store.

    Layout:
        <path>/
          format.json        # {"version": 1, "hash_algorithm": "sha256"}
          objects/           # content-addressed blobs
          refs/conversations/<session>/<message-id>
          refs/heads/session-<session>
          notes/             # annotations keyed by blob hash

    Storing a message is three independent durable steps (blob, ref,
    annotation); a crash between them can leave an orphan blob or an
    unannotated one. Nothing here rolls that back.
    """

    def __init__(
        self,
        path: PathLike,
        *,
        hash_algorithm: str = "sha256",
        strict_annotations: bool = False,
    ) -> None:
        if hash_algorithm not in HASH_ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm {hash_algorithm!r}")
        self.root = ensure_dir(path)
        self.lock = threading.RLock()
        self.hash_algorithm = self._init_format(hash_algorithm)

        self.objects = ObjectStore(self.root / "objects", self.hash_algorithm)
        self.refs = ReferenceIndex(self.root / "refs")
        self.notes = AnnotationStore(self.root / "notes", self.objects, strict=strict_annotations)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "ConversationStore":
        store_cfg = cfg.get("store", {}) or {}
        return cls(
            store_cfg.get("path") or ".chat-context",
            hash_algorithm=str(store_cfg.get("hash_algorithm", "sha256")),
            strict_annotations=bool(store_cfg.get("strict_annotations", False)),
        )

    # --------- format marker ----------
    def _init_format(self, hash_algorithm: str) -> str:
        path = self.root / "format.json"
        with self.lock:
            raw = read_bytes(path)
            if raw is None:
                marker = {"version": FORMAT_VERSION, "hash_algorithm": hash_algorithm}
                atomic_write_bytes(path, json.dumps(marker, indent=2).encode("utf-8"))
                logger.info("initialized conversation store at %s (%s)", self.root, hash_algorithm)
                return hash_algorithm

        try:
            marker = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise BackendFailure(f"Unreadable store format marker {path}: {e}") from e
        stored = marker.get("hash_algorithm") if isinstance(marker, dict) else None
        if stored != hash_algorithm:
            raise BackendFailure(
                f"Store at {self.root} uses hash algorithm {stored!r}, not {hash_algorithm!r}"
            )
        return hash_algorithm

    # --------- core API ----------
    def store_message(self, session_id: str, message: Message) -> str:
        """Persist ``message`` under ``session_id``; returns the blob hash."""
        name = message_ref(session_id, message.id)
        digest = self.objects.put(message.to_bytes())
        self.refs.set_ref(name, digest)
        return digest

    def get_message(self, session_id: str, message_id: str) -> Message:
        """Resolve ``session_id/message_id`` and decode the blob behind it."""
        return Message.from_bytes(self.objects.get(self.message_hash(session_id, message_id)))

    def add_metadata(self, digest: str, metadata: Dict[str, Any]) -> None:
        self.notes.annotate(digest, metadata)

    def get_metadata(self, digest: str) -> Optional[Dict[str, Any]]:
        return self.notes.get_annotation(digest)

    # --------- convenience ----------
    def message_hash(self, session_id: str, message_id: str) -> str:
        name = message_ref(session_id, message_id)
        try:
            digest = self.refs.get_ref(name)
        except RefNotFound as e:
            raise MessageNotFound(session_id, message_id) from e
        return self._checked(name, digest)

    def _checked(self, name: str, digest: str) -> str:
        # a ref holding another algorithm's id is as corrupt as one holding garbage
        try:
            return self.objects.check_hash(digest)
        except ValueError as e:
            raise BackendFailure(f"Corrupt reference {name}: {e}") from e

    def list_messages(self, session_id: str) -> List[Message]:
        """All messages of a session, oldest first (ties broken by id)."""
        prefix = f"{SESSION_NAMESPACE}/{_segment('session id', session_id)}"
        out: List[Message] = []
        for name, digest in self.refs.list_refs(prefix).items():
            out.append(Message.from_bytes(self.objects.get(self._checked(name, digest))))
        out.sort(key=lambda m: (m.timestamp, m.id))
        return out
