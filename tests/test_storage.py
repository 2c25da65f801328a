from __future__ import annotations

import json
from pathlib import Path

import pytest

from chat_context.errors import BackendFailure, MessageNotFound, SerializationError
from chat_context.message import Message, MessageType
from chat_context.storage import ConversationStore


def _msg(mid: str = "msg-test-001", **kw) -> Message:
    fields = dict(
        id=mid,
        type=MessageType.USER_INPUT,
        timestamp=1_700_000_000,
        content="Test message content",
        metadata={"test": "metadata"},
    )
    fields.update(kw)
    return Message(**fields)


def test_store_and_retrieve(store: ConversationStore):
    msg = _msg()
    digest = store.store_message("test-session", msg)
    assert digest
    assert store.get_message("test-session", msg.id) == msg


def test_roundtrip_without_metadata(store: ConversationStore):
    msg = _msg(metadata=None, type=MessageType.LLM_OUTPUT, content="héllo ✓")
    store.store_message("s", msg)
    got = store.get_message("s", msg.id)
    assert got == msg
    assert got.metadata is None


def test_same_message_same_hash(store: ConversationStore):
    msg = _msg()
    assert store.store_message("s", msg) == store.store_message("s", msg)
    # Key order in metadata does not matter: serialization is canonical
    a = _msg(metadata={"x": 1, "y": 2})
    b = _msg(metadata={"y": 2, "x": 1})
    assert store.store_message("s", a) == store.store_message("s", b)


def test_stored_bytes_are_canonical_json(store: ConversationStore):
    msg = _msg(metadata=None)
    digest = store.store_message("s", msg)
    raw = store.objects.get(digest)
    assert raw == (
        b'{"content":"Test message content","id":"msg-test-001",'
        b'"timestamp":1700000000,"type":"user-input"}'
    )


def test_add_and_get_metadata(store: ConversationStore):
    digest = store.store_message("s", _msg(metadata=None))
    assert store.get_metadata(digest) is None
    store.add_metadata(digest, {"confidence": 0.95, "model": "test-model"})
    assert store.get_metadata(digest) == {"confidence": 0.95, "model": "test-model"}


def test_identical_messages_share_metadata_slot(store: ConversationStore):
    msg = _msg(metadata=None)
    d1 = store.store_message("s1", msg)
    d2 = store.store_message("s2", msg)
    assert d1 == d2
    store.add_metadata(d1, {"seen": "s1"})
    assert store.get_metadata(d2) == {"seen": "s1"}


def test_missing_message(store: ConversationStore):
    with pytest.raises(MessageNotFound):
        store.get_message("nope", "msg-missing")


def test_malformed_blob(store: ConversationStore):
    digest = store.objects.put(b'{"id": "x"}')
    store.refs.set_ref("conversations/s/x", digest)
    with pytest.raises(SerializationError):
        store.get_message("s", "x")

    digest = store.objects.put(b"\xff\xfe not json")
    store.refs.set_ref("conversations/s/y", digest)
    with pytest.raises(SerializationError):
        store.get_message("s", "y")


def test_backend_outage_is_distinct_from_not_found(store: ConversationStore, monkeypatch: pytest.MonkeyPatch):
    msg = _msg()
    store.store_message("s", msg)

    def boom(self):
        raise PermissionError("disk unavailable")

    monkeypatch.setattr(Path, "read_bytes", boom)
    with pytest.raises(BackendFailure):
        store.get_message("s", msg.id)


def test_invalid_session_ids(store: ConversationStore):
    with pytest.raises(ValueError):
        store.store_message("a/b", _msg())
    with pytest.raises(ValueError):
        store.store_message("..", _msg())
    with pytest.raises(ValueError):
        store.get_message("s", "")


def test_list_messages_ordered(store: ConversationStore):
    store.store_message("s", _msg("m-b", timestamp=20))
    store.store_message("s", _msg("m-a", timestamp=20))
    store.store_message("s", _msg("m-z", timestamp=10))
    store.store_message("other", _msg("m-o", timestamp=1))

    assert [m.id for m in store.list_messages("s")] == ["m-z", "m-a", "m-b"]
    assert store.list_messages("empty") == []


def test_reopen_store(store_dir: Path):
    first = ConversationStore(str(store_dir))
    msg = _msg()
    first.store_message("s", msg)

    second = ConversationStore(str(store_dir))
    assert second.get_message("s", msg.id) == msg
    marker = json.loads((store_dir / "format.json").read_text(encoding="utf-8"))
    assert marker == {"version": 1, "hash_algorithm": "sha256"}


def test_reopen_with_other_algorithm_fails(store_dir: Path):
    ConversationStore(str(store_dir))
    with pytest.raises(BackendFailure):
        ConversationStore(str(store_dir), hash_algorithm="sha1")


def test_from_config(tmp_path: Path):
    cfg = {"store": {"path": str(tmp_path / "cfg-store"), "hash_algorithm": "sha1"}}
    store = ConversationStore.from_config(cfg)
    digest = store.store_message("s", _msg())
    assert len(digest) == 40


@pytest.mark.parametrize("bad", [
    {"timestamp": 1.5},
    {"timestamp": True},
    {"content": 42},
    {"id": 7},
    {"type": "bogus"},
    {"metadata": ["not", "a", "dict"]},
])
def test_invalid_message_rejected_before_write(store: ConversationStore, bad):
    with pytest.raises(SerializationError):
        store.store_message("s", _msg(**bad))
    assert store.refs.list_refs() == {}


def test_plain_string_type_is_coerced(store: ConversationStore):
    msg = _msg(type="user-input")
    assert msg.type is MessageType.USER_INPUT
    store.store_message("s", msg)
    assert store.get_message("s", msg.id) == msg


def test_corrupt_reference_is_backend_failure(store: ConversationStore, store_dir: Path):
    msg = _msg()
    store.store_message("s", msg)
    ref = store_dir / "refs" / "conversations" / "s" / msg.id

    ref.write_text("garbage\n", encoding="ascii")
    with pytest.raises(BackendFailure):
        store.get_message("s", msg.id)

    # well-formed, but a sha1 id in a sha256 store
    ref.write_text("ab" * 20 + "\n", encoding="ascii")
    with pytest.raises(BackendFailure):
        store.get_message("s", msg.id)
    with pytest.raises(BackendFailure):
        store.list_messages("s")
