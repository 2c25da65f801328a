"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import sys
from pathlib import Path
import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from chat_context.manager import MessageManager  # noqa: E402
from chat_context.storage import ConversationStore  # noqa: E402


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the root directory of the project."""
    return Path(__file__).resolve().parent.parent


@pytest.fixture(scope="function")
def store_dir(tmp_path: Path) -> Path:
    """A fresh directory for a conversation store."""
    return tmp_path / "store"


@pytest.fixture(scope="function")
def store(store_dir: Path) -> ConversationStore:
    return ConversationStore(str(store_dir))


@pytest.fixture(scope="function")
def manager(store: ConversationStore) -> MessageManager:
    # Fixed clock so timestamps are predictable
    return MessageManager(store, clock=lambda: 1_700_000_000.7)


@pytest.fixture(scope="function")
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run with a clean environment (no leftover vars)."""
    import os

    for var in list(os.environ):
        if var == "CHAT_CONTEXT_CONFIG" or var.startswith("CHAT_CONTEXT__"):
            monkeypatch.delenv(var, raising=False)
    yield
