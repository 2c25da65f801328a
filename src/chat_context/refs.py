"""Named references: hierarchical names pointing at object hashes.

Each reference is a small file under ``refs/`` whose path mirrors the name
(``conversations/<session>/<message>``) and whose content is the hex digest.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict

from .errors import BackendFailure, RefExists, RefNotFound
from .io import PathLike, atomic_write_bytes, ensure_dir, exclusive_write_bytes, read_bytes

logger = logging.getLogger(__name__)

_BAD_CHARS = re.compile(r"[\x00-\x1f\x7f\\]")
# sha1 or sha256 hex
_DIGEST = re.compile(r"^(?:[0-9a-f]{40}|[0-9a-f]{64})$")


def check_ref_name(name: str) -> str:
    """Validate a reference name; raises ValueError if it cannot map to a safe path."""
    if not isinstance(name, str) or not name:
        raise ValueError("Reference name must be a non-empty string")
    if _BAD_CHARS.search(name):
        raise ValueError(f"Reference name contains forbidden characters: {name!r}")
    parts = name.split("/")
    for part in parts:
        if part in ("", ".", ".."):
            raise ValueError(f"Invalid reference name: {name!r}")
        if part.startswith(".tmp-") or part.endswith(".lock"):
            raise ValueError(f"Invalid reference name: {name!r}")
    return name


def _check_digest(digest: str) -> None:
    if not isinstance(digest, str) or not _DIGEST.match(digest):
        raise ValueError(f"Not an object id: {digest!r}")


class ReferenceIndex:
    """Maps hierarchical names to content hashes."""

    def __init__(self, root: PathLike) -> None:
        self.root = ensure_dir(root)

    def _path(self, name: str) -> Path:
        return self.root.joinpath(*check_ref_name(name).split("/"))

    def set_ref(self, name: str, digest: str) -> None:
        """Create or overwrite ``name``; last writer wins."""
        path = self._path(name)
        _check_digest(digest)
        if path.is_dir():
            raise BackendFailure(f"Reference {name} collides with a namespace")
        atomic_write_bytes(path, (digest + "\n").encode("ascii"))
        logger.debug("ref %s -> %s", name, digest)

    def create_ref(self, name: str, digest: str) -> None:
        """Create ``name`` only if it does not exist yet; RefExists otherwise."""
        path = self._path(name)
        _check_digest(digest)
        if path.is_dir() or not exclusive_write_bytes(path, (digest + "\n").encode("ascii")):
            raise RefExists(name)
        logger.debug("ref %s -> %s (new)", name, digest)

    def get_ref(self, name: str) -> str:
        """Return the hash ``name`` points at; RefNotFound if absent."""
        path = self._path(name)
        if path.is_dir():
            raise RefNotFound(name)
        raw = read_bytes(path)
        if raw is None:
            raise RefNotFound(name)
        try:
            digest = raw.decode("ascii").strip()
        except UnicodeDecodeError as e:
            raise BackendFailure(f"Corrupt reference {name}: {e}") from e
        if not _DIGEST.match(digest):
            raise BackendFailure(f"Corrupt reference {name}: {digest[:80]!r} is not an object id")
        return digest

    def has_ref(self, name: str) -> bool:
        return self._path(name).is_file()

    def list_refs(self, prefix: str = "") -> Dict[str, str]:
        """Return every reference under ``prefix`` (a name namespace) as {name: hash}."""
        prefix = prefix.strip("/")
        base = self._path(prefix) if prefix else self.root
        if not base.is_dir():
            return {}
        out: Dict[str, str] = {}
        try:
            for p in sorted(base.rglob("*")):
                if not p.is_file() or p.name.startswith(".tmp-"):
                    continue
                name = p.relative_to(self.root).as_posix()
                out[name] = self.get_ref(name)
        except OSError as e:
            raise BackendFailure(f"Failed to list references under {base}: {e}") from e
        return out
