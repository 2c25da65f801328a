"""Content-addressed blob storage.

Layout (git-style loose objects):
    objects/
      <hh>/<rest-of-digest>    # zlib("blob <len>\\0" + data)

The digest is taken over the header plus the raw bytes, so identical bytes
always map to the same object and re-putting them is a no-op.
"""
from __future__ import annotations

import hashlib
import logging
import re
import zlib
from pathlib import Path
from typing import Union

from .errors import BackendFailure, ObjectNotFound
from .io import PathLike, atomic_write_bytes, ensure_dir, read_bytes

logger = logging.getLogger(__name__)

HASH_ALGORITHMS = {"sha256": 64, "sha1": 40}


def _header(size: int) -> bytes:
    return b"blob " + str(size).encode("ascii") + b"\0"


class ObjectStore:
    """Loose-object blob store keyed by content hash."""

    def __init__(self, root: PathLike, hash_algorithm: str = "sha256") -> None:
        if hash_algorithm not in HASH_ALGORITHMS:
            raise ValueError(
                f"Unsupported hash algorithm {hash_algorithm!r}; "
                f"expected one of {sorted(HASH_ALGORITHMS)}"
            )
        self.root = ensure_dir(root)
        self.hash_algorithm = hash_algorithm
        self._hex_len = HASH_ALGORITHMS[hash_algorithm]
        self._hash_re = re.compile(r"^[0-9a-f]{%d}$" % self._hex_len)

    # --------- helpers ----------
    def hash_bytes(self, data: Union[bytes, bytearray]) -> str:
        """Digest ``data`` as a blob without storing it."""
        h = hashlib.new(self.hash_algorithm)
        h.update(_header(len(data)))
        h.update(data)
        return h.hexdigest()

    def check_hash(self, digest: str) -> str:
        if not isinstance(digest, str) or not self._hash_re.match(digest):
            raise ValueError(f"Malformed {self.hash_algorithm} object id: {digest!r}")
        return digest

    def _path(self, digest: str) -> Path:
        return self.root / digest[:2] / digest[2:]

    # --------- core API ----------
    def exists(self, digest: str) -> bool:
        return self._path(self.check_hash(digest)).is_file()

    def put(self, data: Union[bytes, bytearray]) -> str:
        """Store ``data``; returns its hash. Idempotent."""
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("ObjectStore.put expects bytes")
        data = bytes(data)
        digest = self.hash_bytes(data)
        path = self._path(digest)
        if path.is_file():
            return digest

        # A concurrent writer of the same bytes produces the same file, so a
        # lost race on the rename is harmless.
        atomic_write_bytes(path, zlib.compress(_header(len(data)) + data))
        logger.debug("wrote object %s (%d bytes)", digest, len(data))
        return digest

    def get(self, digest: str) -> bytes:
        """Return the bytes stored under ``digest``; ObjectNotFound if absent."""
        self.check_hash(digest)
        raw = read_bytes(self._path(digest))
        if raw is None:
            raise ObjectNotFound(digest)

        try:
            payload = zlib.decompress(raw)
        except zlib.error as e:
            raise BackendFailure(f"Corrupt object {digest}: {e}") from e

        head, sep, data = payload.partition(b"\0")
        if not sep or not head.startswith(b"blob "):
            raise BackendFailure(f"Corrupt object {digest}: bad header")
        try:
            size = int(head[5:])
        except ValueError as e:
            raise BackendFailure(f"Corrupt object {digest}: bad length") from e
        if size != len(data):
            raise BackendFailure(f"Corrupt object {digest}: length {len(data)} != {size}")
        if self.hash_bytes(data) != digest:
            raise BackendFailure(f"Corrupt object {digest}: digest mismatch")
        return data
