"""Annotations: metadata attached to an object hash, stored beside the blob."""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ObjectNotFound, SerializationError
from .io import PathLike, atomic_write_bytes, ensure_dir, read_bytes
from .message import canonical_json
from .objects import HASH_ALGORITHMS, ObjectStore

logger = logging.getLogger(__name__)

_ANY_DIGEST = re.compile(r"^[0-9a-f]+$")


class AnnotationStore:
    """
    Side table of ``hash -> metadata``.

    Layout:
        notes/<hh>/<rest-of-digest>.json

    Annotating never touches the blob itself, so ``objects.get(h)`` returns the
    same bytes before and after. A hash with no blob behind it is accepted with
    a warning unless ``strict`` is set.
    """

    def __init__(self, root: PathLike, objects: ObjectStore, *, strict: bool = False) -> None:
        self.root = ensure_dir(root)
        self.objects = objects
        self.strict = strict

    def _path(self, digest: str) -> Path:
        self.objects.check_hash(digest)
        return self.root / digest[:2] / f"{digest[2:]}.json"

    def annotate(self, digest: str, metadata: Dict[str, Any]) -> None:
        """Attach (or overwrite) ``metadata`` for ``digest``."""
        if not isinstance(metadata, dict):
            raise TypeError("metadata must be a dict")
        path = self._path(digest)
        if not self.objects.exists(digest):
            if self.strict:
                raise ObjectNotFound(digest)
            logger.warning("annotating %s, which has no stored object", digest)

        try:
            payload = canonical_json(metadata)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Metadata for {digest} is not JSON-serializable: {e}") from e
        atomic_write_bytes(path, payload)

    def get_annotation(self, digest: str) -> Optional[Dict[str, Any]]:
        """Return the metadata for ``digest``, or None when there is none.

        A well-formed id of another hash algorithm cannot name anything in this
        store, so it is simply unannotated. Anything that is not an object id
        at all raises ValueError.
        """
        if (
            isinstance(digest, str)
            and _ANY_DIGEST.match(digest)
            and len(digest) in HASH_ALGORITHMS.values()
            and len(digest) != HASH_ALGORITHMS[self.objects.hash_algorithm]
        ):
            return None
        raw = read_bytes(self._path(digest))
        if raw is None:
            return None
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SerializationError(f"Corrupt annotation for {digest}: {e}") from e
        if not isinstance(data, dict):
            raise SerializationError(f"Corrupt annotation for {digest}: expected an object")
        return data
