"""Filesystem helpers shared by the object, reference and annotation stores."""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Union

from .errors import BackendFailure

PathLike = Union[str, Path]


def ensure_dir(p: PathLike) -> Path:
    """Ensure that a directory exists, returning it as a Path."""
    p = Path(p)
    try:
        p.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise BackendFailure(f"Failed to create directory {p}: {e}") from e
    return p


def _write_temp(directory: Path, data: bytes) -> str:
    with tempfile.NamedTemporaryFile("wb", delete=False, dir=str(directory), prefix=".tmp-") as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        return tmp.name


def atomic_write_bytes(path: PathLike, data: bytes) -> None:
    """Write ``data`` to ``path`` via temp file + rename; readers never see a partial file."""
    p = Path(path)
    ensure_dir(p.parent)
    tmp_name = None
    try:
        tmp_name = _write_temp(p.parent, data)
        os.replace(tmp_name, p)
    except OSError as e:
        _discard(tmp_name)
        raise BackendFailure(f"Atomic write failed for {p}: {e}") from e


def exclusive_write_bytes(path: PathLike, data: bytes) -> bool:
    """Create ``path`` with ``data`` only if it does not exist yet.

    The final step is a hard link, which fails atomically when the target
    exists. Returns False in that case.
    """
    p = Path(path)
    ensure_dir(p.parent)
    tmp_name = None
    try:
        tmp_name = _write_temp(p.parent, data)
        os.link(tmp_name, p)
        return True
    except FileExistsError:
        return False
    except OSError as e:
        raise BackendFailure(f"Exclusive write failed for {p}: {e}") from e
    finally:
        _discard(tmp_name)


def read_bytes(path: PathLike) -> bytes | None:
    """Return file contents, or None if the file does not exist."""
    p = Path(path)
    try:
        return p.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise BackendFailure(f"Failed to read {p}: {e}") from e


def _discard(name: str | None) -> None:
    if name is None:
        return
    try:
        os.unlink(name)
    except FileNotFoundError:
        pass
