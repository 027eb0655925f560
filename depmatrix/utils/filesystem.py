"""
Filesystem utilities for depmatrix.

Helpers used by the persisted metadata cache and the token file: atomic
writes, tolerant reads, and directory cleanup. Filesystem errors are
normalized to :class:`FileOperationError`.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from depmatrix.utils.logger import get_logger
from depmatrix.exceptions import FileOperationError

logger = get_logger("filesystem")

PathLike = Union[str, Path]


def expand_path(path: PathLike) -> Path:
    """Expand ``~`` and environment variables without requiring existence."""
    return Path(os.path.expandvars(str(path))).expanduser()


def atomic_write_bytes(
    target: PathLike,
    content: bytes,
    *,
    mode: Optional[int] = None,
) -> None:
    """Write bytes through a temporary file and an atomic replace.

    Args:
        target: Destination path; parent directories are created.
        content: Bytes to write.
        mode: Optional permission bits applied before the replace.

    Raises:
        FileOperationError: The write or replace failed.
    """
    path = Path(target)
    temp_path: Optional[Path] = None

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=str(path.parent),
            delete=False,
            prefix=f".{path.name}.",
            suffix=".tmp",
        ) as tmp:
            temp_path = Path(tmp.name)
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())

        if mode is not None:
            os.chmod(temp_path, mode)
        temp_path.replace(path)

    except OSError as exc:
        if temp_path is not None and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError as cleanup_exc:
                logger.warning(
                    "Failed to clean up temporary file %s: %s",
                    temp_path,
                    cleanup_exc,
                )

        raise FileOperationError(
            f"Atomic write failed: {exc}",
            file_path=str(path),
            operation="write",
            original_error=exc,
        ) from exc


def read_bytes_if_exists(path: PathLike) -> Optional[bytes]:
    """Return file contents, or ``None`` when the file is absent or unreadable.

    Unreadable files are logged at DEBUG level and reported as absent.
    """
    file_path = Path(path)
    try:
        return file_path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.debug("Unreadable file %s treated as missing: %s", file_path, exc)
        return None


def remove_file(path: PathLike) -> bool:
    """Delete a file if present. Returns True when something was removed."""
    file_path = Path(path)
    try:
        file_path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise FileOperationError(
            f"Failed to delete file: {exc}",
            file_path=str(file_path),
            operation="delete",
            original_error=exc,
        ) from exc


def clear_directory(directory: PathLike, pattern: str = "*") -> int:
    """Delete files matching ``pattern`` directly inside ``directory``.

    Returns:
        Number of files deleted. A missing directory counts as empty.
    """
    root = Path(directory)
    if not root.is_dir():
        return 0

    deleted = 0
    for entry in root.glob(pattern):
        if entry.is_file() and remove_file(entry):
            deleted += 1

    logger.debug("Removed %d file(s) from %s", deleted, root)
    return deleted
