from __future__ import annotations

from hashlib import sha256
from pathlib import Path
from typing import BinaryIO, Optional

from homevault.core.logging import get_logger

from .errors import PathConflictError, StoreError, UploadTooLargeError
from .models import PersistedFile

__all__ = ["DIRECTORY_MODE", "compute_sha256", "persist_stream"]

DIRECTORY_MODE = 0o755

logger = get_logger(component="file_persister")


def compute_sha256(path: Path, *, chunk_size: int = 8 * 1024 * 1024) -> str:
    """Return a hexadecimal SHA256 digest for the file.

    Args:
        path: The path to the file.
        chunk_size: The chunk size to use when reading the file.

    Returns:
        The hexadecimal SHA256 digest.
    """
    digest = sha256()
    with path.open("rb") as handle:
        while chunk := handle.read(chunk_size):
            digest.update(chunk)
    return digest.hexdigest()


def persist_stream(
    stream: BinaryIO,
    destination: Path,
    *,
    chunk_size: int = 1024 * 1024,
    max_bytes: Optional[int] = None,
) -> PersistedFile:
    """Copy ``stream`` to ``destination`` while hashing the same bytes.

    Args:
        stream: Readable binary source, consumed to EOF.
        destination: Absolute target path. Must not exist yet.
        chunk_size: Copy buffer size.
        max_bytes: Abort once more than this many bytes arrive.

    Returns:
        Byte count and SHA256 digest of what was written.

    Raises:
        PathConflictError: A file already occupies ``destination``.
        UploadTooLargeError: The stream exceeded ``max_bytes``.
        StoreError: Directory creation or the copy itself failed.
    """
    try:
        destination.parent.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
    except OSError as exc:
        raise StoreError(f"failed to create directory {destination.parent}: {exc}") from exc

    try:
        handle = destination.open("xb")
    except FileExistsError as exc:
        raise PathConflictError(f"a file already exists at {destination.name}") from exc
    except OSError as exc:
        raise StoreError(f"failed to create file: {exc}") from exc

    digest = sha256()
    size = 0
    try:
        with handle:
            while chunk := stream.read(chunk_size):
                size += len(chunk)
                if max_bytes is not None and size > max_bytes:
                    raise UploadTooLargeError(f"upload exceeds the {max_bytes} byte limit")
                digest.update(chunk)
                handle.write(chunk)
    except BaseException as exc:
        # No partial file survives, whatever interrupted the copy.
        destination.unlink(missing_ok=True)
        if isinstance(exc, StoreError) or not isinstance(exc, Exception):
            raise
        logger.warning("persist_failed", path=str(destination), error=str(exc))
        raise StoreError(f"failed to save file: {exc}") from exc

    return PersistedFile(size_bytes=size, sha256=digest.hexdigest())
