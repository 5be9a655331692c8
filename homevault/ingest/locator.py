from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path, PurePosixPath

from .models import MediaKind, StoragePath

__all__ = ["UNNAMED_FILENAME", "THUMBS_DIRNAME", "sanitize_filename", "StorageLocator"]

UNNAMED_FILENAME = "unnamed"
THUMBS_DIRNAME = ".thumbs"

_SEPARATORS = re.compile(r"[/\\\x00]")
_FORBIDDEN = re.compile(r'[<>:"|?*]')


def sanitize_filename(name: str) -> str:
    """Make an untrusted client filename safe to use as a single path component.

    Separators and NUL become ``_``, the characters ``<>:"|?*`` are dropped,
    and surrounding spaces and dots are trimmed. Length is not limited.
    """
    name = _SEPARATORS.sub("_", name)
    name = _FORBIDDEN.sub("", name)
    name = name.strip(" .")
    return name or UNNAMED_FILENAME


class StorageLocator:
    """Maps an upload to its canonical place under the media base directory."""

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    def locate(self, kind: MediaKind, now: datetime, filename: str) -> StoragePath:
        relative = PurePosixPath(f"{kind}s", f"{now.year:d}", f"{now.month:02d}", sanitize_filename(filename))
        return self.resolve(relative.as_posix())

    def resolve(self, relative: str) -> StoragePath:
        return StoragePath(relative=relative, absolute=self.base_path / relative)

    def thumbnail_path(self, original_relative: str) -> StoragePath:
        relative = PurePosixPath(THUMBS_DIRNAME) / PurePosixPath(original_relative).with_suffix(".jpg")
        return self.resolve(relative.as_posix())

    def sibling_path(self, original_relative: str, suffix: str) -> StoragePath:
        """Same directory and stem as the original, different extension."""
        return self.resolve(PurePosixPath(original_relative).with_suffix(suffix).as_posix())
