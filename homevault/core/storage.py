from __future__ import annotations

from pathlib import Path

from .config import Settings


class LocalMediaStorage:
    """Read-side access to the media tree for downloads and deletes."""

    def __init__(self, base_path: Path):
        self.base_path = Path(base_path)

    def resolve(self, relative: str) -> Path:
        root = self.base_path.resolve()
        path = (root / relative).resolve()
        if path != root and root not in path.parents:
            raise ValueError(f"Path escapes media root: {relative}")
        return path

    def exists(self, relative: str | None) -> bool:
        if not relative:
            return False
        try:
            return self.resolve(relative).is_file()
        except ValueError:
            return False

    def absolute_paths(self, relatives: list[str]) -> list[Path]:
        paths: list[Path] = []
        for relative in relatives:
            try:
                paths.append(self.resolve(relative))
            except ValueError:
                continue
        return paths


def get_storage(settings: Settings) -> LocalMediaStorage:
    return LocalMediaStorage(base_path=Path(settings.media_path))


__all__ = ["LocalMediaStorage", "get_storage"]
