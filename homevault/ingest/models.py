from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Generic, List, Literal, Optional, TypeVar, Union

__all__ = [
    "MediaKind",
    "AssetKind",
    "UploadSource",
    "StoragePath",
    "PersistedFile",
    "DerivedAsset",
    "ExtractedMetadata",
    "StepOk",
    "StepSkipped",
    "StepResult",
    "IngestionResult",
]

MediaKind = Literal["photo", "video"]

T = TypeVar("T")


class AssetKind(str, enum.Enum):
    preview = "preview"
    thumbnail = "thumbnail"
    web = "web"


@dataclass(frozen=True, slots=True)
class UploadSource:
    """One inbound upload as handed over by the upload handler."""

    stream: BinaryIO
    filename: str
    mime_type: str
    kind: MediaKind


@dataclass(frozen=True, slots=True)
class StoragePath:
    relative: str
    absolute: Path


@dataclass(frozen=True, slots=True)
class PersistedFile:
    size_bytes: int
    sha256: str


@dataclass(frozen=True, slots=True)
class DerivedAsset:
    kind: AssetKind
    relative: str
    absolute: Path
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass(slots=True)
class ExtractedMetadata:
    """EXIF-derived facts about a still image. Every field is independently optional."""

    width: Optional[int] = None
    height: Optional[int] = None
    taken_at: Optional[datetime] = None
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    orientation: Optional[int] = None
    iso: Optional[int] = None
    f_number: Optional[float] = None
    exposure_time: Optional[str] = None
    focal_length: Optional[float] = None

    def is_empty(self) -> bool:
        return all(getattr(self, item.name) is None for item in fields(self))


@dataclass(frozen=True, slots=True)
class StepOk(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class StepSkipped:
    reason: str
    detail: Optional[str] = None


StepResult = Union[StepOk[T], StepSkipped]


@dataclass(slots=True)
class IngestionResult:
    """Everything one successful pipeline run produced.

    The caller turns it into a catalog row and discards it. Once returned, the
    caller owns every file listed by :meth:`absolute_paths` and must remove
    them if the catalog write does not happen.
    """

    storage_path: StoragePath
    size_bytes: int
    sha256: str
    assets: List[DerivedAsset] = field(default_factory=list)
    metadata: Optional[ExtractedMetadata] = None
    warnings: List[str] = field(default_factory=list)

    def asset(self, kind: AssetKind) -> Optional[DerivedAsset]:
        for candidate in self.assets:
            if candidate.kind == kind:
                return candidate
        return None

    @property
    def preview(self) -> Optional[DerivedAsset]:
        return self.asset(AssetKind.preview)

    @property
    def thumbnail(self) -> Optional[DerivedAsset]:
        return self.asset(AssetKind.thumbnail)

    @property
    def web(self) -> Optional[DerivedAsset]:
        return self.asset(AssetKind.web)

    def absolute_paths(self) -> List[Path]:
        return [self.storage_path.absolute, *(asset.absolute for asset in self.assets)]
