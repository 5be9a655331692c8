from __future__ import annotations

from homevault.core.logging import get_logger

from .converters import ExternalConverter
from .errors import ConversionError
from .locator import StorageLocator
from .models import AssetKind, DerivedAsset, StoragePath

__all__ = ["HEIC_MIME_TYPES", "is_heic", "HeicPreviewConverter"]

HEIC_MIME_TYPES = frozenset({"image/heic", "image/heif"})


def is_heic(mime_type: str | None) -> bool:
    return (mime_type or "").lower() in HEIC_MIME_TYPES


class HeicPreviewConverter:
    """Produces the displayable JPEG sibling of a HEIC/HEIF original."""

    def __init__(self, locator: StorageLocator, converter: ExternalConverter):
        self.locator = locator
        self.converter = converter
        self.logger = get_logger(component="format_converter")

    def convert(self, original: StoragePath) -> DerivedAsset:
        target = self.locator.sibling_path(original.relative, ".jpg")
        if target.absolute.exists():
            raise ConversionError(f"preview target already exists: {target.relative}")

        try:
            self.converter.convert(original.absolute, target.absolute)
        except BaseException:
            target.absolute.unlink(missing_ok=True)
            raise
        if not target.absolute.exists():
            raise ConversionError("converter did not create output file")

        self.logger.info("preview_created", original=original.relative, preview=target.relative)
        return DerivedAsset(kind=AssetKind.preview, relative=target.relative, absolute=target.absolute)
