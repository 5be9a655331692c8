from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Tuple

import cv2  # type: ignore
from PIL import Image, ImageOps

from homevault.core.logging import get_logger

from .converters import ExternalConverter
from .errors import ConversionError, ThumbnailError
from .locator import StorageLocator
from .models import AssetKind, DerivedAsset, StoragePath
from .persist import DIRECTORY_MODE

THUMB_SIZE = 300
THUMB_QUALITY = 80

__all__ = ["THUMB_SIZE", "THUMB_QUALITY", "ThumbnailGenerator", "fit_image"]


def fit_image(image: Image.Image, size: int) -> Image.Image:
    """Honour EXIF orientation and shrink into a ``size`` square, keeping aspect ratio."""
    fitted = ImageOps.exif_transpose(image)
    if fitted.mode != "RGB":
        fitted = fitted.convert("RGB")
    fitted.thumbnail((size, size), Image.Resampling.LANCZOS)
    return fitted


class ThumbnailGenerator:
    """Bounded JPEG thumbnails under ``.thumbs/``, for photos and videos alike."""

    def __init__(
        self,
        locator: StorageLocator,
        frame_extractor: ExternalConverter,
        *,
        size: int = THUMB_SIZE,
        quality: int = THUMB_QUALITY,
    ):
        self.locator = locator
        self.frame_extractor = frame_extractor
        self.size = size
        self.quality = quality
        self.logger = get_logger(component="thumbnail_generator")

    def from_image(self, source: Path, original_relative: str) -> DerivedAsset:
        target = self.locator.thumbnail_path(original_relative)
        return self._render(source, target)

    def from_video(self, source: Path, original_relative: str) -> DerivedAsset:
        target = self.locator.thumbnail_path(original_relative)
        self._prepare(target)
        with tempfile.TemporaryDirectory(prefix="frame-", dir=target.absolute.parent) as scratch:
            frame_path = Path(scratch) / "frame.jpg"
            try:
                self.frame_extractor.convert(source, frame_path)
            except ConversionError as exc:
                raise ThumbnailError(f"thumbnail unavailable: {exc}") from exc
            return self._render(frame_path, target)

    def _prepare(self, target: StoragePath) -> None:
        if target.absolute.exists():
            raise ThumbnailError(f"thumbnail target already exists: {target.relative}")
        try:
            target.absolute.parent.mkdir(mode=DIRECTORY_MODE, parents=True, exist_ok=True)
        except OSError as exc:
            raise ThumbnailError(f"failed to create thumbnail directory: {exc}") from exc

    def _render(self, source: Path, target: StoragePath) -> DerivedAsset:
        self._prepare(target)
        try:
            with Image.open(source) as image:
                thumb = fit_image(image, self.size)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise ThumbnailError(f"failed to open image: {exc}") from exc

        try:
            with target.absolute.open("xb") as handle:
                thumb.save(handle, format="JPEG", quality=self.quality)
        except FileExistsError as exc:
            raise ThumbnailError(f"thumbnail target already exists: {target.relative}") from exc
        except (OSError, ValueError) as exc:
            target.absolute.unlink(missing_ok=True)
            raise ThumbnailError(f"failed to save thumbnail: {exc}") from exc
        except BaseException:
            target.absolute.unlink(missing_ok=True)
            raise

        try:
            width, height = _image_dimensions(target.absolute)
        except RuntimeError as exc:
            target.absolute.unlink(missing_ok=True)
            raise ThumbnailError(str(exc)) from exc
        except BaseException:
            target.absolute.unlink(missing_ok=True)
            raise

        self.logger.info("thumbnail_created", path=target.relative, width_px=width, height_px=height)
        return DerivedAsset(
            kind=AssetKind.thumbnail,
            relative=target.relative,
            absolute=target.absolute,
            width=width,
            height=height,
        )


def _image_dimensions(image_path: Path) -> Tuple[int, int]:
    image = cv2.imread(str(image_path))
    if image is None:
        raise RuntimeError(f"Failed to read generated thumbnail at {image_path}")
    height, width = image.shape[:2]
    return width, height
