from __future__ import annotations

from pathlib import Path

from PIL import Image, ImageOps

from homevault.core.logging import get_logger

from .errors import WebOptimizationError
from .locator import StorageLocator
from .models import AssetKind, DerivedAsset

__all__ = ["WEB_SUFFIX", "WebOptimizer"]

WEB_SUFFIX = ".webp"


class WebOptimizer:
    """Writes a compressed WebP delivery copy next to the original."""

    def __init__(self, locator: StorageLocator, *, quality: int = 80, max_dimension: int = 2048):
        self.locator = locator
        self.quality = quality
        self.max_dimension = max_dimension
        self.logger = get_logger(component="web_optimizer")

    def optimize(self, source: Path, original_relative: str) -> DerivedAsset:
        target = self.locator.sibling_path(original_relative, WEB_SUFFIX)
        if target.absolute.exists():
            raise WebOptimizationError(f"web copy target already exists: {target.relative}")

        try:
            with Image.open(source) as image:
                rendition = ImageOps.exif_transpose(image)
                if rendition.mode not in {"RGB", "RGBA"}:
                    rendition = rendition.convert("RGBA" if "A" in rendition.getbands() else "RGB")
                rendition.thumbnail((self.max_dimension, self.max_dimension), Image.Resampling.LANCZOS)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise WebOptimizationError(f"failed to open image: {exc}") from exc

        try:
            with target.absolute.open("xb") as handle:
                rendition.save(handle, format="WEBP", quality=self.quality, method=4)
        except FileExistsError as exc:
            raise WebOptimizationError(f"web copy target already exists: {target.relative}") from exc
        except (OSError, ValueError, KeyError) as exc:
            target.absolute.unlink(missing_ok=True)
            raise WebOptimizationError(f"failed to save web copy: {exc}") from exc
        except BaseException:
            target.absolute.unlink(missing_ok=True)
            raise

        self.logger.info("web_copy_created", path=target.relative, width_px=rendition.width, height_px=rendition.height)
        return DerivedAsset(
            kind=AssetKind.web,
            relative=target.relative,
            absolute=target.absolute,
            width=rendition.width,
            height=rendition.height,
        )
