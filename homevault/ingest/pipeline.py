from __future__ import annotations

import enum
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from homevault.core.config import Settings
from homevault.core.logging import get_logger

from .converters import FfmpegFrameExtractor, HeifConvertConverter, probe_binary
from .errors import EnrichmentError
from .locator import StorageLocator
from .metadata import extract_metadata
from .models import (
    DerivedAsset,
    ExtractedMetadata,
    IngestionResult,
    StepOk,
    StepResult,
    StepSkipped,
    StoragePath,
    UploadSource,
)
from .persist import persist_stream
from .preview import HeicPreviewConverter, is_heic
from .thumbnails import ThumbnailGenerator
from .web import WebOptimizer

__all__ = [
    "IngestionState",
    "Branch",
    "IngestionOrchestrator",
    "select_branch",
    "cleanup_files",
    "build_orchestrator",
    "toolchain_status",
]

MetadataExtractor = Callable[[Path], ExtractedMetadata]

logger = get_logger(component="ingestion")


class IngestionState(str, enum.Enum):
    received = "received"
    stored = "stored"
    branched = "branched"
    enriched = "enriched"
    assembled = "assembled"
    failed = "failed"


class Branch(str, enum.Enum):
    heic = "heic"
    image = "image"
    video = "video"
    passthrough = "passthrough"


def select_branch(mime_type: str | None) -> Branch:
    mime = (mime_type or "").lower()
    if is_heic(mime):
        return Branch.heic
    if mime.startswith("image/"):
        return Branch.image
    if mime.startswith("video/"):
        return Branch.video
    return Branch.passthrough


def cleanup_files(*paths: Union[str, Path, None]) -> None:
    """Best-effort removal of every given path. Empty entries and missing files are ignored."""
    for path in paths:
        if not path:
            continue
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("cleanup_failed", path=str(path), error=str(exc))


class IngestionOrchestrator:
    """Runs one upload through store, branch, enrich and assemble.

    Only the store step can fail the attempt. Every enrichment step is
    best-effort and its failure merely leaves the matching asset or metadata
    out of the result, recorded as a warning.
    """

    def __init__(
        self,
        locator: StorageLocator,
        *,
        preview_converter: HeicPreviewConverter,
        thumbnails: ThumbnailGenerator,
        web_optimizer: WebOptimizer,
        metadata_extractor: MetadataExtractor = extract_metadata,
        chunk_size: int = 1024 * 1024,
        max_bytes: Optional[int] = None,
    ):
        self.locator = locator
        self.preview_converter = preview_converter
        self.thumbnails = thumbnails
        self.web_optimizer = web_optimizer
        self.metadata_extractor = metadata_extractor
        self.chunk_size = chunk_size
        self.max_bytes = max_bytes

    def locate(self, upload: UploadSource, now: datetime) -> StoragePath:
        return self.locator.locate(upload.kind, now, upload.filename)

    def ingest(self, upload: UploadSource, *, now: Optional[datetime] = None) -> IngestionResult:
        now = now or datetime.now(timezone.utc)
        location = self.locate(upload, now)
        log = logger.bind(path=location.relative, mime_type=upload.mime_type, kind=upload.kind)
        log.debug("ingest_state", state=IngestionState.received.value)

        try:
            persisted = persist_stream(
                upload.stream,
                location.absolute,
                chunk_size=self.chunk_size,
                max_bytes=self.max_bytes,
            )
        except Exception as exc:
            log.warning("ingest_state", state=IngestionState.failed.value, error=str(exc))
            raise
        log.debug("ingest_state", state=IngestionState.stored.value, size_bytes=persisted.size_bytes)

        result = IngestionResult(storage_path=location, size_bytes=persisted.size_bytes, sha256=persisted.sha256)
        try:
            branch = select_branch(upload.mime_type)
            log.debug("ingest_state", state=IngestionState.branched.value, branch=branch.value)
            self._enrich(branch, result)
        except BaseException:
            # Interrupted mid-enrichment: nothing of this attempt may survive.
            cleanup_files(*result.absolute_paths())
            log.exception("ingest_state", state=IngestionState.failed.value)
            raise

        log.debug("ingest_state", state=IngestionState.enriched.value, warnings=result.warnings)
        log.info(
            "ingest_state",
            state=IngestionState.assembled.value,
            sha256=result.sha256,
            assets=[asset.relative for asset in result.assets],
        )
        return result

    def _enrich(self, branch: Branch, result: IngestionResult) -> None:
        original = result.storage_path
        if branch is Branch.heic:
            preview = self._step("preview_conversion_failed", lambda: self.preview_converter.convert(original))
            if not self._collect(result, preview):
                return
            source = preview.value.absolute
            self._collect(result, self._step("metadata_extraction_failed", lambda: self.metadata_extractor(source)))
            self._collect(
                result,
                self._step("thumbnail_generation_failed", lambda: self.thumbnails.from_image(source, original.relative)),
            )
        elif branch is Branch.image:
            source = original.absolute
            self._collect(result, self._step("metadata_extraction_failed", lambda: self.metadata_extractor(source)))
            self._collect(
                result,
                self._step("thumbnail_generation_failed", lambda: self.thumbnails.from_image(source, original.relative)),
            )
            self._collect(
                result,
                self._step("web_optimization_failed", lambda: self.web_optimizer.optimize(source, original.relative)),
            )
        elif branch is Branch.video:
            self._collect(
                result,
                self._step(
                    "thumbnail_generation_failed",
                    lambda: self.thumbnails.from_video(original.absolute, original.relative),
                ),
            )

    def _step(self, reason: str, action: Callable[[], object]) -> StepResult:
        try:
            return StepOk(action())
        except EnrichmentError as exc:
            logger.warning("enrichment_skipped", reason=reason, error=str(exc))
            return StepSkipped(reason=reason, detail=str(exc))
        except Exception as exc:
            logger.exception("enrichment_crashed", reason=reason)
            return StepSkipped(reason=reason, detail=f"{type(exc).__name__}: {exc}")

    @staticmethod
    def _collect(result: IngestionResult, step: StepResult) -> bool:
        if isinstance(step, StepSkipped):
            result.warnings.append(step.reason)
            return False
        value = step.value
        if isinstance(value, DerivedAsset):
            result.assets.append(value)
        elif isinstance(value, ExtractedMetadata):
            result.metadata = value
        return True


def build_orchestrator(settings: Settings) -> IngestionOrchestrator:
    locator = StorageLocator(settings.media_path)
    timeout = settings.subprocess_timeout_s
    return IngestionOrchestrator(
        locator,
        preview_converter=HeicPreviewConverter(
            locator,
            HeifConvertConverter(settings.heif_convert_binary, quality=settings.preview_quality, timeout_s=timeout),
        ),
        thumbnails=ThumbnailGenerator(
            locator,
            FfmpegFrameExtractor(settings.ffmpeg_binary, offset_s=settings.video_frame_offset_s, timeout_s=timeout),
            size=settings.thumbnail_size_px,
            quality=settings.thumbnail_quality,
        ),
        web_optimizer=WebOptimizer(
            locator,
            quality=settings.web_quality,
            max_dimension=settings.web_max_dimension_px,
        ),
        chunk_size=settings.upload_chunk_size_bytes,
        max_bytes=settings.max_upload_size_bytes,
    )


def toolchain_status(settings: Settings) -> dict[str, bool]:
    # heif-convert has no version flag; it prints usage and exits non-zero.
    return {
        "ffmpeg": probe_binary([settings.ffmpeg_binary, "-version"]),
        "heif_convert": probe_binary([settings.heif_convert_binary, "--help"]),
    }
