from __future__ import annotations

import asyncio
import mimetypes
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from homevault.core.config import Settings
from homevault.core.logging import get_logger
from homevault.core.storage import LocalMediaStorage
from homevault.db.media_store import MediaPage, MediaRecordStore
from homevault.db.models import Household, MediaItem, MediaType
from homevault.ingest import (
    CatalogError,
    DuplicateMediaError,
    IngestionOrchestrator,
    IngestionResult,
    InvalidUploadError,
    UploadSource,
    cleanup_files,
)
from homevault.ingest.errors import EnrichmentError
from homevault.ingest.preview import is_heic

GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

mimetypes.add_type("image/heic", ".heic")
mimetypes.add_type("image/heif", ".heif")


def infer_mime_type(filename: str, declared: str | None) -> str:
    """Trust the declared type unless it is missing or generic, then guess from the extension."""
    declared = (declared or "").split(";", 1)[0].strip().lower()
    if declared not in GENERIC_MIME_TYPES:
        return declared
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def infer_media_kind(mime_type: str, requested: str | None) -> MediaType:
    if requested:
        try:
            return MediaType(requested.lower())
        except ValueError as exc:
            raise InvalidUploadError(f"invalid media type: {requested}") from exc
    if mime_type.startswith("image/"):
        return MediaType.photo
    if mime_type.startswith("video/"):
        return MediaType.video
    raise InvalidUploadError(f"cannot determine media type from {mime_type}")


def _discard_ingest_result(future: asyncio.Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    cleanup_files(*future.result().absolute_paths())


@dataclass(slots=True)
class BackfillReport:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0


class MediaService:
    def __init__(
        self,
        settings: Settings,
        orchestrator: IngestionOrchestrator,
        storage: LocalMediaStorage,
        session: AsyncSession,
    ):
        self.settings = settings
        self.orchestrator = orchestrator
        self.storage = storage
        self.session = session
        self.records = MediaRecordStore(session)
        self.logger = get_logger(component="media_service")

    async def ensure_household(self, household_id: str) -> Household:
        household = await self.session.get(Household, household_id)
        if household:
            return household
        household = Household(household_id=household_id)
        self.session.add(household)
        await self.session.flush()
        return household

    async def upload(
        self,
        *,
        household_id: str,
        stream: BinaryIO,
        filename: str | None,
        mime_type: str | None,
        media_type: str | None = None,
        uploader_id: str | None = None,
    ) -> tuple[MediaItem, list[str]]:
        """Store and enrich one upload, then catalog it.

        Returns the new row and the enrichment warnings. Raises a subclass of
        ``IngestError`` when the upload is rejected; no file of the attempt
        survives in that case.
        """
        filename = filename or ""
        mime = infer_mime_type(filename, mime_type)
        kind = infer_media_kind(mime, media_type)
        source = UploadSource(stream=stream, filename=filename, mime_type=mime, kind=kind.value)

        await self.ensure_household(household_id)

        now = datetime.now(timezone.utc)
        location = self.orchestrator.locate(source, now)
        existing = await self.records.get_by_path(household_id, location.relative)
        if existing:
            raise DuplicateMediaError(f"media already exists at {location.relative}", existing_id=existing.id)

        ingest = asyncio.ensure_future(asyncio.to_thread(self.orchestrator.ingest, source, now=now))
        try:
            result = await asyncio.shield(ingest)
        except asyncio.CancelledError:
            # The worker thread cannot be stopped; drop its files once it finishes.
            ingest.add_done_callback(_discard_ingest_result)
            self.logger.info("upload_cancelled", household_id=household_id, path=location.relative)
            raise

        item = self._build_item(household_id, uploader_id, filename, kind, mime, result)

        try:
            item = await self.records.create(item)
        except IntegrityError as exc:
            await self.session.rollback()
            cleanup_files(*result.absolute_paths())
            self.logger.info("upload_duplicate", household_id=household_id, path=location.relative)
            raise DuplicateMediaError(f"media already exists at {location.relative}") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            cleanup_files(*result.absolute_paths())
            self.logger.error("catalog_write_failed", household_id=household_id, path=location.relative, error=str(exc))
            raise CatalogError("failed to save media record") from exc
        except BaseException:
            cleanup_files(*result.absolute_paths())
            raise

        self.logger.info(
            "media_uploaded",
            household_id=household_id,
            media_id=item.id,
            path=item.path,
            warnings=result.warnings,
        )
        return item, result.warnings

    async def list_media(
        self,
        household_id: str,
        *,
        page: int | None,
        page_size: int | None,
        media_type: MediaType | None = None,
    ) -> MediaPage:
        return await self.records.list(household_id, page=page, page_size=page_size, media_type=media_type)

    async def get_media(self, household_id: str, media_id: str) -> MediaItem | None:
        return await self.records.get_by_id(household_id, media_id)

    def download_path(self, item: MediaItem) -> tuple[Path, str | None] | None:
        """Best deliverable rendition and its content type: web copy, then preview, then original."""
        candidates = (
            (item.web_path, "image/webp"),
            (item.preview_path, "image/jpeg"),
            (item.path, item.mime_type),
        )
        for relative, content_type in candidates:
            if self.storage.exists(relative):
                return self.storage.resolve(relative), content_type
        return None

    def original_path(self, item: MediaItem) -> Path | None:
        if self.storage.exists(item.path):
            return self.storage.resolve(item.path)
        return None

    def thumbnail_path(self, item: MediaItem) -> Path | None:
        if self.storage.exists(item.thumbnail_path):
            return self.storage.resolve(item.thumbnail_path)
        return None

    async def delete_media(self, household_id: str, media_id: str) -> bool:
        item = await self.records.get_by_id(household_id, media_id)
        if not item:
            return False
        relatives = item.relative_paths()
        if not await self.records.delete(household_id, media_id):
            return False
        cleanup_files(*self.storage.absolute_paths(relatives))
        self.logger.info("media_deleted", household_id=household_id, media_id=media_id, files=relatives)
        return True

    async def backfill_web_copies(self, *, limit: int | None = None) -> BackfillReport:
        report = BackfillReport()
        optimizer = self.orchestrator.web_optimizer
        # Plain values only: a rollback below expires every loaded row.
        pending = [
            (item.id, item.path, item.preview_path if is_heic(item.mime_type) else item.path)
            for item in await self.records.list_photos_missing_web(limit=limit)
        ]
        for media_id, path, source_relative in pending:
            report.processed += 1
            log = self.logger.bind(media_id=media_id, path=path)
            if not source_relative or not self.storage.exists(source_relative):
                log.warning("backfill_source_missing", source=source_relative)
                report.failed += 1
                continue

            try:
                asset = await asyncio.to_thread(optimizer.optimize, self.storage.resolve(source_relative), path)
            except EnrichmentError as exc:
                log.warning("backfill_web_failed", error=str(exc))
                report.failed += 1
                continue

            try:
                await self.records.set_web_path(media_id, asset.relative)
            except (SQLAlchemyError, LookupError) as exc:
                if isinstance(exc, SQLAlchemyError):
                    await self.session.rollback()
                cleanup_files(asset.absolute)
                log.error("backfill_update_failed", error=str(exc))
                report.failed += 1
                continue

            log.info("backfill_web_created", web_path=asset.relative)
            report.succeeded += 1
        return report

    @staticmethod
    def _build_item(
        household_id: str,
        uploader_id: str | None,
        filename: str,
        kind: MediaType,
        mime_type: str,
        result: IngestionResult,
    ) -> MediaItem:
        item = MediaItem(
            household_id=household_id,
            uploader_id=uploader_id,
            path=result.storage_path.relative,
            type=kind,
            mime_type=mime_type,
            size_bytes=result.size_bytes,
            sha256=result.sha256,
            original_filename=filename or None,
            preview_path=result.preview.relative if result.preview else None,
            thumbnail_path=result.thumbnail.relative if result.thumbnail else None,
            web_path=result.web.relative if result.web else None,
        )
        metadata = result.metadata
        if metadata is not None:
            item.taken_at = metadata.taken_at
            item.width = metadata.width
            item.height = metadata.height
            item.camera_make = metadata.camera_make
            item.camera_model = metadata.camera_model
            item.latitude = metadata.latitude
            item.longitude = metadata.longitude
            item.orientation = metadata.orientation
            item.iso = metadata.iso
            item.f_number = metadata.f_number
            item.exposure_time = metadata.exposure_time
            item.focal_length = metadata.focal_length
        return item


__all__ = ["MediaService", "BackfillReport", "infer_mime_type", "infer_media_kind"]
