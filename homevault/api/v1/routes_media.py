from __future__ import annotations

from typing import NoReturn, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse

from homevault.api import deps
from homevault.db.models import MediaItem, MediaType
from homevault.ingest import (
    CatalogError,
    DuplicateMediaError,
    IngestError,
    InvalidUploadError,
    PathConflictError,
    StoreError,
    UploadTooLargeError,
)
from homevault.services.media_service import MediaService

from . import schemas


router = APIRouter(prefix="/media", tags=["media"])

_STATUS_BY_ERROR: tuple[tuple[type[IngestError], int], ...] = (
    (UploadTooLargeError, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE),
    (InvalidUploadError, status.HTTP_400_BAD_REQUEST),
    (DuplicateMediaError, status.HTTP_409_CONFLICT),
    (PathConflictError, status.HTTP_409_CONFLICT),
    (StoreError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (CatalogError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def _raise_ingest_error(exc: IngestError) -> NoReturn:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break
    raise HTTPException(status_code=status_code, detail=exc.to_dict()) from exc


async def _load(service: MediaService, household_id: str, media_id: str) -> MediaItem:
    item = await service.get_media(household_id, media_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="media_not_found")
    return item


@router.post("/upload", response_model=schemas.UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_media(
    service: deps.MediaServiceDependency,
    context: deps.AuthDependency,
    file: UploadFile = File(...),
    media_type: Optional[str] = Form(default=None, alias="type"),
) -> schemas.UploadResponse:
    max_bytes = service.settings.max_upload_size_bytes
    if file.size is not None and file.size > max_bytes:
        _raise_ingest_error(UploadTooLargeError(f"upload exceeds {max_bytes} bytes"))

    try:
        item, warnings = await service.upload(
            household_id=context.household_id,
            stream=file.file,
            filename=file.filename,
            mime_type=file.content_type,
            media_type=media_type,
            uploader_id=context.user_id,
        )
    except IngestError as exc:
        _raise_ingest_error(exc)
    finally:
        await file.close()

    return schemas.UploadResponse(media=schemas.MediaItemResponse.model_validate(item), warnings=warnings)


@router.get("", response_model=schemas.MediaListResponse)
async def list_media(
    service: deps.MediaServiceDependency,
    context: deps.AuthDependency,
    page: int = Query(default=1),
    page_size: int = Query(default=20),
    media_type: Optional[MediaType] = Query(default=None, alias="type"),
) -> schemas.MediaListResponse:
    result = await service.list_media(context.household_id, page=page, page_size=page_size, media_type=media_type)
    return schemas.MediaListResponse(
        items=[schemas.MediaItemResponse.model_validate(item) for item in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.get("/{media_id}", response_model=schemas.MediaItemResponse)
async def get_media(
    media_id: str,
    service: deps.MediaServiceDependency,
    context: deps.AuthDependency,
) -> schemas.MediaItemResponse:
    item = await _load(service, context.household_id, media_id)
    return schemas.MediaItemResponse.model_validate(item)


@router.get("/{media_id}/download", summary="Best rendition: web copy, preview, then original")
async def download_media(
    media_id: str,
    service: deps.MediaServiceDependency,
    context: deps.AuthDependency,
) -> FileResponse:
    item = await _load(service, context.household_id, media_id)
    rendition = service.download_path(item)
    if rendition is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="file_not_found")
    path, content_type = rendition
    return FileResponse(path, media_type=content_type)


@router.get("/{media_id}/original")
async def download_original(
    media_id: str,
    service: deps.MediaServiceDependency,
    context: deps.AuthDependency,
) -> FileResponse:
    item = await _load(service, context.household_id, media_id)
    path = service.original_path(item)
    if path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="file_not_found")
    return FileResponse(path, media_type=item.mime_type, filename=item.original_filename or path.name)


@router.get("/{media_id}/thumbnail")
async def get_thumbnail(
    media_id: str,
    service: deps.MediaServiceDependency,
    context: deps.AuthDependency,
) -> FileResponse:
    item = await _load(service, context.household_id, media_id)
    path = service.thumbnail_path(item)
    if path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="thumbnail_not_found")
    return FileResponse(path, media_type="image/jpeg")


@router.delete("/{media_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_media(
    media_id: str,
    service: deps.MediaServiceDependency,
    context: deps.AuthDependency,
) -> None:
    if not await service.delete_media(context.household_id, media_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="media_not_found")


__all__ = ["router"]
