from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from homevault.db.models import MediaType


class HealthResponse(BaseModel):
    status: str = Field(default="ok", description="Health status indicator.")
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str
    media_root_writable: bool = Field(description="Whether uploads can be stored right now.")


class EnvCheckResponse(BaseModel):
    ffmpeg: bool
    heif_convert: bool


class MediaItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    household_id: str
    uploader_id: Optional[str] = None
    type: MediaType
    path: str
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = None
    sha256: Optional[str] = None
    original_filename: Optional[str] = None
    preview_path: Optional[str] = None
    thumbnail_path: Optional[str] = None
    web_path: Optional[str] = None
    taken_at: Optional[datetime] = None
    width: Optional[int] = None
    height: Optional[int] = None
    duration_sec: Optional[int] = None
    camera_make: Optional[str] = None
    camera_model: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    orientation: Optional[int] = None
    iso: Optional[int] = None
    f_number: Optional[float] = None
    exposure_time: Optional[str] = None
    focal_length: Optional[float] = None
    created_at: datetime
    updated_at: datetime


class UploadResponse(BaseModel):
    media: MediaItemResponse
    warnings: List[str] = Field(default_factory=list, description="Enrichment steps that were skipped.")


class MediaListResponse(BaseModel):
    items: List[MediaItemResponse]
    total: int
    page: int = Field(..., json_schema_extra={"example": 1})
    page_size: int = Field(..., json_schema_extra={"example": 20})


class ErrorDetail(BaseModel):
    code: str = Field(..., json_schema_extra={"example": "conflict"})
    message: str


__all__ = [
    "HealthResponse",
    "EnvCheckResponse",
    "MediaItemResponse",
    "UploadResponse",
    "MediaListResponse",
    "ErrorDetail",
]
