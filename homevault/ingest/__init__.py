"""Media ingestion pipeline: store an upload, then derive previews, thumbnails and metadata."""

from .errors import (
    CatalogError,
    DuplicateMediaError,
    IngestError,
    InvalidUploadError,
    PathConflictError,
    StoreError,
    UploadTooLargeError,
)
from .locator import StorageLocator, sanitize_filename
from .models import AssetKind, DerivedAsset, ExtractedMetadata, IngestionResult, StoragePath, UploadSource
from .pipeline import IngestionOrchestrator, build_orchestrator, cleanup_files, select_branch, toolchain_status

__all__ = [
    "AssetKind",
    "CatalogError",
    "DerivedAsset",
    "DuplicateMediaError",
    "ExtractedMetadata",
    "IngestError",
    "IngestionOrchestrator",
    "IngestionResult",
    "InvalidUploadError",
    "PathConflictError",
    "StorageLocator",
    "StoragePath",
    "StoreError",
    "UploadSource",
    "UploadTooLargeError",
    "build_orchestrator",
    "cleanup_files",
    "sanitize_filename",
    "select_branch",
    "toolchain_status",
]
