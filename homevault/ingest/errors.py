from __future__ import annotations

__all__ = [
    "IngestError",
    "InvalidUploadError",
    "StoreError",
    "UploadTooLargeError",
    "PathConflictError",
    "DuplicateMediaError",
    "CatalogError",
    "EnrichmentError",
    "ConversionError",
    "ThumbnailError",
    "MetadataError",
    "WebOptimizationError",
]


class IngestError(Exception):
    """Failure of an upload attempt, carrying a machine-readable category."""

    category = "ingest_failed"

    def __init__(self, message: str, *, category: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if category is not None:
            self.category = category

    def to_dict(self) -> dict[str, str]:
        return {"code": self.category, "message": self.message}


class StoreError(IngestError):
    category = "store_failed"


class UploadTooLargeError(StoreError):
    category = "upload_too_large"


class PathConflictError(IngestError):
    """The storage path is already occupied on disk."""

    category = "conflict"


class DuplicateMediaError(IngestError):
    """A catalog record already exists for (household, path)."""

    category = "conflict"

    def __init__(self, message: str, *, existing_id: str | None = None) -> None:
        super().__init__(message)
        self.existing_id = existing_id


class CatalogError(IngestError):
    category = "catalog_write_failed"


class EnrichmentError(Exception):
    """Best-effort post-processing failed. Never fatal to an upload."""


class ConversionError(EnrichmentError):
    pass


class ThumbnailError(EnrichmentError):
    pass


class MetadataError(EnrichmentError):
    pass


class WebOptimizationError(EnrichmentError):
    pass


class InvalidUploadError(IngestError):
    """The upload request itself is unusable (unsupported media kind, missing file name)."""

    category = "invalid_upload"
