from __future__ import annotations

import os

from fastapi import APIRouter, Depends

from homevault.api.deps import get_app_settings, get_storage
from homevault.core.config import Settings
from homevault.core.storage import LocalMediaStorage

from .schemas import HealthResponse


router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse, summary="Liveness probe with media root check")
async def health(
    settings: Settings = Depends(get_app_settings),
    storage: LocalMediaStorage = Depends(get_storage),
) -> HealthResponse:
    # The media root is created lazily by the first upload.
    root = storage.base_path
    while not root.exists() and root != root.parent:
        root = root.parent
    writable = root.is_dir() and os.access(root, os.W_OK)
    return HealthResponse(
        status="ok" if writable else "degraded",
        version=settings.version,
        media_root_writable=writable,
    )


__all__ = ["router"]
