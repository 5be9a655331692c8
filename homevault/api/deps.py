from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from homevault.core.auth import AuthContext, get_auth_context
from homevault.core.config import Settings, get_settings
from homevault.core.storage import LocalMediaStorage
from homevault.ingest import IngestionOrchestrator
from homevault.services.media_service import MediaService


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    session_factory = request.app.state.session_factory
    if not isinstance(session_factory, async_sessionmaker):  # pragma: no cover
        raise RuntimeError("session_factory_not_configured")
    async with session_factory() as session:
        yield session


def get_storage(request: Request) -> LocalMediaStorage:
    storage: LocalMediaStorage = request.app.state.storage
    return storage


def get_orchestrator(request: Request) -> IngestionOrchestrator:
    orchestrator: IngestionOrchestrator = request.app.state.orchestrator
    return orchestrator


def get_app_settings() -> Settings:
    return get_settings()


async def get_media_service(
    session: AsyncSession = Depends(get_session),
    storage: LocalMediaStorage = Depends(get_storage),
    orchestrator: IngestionOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_app_settings),
) -> AsyncIterator[MediaService]:
    service = MediaService(settings, orchestrator, storage, session)
    yield service


MediaServiceDependency = Annotated[MediaService, Depends(get_media_service)]
AuthDependency = Annotated[AuthContext, Depends(get_auth_context)]


__all__ = [
    "get_session",
    "get_storage",
    "get_orchestrator",
    "get_app_settings",
    "get_media_service",
    "MediaServiceDependency",
    "AuthDependency",
]
