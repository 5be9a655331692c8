from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from homevault.api.v1 import get_api_router
from homevault.core.config import get_settings
from homevault.core.db import create_engine, create_session_factory
from homevault.core.logging import configure_logging, get_logger
from homevault.core.storage import get_storage
from homevault.ingest import build_orchestrator


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=settings.log_level)
    storage = get_storage(settings)
    orchestrator = build_orchestrator(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    logger = get_logger(component="app")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.storage = storage
        app.state.orchestrator = orchestrator
        app.state.engine = engine
        app.state.session_factory = session_factory
        logger.info("app_started", environment=settings.environment, media_path=str(settings.media_path))
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.include_router(get_api_router())
    return app


app = create_app()


__all__ = ["app", "create_app"]
