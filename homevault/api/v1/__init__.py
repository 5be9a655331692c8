"""Versioned API routing for Homevault."""

from fastapi import APIRouter

from . import routes_admin, routes_media, routes_system


def get_api_router() -> APIRouter:
    router = APIRouter(prefix="/v1")
    router.include_router(routes_system.router)
    router.include_router(routes_admin.router)
    router.include_router(routes_media.router)
    return router


__all__ = ["get_api_router"]
