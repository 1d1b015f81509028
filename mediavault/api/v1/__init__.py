"""Versioned API routing for mediavault."""

from fastapi import APIRouter

from . import routes_attachments, routes_media, routes_system


def get_api_router() -> APIRouter:
    router = APIRouter(prefix="/v1")
    router.include_router(routes_system.router)
    router.include_router(routes_attachments.router)
    router.include_router(routes_media.router)
    return router


__all__ = ["get_api_router"]
