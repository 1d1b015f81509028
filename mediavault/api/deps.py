from __future__ import annotations

from pathlib import Path
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from mediavault.catalog.aggregator import MediaCatalogAggregator
from mediavault.core.config import Settings, get_settings
from mediavault.core.storage import PrivateStore
from mediavault.services.attachment_service import AttachmentService


def get_store(request: Request) -> PrivateStore:
    store: PrivateStore = request.app.state.store
    return store


def get_app_settings() -> Settings:
    return get_settings()


def get_attachment_service(request: Request) -> AttachmentService:
    service = request.app.state.attachment_service
    if not isinstance(service, AttachmentService):  # pragma: no cover
        raise RuntimeError("attachment_service_not_configured")
    return service


def get_catalog(request: Request) -> MediaCatalogAggregator:
    catalog = request.app.state.catalog
    if not isinstance(catalog, MediaCatalogAggregator):  # pragma: no cover
        raise RuntimeError("catalog_not_configured")
    return catalog


def resolve_file_id(store: PrivateStore, name: str) -> Path:
    """Map a public file id (a bare file name) back to its path in the store."""
    if not name or Path(name).name != name or name in {".", ".."}:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"invalid_file_id:{name}")
    return store.root / name


ServiceDependency = Annotated[AttachmentService, Depends(get_attachment_service)]
CatalogDependency = Annotated[MediaCatalogAggregator, Depends(get_catalog)]
StoreDependency = Annotated[PrivateStore, Depends(get_store)]


__all__ = [
    "get_store",
    "get_app_settings",
    "get_attachment_service",
    "get_catalog",
    "resolve_file_id",
    "ServiceDependency",
    "CatalogDependency",
    "StoreDependency",
]
