from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from mediavault.api import deps

from . import schemas


router = APIRouter(prefix="/media", tags=["media"])


@router.get("/recent", response_model=schemas.MediaListResponse, summary="Newest images and videos")
async def recent_media(
    catalog: deps.CatalogDependency,
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
) -> schemas.MediaListResponse:
    items = await catalog.recent_media(limit)
    return schemas.MediaListResponse(items=[schemas.MediaItemModel.model_validate(item) for item in items])


@router.get("/albums", response_model=schemas.AlbumListResponse, summary="Albums holding at least one item")
async def list_albums(catalog: deps.CatalogDependency) -> schemas.AlbumListResponse:
    albums = await catalog.non_empty_albums()
    return schemas.AlbumListResponse(albums=[schemas.AlbumModel.model_validate(album) for album in albums])


@router.get("/albums/{album_id}", response_model=schemas.MediaListResponse)
async def album_media(album_id: int, catalog: deps.CatalogDependency) -> schemas.MediaListResponse:
    items = await catalog.media_for_album(album_id)
    return schemas.MediaListResponse(items=[schemas.MediaItemModel.model_validate(item) for item in items])


__all__ = ["router"]
