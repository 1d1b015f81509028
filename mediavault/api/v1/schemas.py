from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from mediavault.db.models import MediaKind


class HealthResponse(BaseModel):
    status: str = Field(default="ok", description="Health status indicator.")
    time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    free_bytes: Optional[int] = Field(default=None, description="Free bytes on the private store volume.")
    provisional_files: int = 0
    copies_in_flight: int = 0


class ProcessedAttachmentModel(BaseModel):
    file_id: str = Field(..., description="Name of the file inside the private store.")
    kind: str = Field(..., json_schema_extra={"example": "image"})


class IngestResultModel(BaseModel):
    source: str
    ok: bool
    file_id: Optional[str] = None
    byte_size: Optional[int] = None
    kind: Optional[str] = None
    reason: Optional[str] = Field(default=None, description="unsupported_kind | too_large | insufficient_space | copy_failed")
    message: Optional[str] = None


class ImportRequest(BaseModel):
    source_uris: List[str] = Field(..., min_length=1, json_schema_extra={"example": ["file:///sdcard/DCIM/clip.mp4"]})
    require_all: bool = Field(default=True, description="Fail the whole call when any item fails.")


class AttachmentsResponse(BaseModel):
    attachments: List[ProcessedAttachmentModel]


class IngestResultsResponse(BaseModel):
    results: List[IngestResultModel]


class FileIdsRequest(BaseModel):
    file_ids: List[str] = Field(default_factory=list)


class CleanupRequest(BaseModel):
    file_ids: Optional[List[str]] = Field(default=None, description="Omit to discard every provisional file.")


class PromoteResponse(BaseModel):
    promoted: List[str]


class CleanupResponse(BaseModel):
    removed: List[str]


class ProgressResponse(BaseModel):
    progress: Dict[str, float]


class ThumbnailRequest(BaseModel):
    source_uri: str


class ThumbnailResponse(BaseModel):
    thumbnail: Optional[str] = Field(default=None, description="Thumbnail file name, null when unavailable.")


class MediaItemModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    media_id: int
    uri: str
    display_name: str
    captured_at: datetime
    width: int
    height: int
    size_bytes: int
    kind: MediaKind
    album_id: Optional[int] = None
    album_name: Optional[str] = None


class AlbumModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    album_id: int
    name: str
    cover_uri: Optional[str] = None
    item_count: int
    last_updated: datetime


class MediaListResponse(BaseModel):
    items: List[MediaItemModel]


class AlbumListResponse(BaseModel):
    albums: List[AlbumModel]
