from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from mediavault.db.models import MediaKind

__all__ = ["LocalMediaItem", "LocalAlbum"]


@dataclass(slots=True, frozen=True)
class LocalMediaItem:
    """One entry of the device media index, produced fresh per query."""

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


@dataclass(slots=True)
class LocalAlbum:
    """Album bucket aggregated across media kinds.

    ``item_count`` is mutated while a single aggregation pass merges kinds;
    callers should treat returned albums as read-only.
    """

    album_id: int
    name: str
    cover_uri: Optional[str]
    item_count: int
    last_updated: datetime
