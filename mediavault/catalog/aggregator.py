from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from mediavault.core.logging import get_logger
from mediavault.db.models import MediaKind

from .index import MediaIndex, MediaRow
from .models import LocalAlbum, LocalMediaItem

__all__ = ["MediaCatalogAggregator", "CATALOG_KINDS", "EPOCH"]

# Images are merged before videos; album merging depends on this order.
CATALOG_KINDS: Tuple[MediaKind, ...] = (MediaKind.image, MediaKind.video)
EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


class MediaCatalogAggregator:
    """Builds picker views (recent media, albums) over a :class:`MediaIndex`.

    Each kind is queried separately because the index only sorts within a
    kind. A kind whose query fails contributes nothing; a malformed row is
    skipped. Neither ever fails the whole call.
    """

    def __init__(self, index: MediaIndex, *, default_limit: int = 100):
        self.index = index
        self.default_limit = default_limit
        self.logger = get_logger(component="media_catalog")

    async def recent_media(self, limit: Optional[int] = None) -> List[LocalMediaItem]:
        limit = self.default_limit if limit is None else limit
        if limit <= 0:
            return []
        combined: List[LocalMediaItem] = []
        for kind in CATALOG_KINDS:
            combined.extend(await self._scan(kind, limit=limit))
        combined.sort(key=lambda item: item.captured_at, reverse=True)
        return combined[:limit]

    async def media_for_album(self, album_id: int) -> List[LocalMediaItem]:
        items: List[LocalMediaItem] = []
        for kind in CATALOG_KINDS:
            items.extend(await self._scan(kind, album_id=album_id))
        items.sort(key=lambda item: item.captured_at, reverse=True)
        return items

    async def non_empty_albums(self) -> List[LocalAlbum]:
        albums: Dict[int, LocalAlbum] = {}
        for kind in CATALOG_KINDS:
            for album_id, name in await self._buckets(kind):
                count = await self._count(kind, album_id)
                if count <= 0:
                    continue
                newest = await self._scan(kind, album_id=album_id, limit=1)
                cover = newest[0].uri if newest else None
                last_updated = newest[0].captured_at if newest else EPOCH

                existing = albums.get(album_id)
                if existing is None:
                    albums[album_id] = LocalAlbum(album_id, name, cover, count, last_updated)
                elif last_updated > existing.last_updated:
                    albums[album_id] = LocalAlbum(album_id, name, cover, existing.item_count + count, last_updated)
                else:
                    existing.item_count += count
        return list(albums.values())

    def media_uri(self, media_id: int, kind: MediaKind) -> str:
        return self.index.resource_uri(kind, media_id)

    async def _scan(
        self,
        kind: MediaKind,
        *,
        album_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[LocalMediaItem]:
        try:
            rows = await self.index.query(kind, album_id=album_id, limit=limit)
        except Exception as exc:
            self.logger.warning("catalog_query_failed", kind=kind.value, album_id=album_id, error=str(exc))
            return []
        if rows is None:
            self.logger.warning("catalog_query_empty_cursor", kind=kind.value, album_id=album_id)
            return []

        items: List[LocalMediaItem] = []
        for row in rows:
            try:
                items.append(self._to_item(row, kind))
            except (KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
                self.logger.debug("catalog_row_skipped", kind=kind.value, error=str(exc))
        return items

    async def _buckets(self, kind: MediaKind) -> List[Tuple[int, str]]:
        try:
            rows = await self.index.album_buckets(kind)
        except Exception as exc:
            self.logger.warning("catalog_buckets_failed", kind=kind.value, error=str(exc))
            return []
        buckets: List[Tuple[int, str]] = []
        seen = set()
        for row in rows or ():
            try:
                album_id = int(row["album_id"])
            except (KeyError, TypeError, ValueError):
                self.logger.debug("catalog_bucket_skipped", kind=kind.value)
                continue
            if album_id in seen:
                continue
            seen.add(album_id)
            buckets.append((album_id, str(row.get("album_name") or "")))
        return buckets

    async def _count(self, kind: MediaKind, album_id: int) -> int:
        try:
            return int(await self.index.count(kind, album_id))
        except Exception as exc:
            self.logger.warning("catalog_count_failed", kind=kind.value, album_id=album_id, error=str(exc))
            return 0

    def _to_item(self, row: MediaRow, kind: MediaKind) -> LocalMediaItem:
        media_id = int(row["id"])
        album_id = row.get("album_id")
        return LocalMediaItem(
            media_id=media_id,
            uri=self.index.resource_uri(kind, media_id),
            display_name=str(row.get("display_name") or ""),
            captured_at=_coerce_timestamp(row.get("captured_at")),
            width=int(row.get("width") or 0),
            height=int(row.get("height") or 0),
            size_bytes=int(row.get("size_bytes") or 0),
            kind=kind,
            album_id=int(album_id) if album_id is not None else None,
            album_name=row.get("album_name"),
        )


def _coerce_timestamp(value: Any) -> datetime:
    """Accept aware/naive datetimes, epoch milliseconds or ISO strings."""
    if value is None:
        return EPOCH
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        raise TypeError("boolean is not a timestamp")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise TypeError(f"unsupported timestamp type: {type(value).__name__}")
