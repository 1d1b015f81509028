from __future__ import annotations

from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mediavault.db.models import MediaEntry, MediaKind

__all__ = [
    "MediaRow",
    "MediaIndex",
    "InMemoryMediaIndex",
    "SqlMediaIndex",
]

# Keys: id, display_name, captured_at, width, height, size_bytes, album_id, album_name
MediaRow = Mapping[str, Any]

# Bound parameters per DELETE ... IN statement.
_DELETE_CHUNK = 500


class MediaIndex(ABC):
    """Read-only catalog of device media, queried one kind at a time.

    A query may return ``None`` when the index has nothing to iterate for
    that kind (no cursor); callers treat that like an empty result.
    """

    scheme: str = "media"

    @abstractmethod
    async def query(
        self,
        kind: MediaKind,
        *,
        album_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Optional[Sequence[MediaRow]]:
        """Rows of ``kind``, newest capture first, optionally within one album."""

    @abstractmethod
    async def album_buckets(self, kind: MediaKind) -> Optional[Sequence[MediaRow]]:
        """Distinct ``{album_id, album_name}`` rows for ``kind``, by name ascending."""

    @abstractmethod
    async def count(self, kind: MediaKind, album_id: int) -> int: ...

    def resource_uri(self, kind: MediaKind, media_id: int) -> str:
        return f"{self.scheme}://{kind.value}/{media_id}"


def _sort_timestamp(value: Any) -> float:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) / 1000.0
    return float("-inf")


class InMemoryMediaIndex(MediaIndex):
    """Dictionary-backed index, handy for tests and offline tooling."""

    def __init__(self, rows: Optional[Mapping[MediaKind, Iterable[MediaRow]]] = None):
        self._rows: Dict[MediaKind, List[MediaRow]] = defaultdict(list)
        for kind, items in (rows or {}).items():
            self._rows[kind].extend(items)

    def add(self, kind: MediaKind, row: MediaRow) -> None:
        self._rows[kind].append(row)

    async def query(
        self,
        kind: MediaKind,
        *,
        album_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Optional[Sequence[MediaRow]]:
        rows = self._rows.get(kind, [])
        if album_id is not None:
            rows = [row for row in rows if row.get("album_id") == album_id]
        ordered = sorted(rows, key=lambda row: _sort_timestamp(row.get("captured_at")), reverse=True)
        return ordered[:limit] if limit is not None else ordered

    async def album_buckets(self, kind: MediaKind) -> Optional[Sequence[MediaRow]]:
        seen: Dict[Any, MediaRow] = {}
        for row in self._rows.get(kind, []):
            album_id = row.get("album_id")
            if album_id is None or album_id in seen:
                continue
            seen[album_id] = {"album_id": album_id, "album_name": row.get("album_name")}
        return sorted(seen.values(), key=lambda bucket: str(bucket.get("album_name") or ""))

    async def count(self, kind: MediaKind, album_id: int) -> int:
        return sum(1 for row in self._rows.get(kind, []) if row.get("album_id") == album_id)


class SqlMediaIndex(MediaIndex):
    """Index backed by the ``media_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def query(
        self,
        kind: MediaKind,
        *,
        album_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Optional[Sequence[MediaRow]]:
        stmt = select(MediaEntry).where(MediaEntry.kind == kind)
        if album_id is not None:
            stmt = stmt.where(MediaEntry.album_id == album_id)
        stmt = stmt.order_by(MediaEntry.captured_at.desc(), MediaEntry.entry_id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session_factory() as session:
            entries = (await session.execute(stmt)).scalars().all()
        return [_entry_to_row(entry) for entry in entries]

    async def album_buckets(self, kind: MediaKind) -> Optional[Sequence[MediaRow]]:
        name = func.min(MediaEntry.album_name).label("album_name")
        stmt = (
            select(MediaEntry.album_id, name)
            .where(MediaEntry.kind == kind, MediaEntry.album_id.is_not(None))
            .group_by(MediaEntry.album_id)
            .order_by(name.asc(), MediaEntry.album_id.asc())
        )
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [{"album_id": row.album_id, "album_name": row.album_name} for row in result]

    async def count(self, kind: MediaKind, album_id: int) -> int:
        stmt = select(func.count()).select_from(MediaEntry).where(
            MediaEntry.kind == kind,
            MediaEntry.album_id == album_id,
        )
        async with self.session_factory() as session:
            return int((await session.execute(stmt)).scalar_one())

    async def add_entries(self, entries: Iterable[MediaEntry]) -> int:
        """Insert ``entries``, replacing rows that share their ``(kind, media_id)``.

        Within one call the last entry for a key wins.
        """
        latest: Dict[Tuple[MediaKind, int], MediaEntry] = {}
        for entry in entries:
            latest[(entry.kind, entry.media_id)] = entry
        ids_by_kind: Dict[MediaKind, List[int]] = defaultdict(list)
        for kind, media_id in latest:
            ids_by_kind[kind].append(media_id)

        async with self.session_factory() as session:
            for kind, media_ids in ids_by_kind.items():
                for start in range(0, len(media_ids), _DELETE_CHUNK):
                    chunk = media_ids[start : start + _DELETE_CHUNK]
                    await session.execute(
                        delete(MediaEntry).where(MediaEntry.kind == kind, MediaEntry.media_id.in_(chunk))
                    )
            session.add_all(latest.values())
            await session.commit()
        return len(latest)

    async def clear(self) -> None:
        async with self.session_factory() as session:
            await session.execute(MediaEntry.__table__.delete())  # type: ignore[attr-defined]
            await session.commit()


def _entry_to_row(entry: MediaEntry) -> Dict[str, Any]:
    return {
        "id": entry.media_id,
        "display_name": entry.display_name,
        "captured_at": entry.captured_at,
        "width": entry.width,
        "height": entry.height,
        "size_bytes": entry.size_bytes,
        "album_id": entry.album_id,
        "album_name": entry.album_name,
    }
