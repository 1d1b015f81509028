from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import cv2  # type: ignore
import numpy as np

from mediavault.catalog.aggregator import MediaCatalogAggregator
from mediavault.catalog.index import SqlMediaIndex
from mediavault.catalog.scanner import album_id_for, scan_directory
from mediavault.core.db import create_engine, create_schema, create_session_factory
from mediavault.db.models import MediaEntry, MediaKind
from tests.conftest import write_video

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _entry(media_id, kind, minutes, album_id=1, album_name="Camera"):
    return MediaEntry(
        media_id=media_id,
        kind=kind,
        display_name=f"{kind.value}_{media_id}",
        captured_at=T0 + timedelta(minutes=minutes),
        width=320,
        height=240,
        size_bytes=2048,
        album_id=album_id,
        album_name=album_name,
    )


async def _with_index(settings, body):
    engine = create_engine(settings)
    try:
        await create_schema(engine)
        index = SqlMediaIndex(create_session_factory(engine))
        return await body(index)
    finally:
        await engine.dispose()


def test_sql_index_queries_by_kind_album_and_limit(settings):
    async def body(index: SqlMediaIndex):
        await index.add_entries(
            [
                _entry(1, MediaKind.image, 0),
                _entry(2, MediaKind.image, 30, album_id=2, album_name="Screenshots"),
                _entry(3, MediaKind.image, 15),
                _entry(4, MediaKind.video, 20),
            ]
        )
        newest = await index.query(MediaKind.image, limit=2)
        camera = await index.query(MediaKind.image, album_id=1)
        buckets = await index.album_buckets(MediaKind.image)
        count = await index.count(MediaKind.image, 1)
        return newest, camera, buckets, count

    newest, camera, buckets, count = asyncio.run(_with_index(settings, body))

    assert [row["id"] for row in newest] == [2, 3]
    assert [row["id"] for row in camera] == [3, 1]
    assert buckets == [
        {"album_id": 1, "album_name": "Camera"},
        {"album_id": 2, "album_name": "Screenshots"},
    ]
    assert count == 2


def test_sql_index_feeds_the_aggregator(settings):
    async def body(index: SqlMediaIndex):
        await index.add_entries(
            [
                _entry(1, MediaKind.image, 0),
                _entry(2, MediaKind.video, 10),
                _entry(3, MediaKind.audio, 20),
            ]
        )
        catalog = MediaCatalogAggregator(index)
        return await catalog.recent_media(), await catalog.non_empty_albums()

    items, albums = asyncio.run(_with_index(settings, body))

    assert [(item.media_id, item.kind) for item in items] == [(2, MediaKind.video), (1, MediaKind.image)]
    assert items[0].captured_at == T0 + timedelta(minutes=10)
    assert len(albums) == 1
    assert albums[0].item_count == 2
    assert albums[0].cover_uri == "media://video/2"


def test_clear_empties_the_index(settings):
    async def body(index: SqlMediaIndex):
        await index.add_entries([_entry(1, MediaKind.image, 0)])
        await index.clear()
        return await index.query(MediaKind.image)

    assert asyncio.run(_with_index(settings, body)) == []


def test_scan_directory_builds_albums_per_folder(tmp_path: Path):
    holidays = tmp_path / "Holidays"
    holidays.mkdir()
    cv2.imwrite(str(holidays / "sunset.png"), np.zeros((30, 40, 3), dtype=np.uint8))
    write_video(holidays / "waves.avi")
    (holidays / "notes.txt").write_text("not media")
    cv2.imwrite(str(tmp_path / "loose.jpg"), np.zeros((10, 20, 3), dtype=np.uint8))

    entries = scan_directory(tmp_path)

    by_name = {entry.display_name: entry for entry in entries}
    assert set(by_name) == {"sunset.png", "waves.avi", "loose.jpg"}
    assert by_name["sunset.png"].kind is MediaKind.image
    assert (by_name["sunset.png"].width, by_name["sunset.png"].height) == (40, 30)
    assert by_name["waves.avi"].kind is MediaKind.video
    assert (by_name["waves.avi"].width, by_name["waves.avi"].height) == (160, 120)
    assert by_name["sunset.png"].album_id == by_name["waves.avi"].album_id == album_id_for(holidays)
    assert by_name["sunset.png"].album_name == "Holidays"
    assert by_name["loose.jpg"].album_id == album_id_for(tmp_path)
    assert len({entry.media_id for entry in entries}) == 3


def test_rescans_replace_rows_instead_of_duplicating(settings, tmp_path: Path):
    first = tmp_path / "a"
    second = tmp_path / "b"
    first.mkdir()
    second.mkdir()
    cv2.imwrite(str(first / "x.jpg"), np.zeros((10, 10, 3), dtype=np.uint8))
    cv2.imwrite(str(first / "z.jpg"), np.zeros((10, 10, 3), dtype=np.uint8))
    cv2.imwrite(str(second / "y.jpg"), np.zeros((10, 10, 3), dtype=np.uint8))

    async def body(index: SqlMediaIndex):
        await index.add_entries(scan_directory(first))
        await index.add_entries(scan_directory(second))
        await index.add_entries(scan_directory(first))
        catalog = MediaCatalogAggregator(index)
        return await catalog.recent_media(), await catalog.non_empty_albums()

    items, albums = asyncio.run(_with_index(settings, body))

    assert sorted(item.display_name for item in items) == ["x.jpg", "y.jpg", "z.jpg"]
    assert len({item.uri for item in items}) == 3
    assert sorted((album.name, album.item_count) for album in albums) == [("a", 2), ("b", 1)]


def test_add_entries_keeps_one_row_per_kind_and_media_id(settings):
    async def body(index: SqlMediaIndex):
        await index.add_entries([_entry(1, MediaKind.image, 0), _entry(1, MediaKind.video, 5)])
        added = await index.add_entries([_entry(1, MediaKind.image, 10), _entry(1, MediaKind.image, 20)])
        return added, await index.query(MediaKind.image), await index.query(MediaKind.video)

    added, images, videos = asyncio.run(_with_index(settings, body))

    assert added == 1
    assert [row["captured_at"].replace(tzinfo=None) for row in images] == [datetime(2024, 1, 1, 0, 20)]
    assert len(videos) == 1
