"""Mirror a directory tree into the ``media_entries`` index.

Each directory holding media becomes an album bucket. Album and media ids
are stable digests of the resolved paths, so a rescan updates rows in place.
"""

from __future__ import annotations

from datetime import datetime, timezone
from hashlib import blake2b
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import cv2  # type: ignore

from mediavault.core.logging import get_logger
from mediavault.db.models import MediaEntry, MediaKind
from mediavault.ingest.thumbnails import image_dimensions
from mediavault.ingest.validator import kind_from_path

__all__ = ["album_id_for", "media_id_for", "scan_directory"]

logger = get_logger(component="catalog_scanner")


def album_id_for(directory: Path) -> int:
    return _stable_id(directory)


def media_id_for(path: Path) -> int:
    return _stable_id(path)


def _stable_id(path: Path) -> int:
    # 56 bits keeps the id positive in a signed BIGINT column.
    digest = blake2b(str(path.resolve()).encode("utf-8"), digest_size=7).digest()
    return int.from_bytes(digest, "big")


def scan_directory(root: Path) -> List[MediaEntry]:
    entries: List[MediaEntry] = []
    for path in _iter_media(root):
        kind = kind_from_path(path)
        stat = path.stat()
        width, height = _dimensions(path, kind)
        entries.append(
            MediaEntry(
                media_id=media_id_for(path),
                kind=kind,
                display_name=path.name,
                captured_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                width=width,
                height=height,
                size_bytes=stat.st_size,
                album_id=album_id_for(path.parent),
                album_name=path.parent.name,
            )
        )
    logger.info("catalog_scan_completed", root=str(root), entries=len(entries))
    return entries


def _iter_media(root: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        if path.is_file() and kind_from_path(path) in (MediaKind.image, MediaKind.video):
            yield path


def _dimensions(path: Path, kind: MediaKind) -> Tuple[Optional[int], Optional[int]]:
    if kind is MediaKind.image:
        try:
            return image_dimensions(path)
        except RuntimeError:
            return None, None
    capture = cv2.VideoCapture(str(path))
    try:
        if not capture.isOpened():
            return None, None
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0) or None
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0) or None
        return width, height
    finally:
        capture.release()
