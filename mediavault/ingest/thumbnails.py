from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

import cv2  # type: ignore

from mediavault.core.logging import get_logger
from mediavault.core.storage import PrivateStore

THUMB_SIZE = 100
JPEG_QUALITY = 80

logger = get_logger(component="thumbnails")


class ThumbnailExtractor:
    """Persists one representative frame of a video as a small JPEG."""

    def __init__(self, store: PrivateStore, *, size: int = THUMB_SIZE, quality: int = JPEG_QUALITY):
        self.store = store
        self.size = size
        self.quality = quality

    def extract_frame(self, video_path: Path | str) -> Optional[Path]:
        """Return the thumbnail path, or None when the video cannot be decoded."""
        frame = _read_representative_frame(str(video_path))
        if frame is None:
            logger.warning("thumbnail_unavailable", source=str(video_path))
            return None

        resized = cv2.resize(frame, _fit_within(frame.shape[1], frame.shape[0], self.size), interpolation=cv2.INTER_AREA)
        ok, encoded = cv2.imencode(".jpg", resized, [int(cv2.IMWRITE_JPEG_QUALITY), self.quality])
        if not ok:
            logger.warning("thumbnail_encode_failed", source=str(video_path))
            return None

        try:
            output_path = self.store.create_unique_file("jpg", prefix="video_thumb_")
        except OSError as exc:
            logger.error("thumbnail_write_failed", source=str(video_path), error=str(exc))
            return None
        try:
            output_path.write_bytes(encoded.tobytes())
        except OSError as exc:
            self.store.delete(output_path)
            logger.error("thumbnail_write_failed", source=str(video_path), error=str(exc))
            return None
        logger.debug("thumbnail_generated", source=str(video_path), target=output_path.name)
        return output_path


def _read_representative_frame(video_path: str):
    capture = cv2.VideoCapture(video_path)
    try:
        if not capture.isOpened():
            return None
        frame_count = int(capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        if frame_count > 2:
            capture.set(cv2.CAP_PROP_POS_FRAMES, frame_count // 10)
        ok, frame = capture.read()
        if not ok or frame is None:
            # Seeking is unreliable for some containers; retry from the start.
            capture.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ok, frame = capture.read()
        return frame if ok else None
    finally:
        capture.release()


def _fit_within(width: int, height: int, bound: int) -> Tuple[int, int]:
    if width <= 0 or height <= 0:
        return bound, bound
    scale = bound / max(width, height)
    return max(int(round(width * scale)), 1), max(int(round(height * scale)), 1)


def image_dimensions(image_path: Path) -> Tuple[int, int]:
    image = cv2.imread(str(image_path))
    if image is None:
        raise RuntimeError(f"Failed to read image at {image_path}")
    height, width = image.shape[:2]
    return width, height


__all__ = ["ThumbnailExtractor", "THUMB_SIZE", "JPEG_QUALITY", "image_dimensions"]
