from __future__ import annotations

import io
import threading
from pathlib import Path
from typing import BinaryIO, Callable, Optional

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from mediavault.core.config import get_settings
from mediavault.core.storage import LocalPrivateStore
from mediavault.ingest.resources import StreamRef
from mediavault.main import create_app


@pytest.fixture(autouse=True)
def configure_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("MEDIAVAULT_ENV", "test")
    monkeypatch.setenv("MEDIAVAULT_LOG_LEVEL", "debug")
    monkeypatch.setenv("MEDIAVAULT_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'mediavault_test.db'}")
    monkeypatch.setenv("MEDIAVAULT_STORAGE_ROOT", str(tmp_path / "private"))
    monkeypatch.setenv("MEDIAVAULT_THUMBNAIL_ROOT", str(tmp_path / "thumbs"))
    monkeypatch.setenv("MEDIAVAULT_RETRY_INITIAL_DELAY_S", "0")

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings():
    return get_settings()


@pytest.fixture()
def store(tmp_path) -> LocalPrivateStore:
    return LocalPrivateStore(tmp_path / "store")


@pytest.fixture()
def client(configure_environment):
    app = create_app()
    with TestClient(app) as client:
        yield client


def make_ref(
    payload: bytes,
    *,
    name: Optional[str] = "photo.jpg",
    kind: Optional[str] = "image/jpeg",
    size: Optional[int] = -1,
    identity: Optional[str] = None,
    opener: Optional[Callable[[], BinaryIO]] = None,
) -> StreamRef:
    """Build an in-memory reference; ``size=-1`` means "declare the real size"."""
    declared = len(payload) if size == -1 else size
    return StreamRef(
        identity or f"content://test/{name}",
        opener or (lambda: io.BytesIO(payload)),
        declared_kind=kind,
        declared_size=declared,
        display_name=name,
    )


def write_video(path: Path, *, frames: int = 12, size: tuple[int, int] = (160, 120)) -> Path:
    width, height = size
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (width, height))
    try:
        for index in range(frames):
            frame = np.full((height, width, 3), (index * 20) % 255, dtype=np.uint8)
            writer.write(frame)
    finally:
        writer.release()
    return path


@pytest.fixture(scope="session")
def generated_video_file(tmp_path_factory) -> Path:
    """A short MJPG/AVI clip written with OpenCV."""
    return write_video(tmp_path_factory.mktemp("data") / "test_video.avi")


@pytest.fixture(scope="session")
def generated_image_file(tmp_path_factory) -> Path:
    path = tmp_path_factory.mktemp("data") / "test_image.jpg"
    image = np.zeros((48, 64, 3), dtype=np.uint8)
    image[:, :32] = (0, 128, 255)
    cv2.imwrite(str(path), image)
    return path


class GatedStream(io.RawIOBase):
    """Blocks every read until ``gate`` is set; serves one chunk, then EOF."""

    def __init__(self, reading: threading.Event, gate: threading.Event):
        self.reading = reading
        self.gate = gate
        self.served = False

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        self.reading.set()
        self.gate.wait(timeout=5)
        if self.served:
            return b""
        self.served = True
        return b"g" * 64
