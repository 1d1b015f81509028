from __future__ import annotations

import os
import shutil
import tempfile
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from .config import Settings


@dataclass(slots=True)
class StorageStat:
    size_bytes: int


class PrivateStore(ABC):
    """Flat pool of app-private files addressed by their path."""

    root: Path

    @abstractmethod
    def create_unique_file(self, extension: str, *, prefix: str = "media_") -> Path: ...

    @abstractmethod
    def delete(self, file_id: Path) -> bool: ...

    @abstractmethod
    def exists(self, file_id: Path) -> bool: ...

    @abstractmethod
    def stat(self, file_id: Path) -> StorageStat: ...

    @abstractmethod
    def available_bytes(self) -> int: ...

    @abstractmethod
    def list(self) -> list[Path]: ...


class LocalPrivateStore(PrivateStore):
    """Filesystem-backed private store rooted at a single directory."""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, file_id: Path) -> Path:
        path = Path(file_id)
        if not path.is_absolute():
            path = self.root / path
        path = path.resolve()
        if path.parent != self.root:
            raise ValueError(f"File is outside the private store: {file_id}")
        return path

    def create_unique_file(self, extension: str, *, prefix: str = "media_") -> Path:
        stamp = int(time.time() * 1000)
        suffix = f".{extension}" if extension else ""
        fd, name = tempfile.mkstemp(prefix=f"{prefix}{stamp}_", suffix=suffix, dir=self.root)
        os.close(fd)
        return Path(name)

    def delete(self, file_id: Path) -> bool:
        path = self._resolve(file_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True

    def exists(self, file_id: Path) -> bool:
        return self._resolve(file_id).is_file()

    def stat(self, file_id: Path) -> StorageStat:
        path = self._resolve(file_id)
        if not path.is_file():
            raise FileNotFoundError(str(file_id))
        return StorageStat(size_bytes=path.stat().st_size)

    def available_bytes(self) -> int:
        return shutil.disk_usage(self.root).free

    def list(self) -> list[Path]:
        return sorted(p for p in self.root.iterdir() if p.is_file())


def get_store(settings: Settings) -> LocalPrivateStore:
    return LocalPrivateStore(root=Path(settings.storage_root))


def get_thumbnail_store(settings: Settings) -> LocalPrivateStore:
    return LocalPrivateStore(root=Path(settings.resolved_thumbnail_root))


__all__ = [
    "PrivateStore",
    "LocalPrivateStore",
    "StorageStat",
    "get_store",
    "get_thumbnail_store",
]
