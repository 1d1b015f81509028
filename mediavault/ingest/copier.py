from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from mediavault.core.logging import get_logger
from mediavault.core.storage import PrivateStore

from .resources import ExternalResourceRef
from .validator import extension_for

__all__ = [
    "BUFFER_SIZE",
    "PROGRESS_STEP",
    "BufferedCopier",
    "CopiedFile",
    "CopyCancelled",
    "CopyError",
    "ProgressCallback",
]

BUFFER_SIZE = 32 * 1024
PROGRESS_STEP = 0.25

ProgressCallback = Callable[[float], None]


class CopyError(Exception):
    """Streaming a resource into the private store failed. No partial file remains."""


class CopyCancelled(CopyError):
    """The copy was abandoned before the source was exhausted."""


@dataclass(slots=True, frozen=True)
class CopiedFile:
    path: Path
    byte_size: int


class BufferedCopier:
    """Streams an external resource into a new uniquely named private file."""

    def __init__(self, buffer_size: int = BUFFER_SIZE, progress_step: float = PROGRESS_STEP):
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self.buffer_size = buffer_size
        self.progress_step = progress_step
        self.logger = get_logger(component="buffered_copier")

    def copy(
        self,
        ref: ExternalResourceRef,
        store: PrivateStore,
        *,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CopiedFile:
        """Copy ``ref`` into ``store`` and return the verified destination.

        Raises:
            CopyError: On any source or destination failure, on cancellation,
                or when the result is empty. The destination file is deleted
                before the error propagates.
        """
        started = time.monotonic()
        meta = ref.metadata()
        extension = extension_for(meta.display_name, meta.declared_kind)
        try:
            target = store.create_unique_file(extension)
        except OSError as exc:
            raise CopyError(f"Copy failed: {exc}") from exc

        completed = False
        try:
            try:
                with ref.open() as source, target.open("wb") as sink:
                    copied = self._pump(source, sink, meta.declared_size, on_progress, cancel_event)
                    sink.flush()
            except CopyError:
                raise
            except Exception as exc:
                self.logger.error("copy_failed", source=ref.identity, error=str(exc))
                raise CopyError(f"Copy failed: {exc}") from exc

            if not target.exists() or target.stat().st_size == 0:
                self.logger.error("copy_verification_failed", source=ref.identity, target=target.name)
                raise CopyError("Failed to copy file")
            completed = True
        finally:
            if not completed:
                self._discard(store, target)

        self.logger.debug(
            "copy_completed",
            source=ref.identity,
            target=target.name,
            size_kb=copied // 1024,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        return CopiedFile(path=target, byte_size=target.stat().st_size)

    def _pump(
        self,
        source: BinaryIO,
        sink: BinaryIO,
        total_size: Optional[int],
        on_progress: Optional[ProgressCallback],
        cancel_event: Optional[threading.Event],
    ) -> int:
        copied = 0
        last_checkpoint = 0.0
        report = bool(total_size and total_size > 0)
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise CopyCancelled("Copy cancelled")
            chunk = source.read(self.buffer_size)
            if not chunk:
                break
            sink.write(chunk)
            copied += len(chunk)
            if report:
                fraction = min(copied / total_size, 1.0)
                if fraction >= last_checkpoint + self.progress_step:
                    last_checkpoint = fraction
                    self.logger.debug("copy_progress", percent=int(fraction * 100))
                    if on_progress is not None:
                        on_progress(fraction)
        return copied

    def _discard(self, store: PrivateStore, target: Path) -> None:
        try:
            store.delete(target)
        except OSError as exc:
            self.logger.warning("partial_file_cleanup_failed", target=str(target), error=str(exc))
