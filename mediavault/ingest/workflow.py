from __future__ import annotations

import asyncio
import threading
import time
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from mediavault.core.config import Settings
from mediavault.core.logging import get_logger
from mediavault.core.storage import PrivateStore

from .copier import BufferedCopier, CopiedFile, CopyCancelled, CopyError
from .disk_space import DiskSpaceGuard
from .progress import ProgressTracker
from .resources import ExternalResourceRef
from .results import FailureReason, IngestFailure, IngestResult, IngestSuccess, ProcessedAttachment
from .retry import RetryExhausted, run_with_retry
from .validator import is_acceptable, is_size_acceptable, kind_from_path

__all__ = ["IngestWorkflow", "DEFAULT_MAX_FILE_SIZE", "split_results"]

DEFAULT_MAX_FILE_SIZE = 25 * 1024 * 1024
_MIB = 1024 * 1024


class _TransientCopyFailure(Exception):
    def __init__(self, failure: IngestFailure):
        self.failure = failure
        super().__init__(failure.message)


class _CopyHandoff:
    """Hands a finished copy to the awaiting coroutine, or to nobody once it was cancelled.

    Both sides take the same lock, so a copy that completes while the
    coroutine is being cancelled is deleted by exactly one of them.
    """

    def __init__(self) -> None:
        self.cancel_event = threading.Event()
        self._lock = threading.Lock()
        self._delivered: Optional[CopiedFile] = None

    def deliver(self, copied: CopiedFile) -> bool:
        with self._lock:
            if self.cancel_event.is_set():
                return False
            self._delivered = copied
            return True

    def cancel(self) -> Optional[CopiedFile]:
        with self._lock:
            self.cancel_event.set()
            delivered, self._delivered = self._delivered, None
            return delivered


class IngestWorkflow:
    """validate -> headroom -> copy -> verify, for one external reference at a time.

    Successful files are handed back to the caller; registering them with a
    :class:`~mediavault.ingest.ledger.TempFileLedger` is the caller's job.
    """

    def __init__(
        self,
        store: PrivateStore,
        *,
        copier: Optional[BufferedCopier] = None,
        guard: Optional[DiskSpaceGuard] = None,
        progress: Optional[ProgressTracker] = None,
        max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE,
        max_concurrency: int = 4,
    ):
        self.store = store
        self.copier = copier or BufferedCopier()
        self.guard = guard or DiskSpaceGuard()
        self.progress = progress or ProgressTracker()
        self.max_file_size_bytes = max_file_size_bytes
        self._slots = asyncio.Semaphore(max_concurrency)
        self.logger = get_logger(component="ingest_workflow")

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: PrivateStore,
        progress: Optional[ProgressTracker] = None,
    ) -> "IngestWorkflow":
        return cls(
            store,
            copier=BufferedCopier(settings.copy_buffer_size, settings.progress_step),
            guard=DiskSpaceGuard(settings.disk_space_multiplier),
            progress=progress,
            max_file_size_bytes=settings.max_file_size_bytes,
            max_concurrency=settings.max_concurrent_ingests,
        )

    async def ingest(self, ref: ExternalResourceRef) -> IngestResult:
        async with self._slots:
            return await self._ingest(ref)

    async def ingest_all(self, refs: Iterable[ExternalResourceRef]) -> List[IngestResult]:
        """Attempt every reference; results keep the input order."""
        return list(await asyncio.gather(*(self.ingest(ref) for ref in refs)))

    async def ingest_with_retry(
        self,
        ref: ExternalResourceRef,
        *,
        max_attempts: int = 3,
        initial_delay: float = 1.0,
    ) -> IngestResult:
        """Like :meth:`ingest`, retrying copy failures with exponential backoff.

        Validation rejections are final and are not retried.
        """

        async def attempt() -> IngestResult:
            result = await self.ingest(ref)
            if isinstance(result, IngestFailure) and result.reason is FailureReason.copy_failed:
                raise _TransientCopyFailure(result)
            return result

        try:
            return await run_with_retry(
                attempt,
                max_attempts=max_attempts,
                initial_delay=initial_delay,
                retry_on=(_TransientCopyFailure,),
            )
        except RetryExhausted as exc:
            if not isinstance(exc.last_error, _TransientCopyFailure):
                raise
            return exc.last_error.failure

    async def validate_quick(self, ref: ExternalResourceRef) -> bool:
        """Run the pre-copy gates only. Nothing is opened or written."""
        meta = ref.metadata()
        if not is_acceptable(meta.declared_kind):
            return False
        if not is_size_acceptable(meta.declared_size, self.max_file_size_bytes):
            return False
        return await asyncio.to_thread(self.guard.has_headroom, self.store, meta.declared_size)

    async def _ingest(self, ref: ExternalResourceRef) -> IngestResult:
        started = time.monotonic()
        log = self.logger.bind(source=ref.identity)

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        meta = ref.metadata()
        if not is_acceptable(meta.declared_kind):
            log.warning("ingest_rejected", reason="unsupported_kind", declared_kind=meta.declared_kind, elapsed_ms=elapsed_ms())
            return IngestFailure(FailureReason.unsupported_kind, f"Unsupported file type: {meta.declared_kind}", ref)

        if not is_size_acceptable(meta.declared_size, self.max_file_size_bytes):
            size_mb = (meta.declared_size or 0) // _MIB
            log.warning("ingest_rejected", reason="too_large", declared_size=meta.declared_size, elapsed_ms=elapsed_ms())
            return IngestFailure(FailureReason.too_large, f"File too large: {size_mb}MB", ref)

        if not await asyncio.to_thread(self.guard.has_headroom, self.store, meta.declared_size):
            log.warning("ingest_rejected", reason="insufficient_space", elapsed_ms=elapsed_ms())
            return IngestFailure(FailureReason.insufficient_space, "Insufficient disk space", ref)

        loop = asyncio.get_running_loop()
        handoff = _CopyHandoff()

        def publish(fraction: float) -> None:
            if not handoff.cancel_event.is_set():
                self.progress.update(ref.identity, fraction)

        def on_progress(fraction: float) -> None:
            loop.call_soon_threadsafe(publish, fraction)

        def run_copy() -> CopiedFile:
            copied = self.copier.copy(
                ref,
                self.store,
                on_progress=on_progress,
                cancel_event=handoff.cancel_event,
            )
            if not handoff.deliver(copied):
                self._discard(copied.path)
                raise CopyCancelled("Copy cancelled")
            return copied

        self.progress.start(ref.identity)
        try:
            copied = await asyncio.to_thread(run_copy)
        except CopyError as exc:
            log.error("ingest_copy_failed", error=str(exc), elapsed_ms=elapsed_ms())
            return IngestFailure(FailureReason.copy_failed, str(exc), ref)
        except asyncio.CancelledError:
            # A copy still running removes its own file; one already delivered is removed here.
            orphan = handoff.cancel()
            if orphan is not None:
                self._discard(orphan.path)
            log.info("ingest_cancelled", elapsed_ms=elapsed_ms())
            raise
        finally:
            self.progress.finish(ref.identity)

        kind = kind_from_path(copied.path)
        log.info(
            "ingest_succeeded",
            target=copied.path.name,
            size_bytes=copied.byte_size,
            kind=kind.value,
            elapsed_ms=elapsed_ms(),
        )
        return IngestSuccess(file_id=copied.path, byte_size=copied.byte_size, kind=kind, ref=ref)

    def _discard(self, path: Path) -> None:
        try:
            self.store.delete(path)
        except OSError as exc:
            self.logger.warning("cancelled_copy_cleanup_failed", target=path.name, error=str(exc))


def split_results(results: Sequence[IngestResult]) -> Tuple[List[ProcessedAttachment], List[IngestFailure]]:
    processed: List[ProcessedAttachment] = []
    failures: List[IngestFailure] = []
    for result in results:
        if isinstance(result, IngestSuccess):
            processed.append(ProcessedAttachment(file_id=result.file_id, kind=result.kind))
        else:
            failures.append(result)
    return processed, failures
