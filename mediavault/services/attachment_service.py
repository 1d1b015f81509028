from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence
from uuid import uuid4

import structlog

from mediavault.core.config import Settings
from mediavault.core.logging import get_logger
from mediavault.core.storage import PrivateStore, get_thumbnail_store
from mediavault.ingest.copier import CopyError
from mediavault.ingest.ledger import TempFileLedger
from mediavault.ingest.progress import ProgressTracker
from mediavault.ingest.resources import ExternalResourceRef, LocalFileRef
from mediavault.ingest.results import (
    AttachmentProcessingError,
    IngestResult,
    IngestSuccess,
    ProcessedAttachment,
)
from mediavault.ingest.thumbnails import ThumbnailExtractor
from mediavault.ingest.workflow import IngestWorkflow, split_results


class AttachmentService:
    """Session-scoped entry point used by the API and CLI.

    Successful ingests are registered as provisional; the caller either
    promotes them once a message referencing them is stored, or discards
    them with :meth:`cleanup_provisional`.
    """

    def __init__(
        self,
        settings: Settings,
        store: PrivateStore,
        *,
        thumbnail_store: Optional[PrivateStore] = None,
        workflow: Optional[IngestWorkflow] = None,
        ledger: Optional[TempFileLedger] = None,
        retry: bool = True,
    ):
        self.settings = settings
        self.store = store
        self.workflow = workflow or IngestWorkflow.from_settings(settings, store)
        self.ledger = ledger or TempFileLedger(store)
        self.thumbnails = ThumbnailExtractor(
            thumbnail_store or get_thumbnail_store(settings),
            size=settings.thumbnail_size_px,
            quality=settings.thumbnail_jpeg_quality,
        )
        self.retry = retry
        self.logger = get_logger(component="attachment_service")

    @property
    def progress(self) -> ProgressTracker:
        return self.workflow.progress

    def progress_snapshot(self) -> Mapping[str, float]:
        return self.progress.snapshot()

    async def ingest_results(self, refs: Iterable[ExternalResourceRef]) -> List[IngestResult]:
        """Ingest every reference and return the mixed outcome, in input order."""
        batch = list(refs)
        with structlog.contextvars.bound_contextvars(batch_id=uuid4().hex[:12], batch_size=len(batch)):
            return list(await asyncio.gather(*(self._ingest_and_register(ref) for ref in batch)))

    async def ingest_batch(self, refs: Sequence[ExternalResourceRef]) -> List[ProcessedAttachment]:
        """Ingest all references, raising one aggregated error if any failed.

        Successful files are still registered before the error is raised,
        so a later :meth:`cleanup_provisional` removes them.
        """
        results = await self.ingest_results(refs)
        processed, failures = split_results(results)
        if failures:
            self.logger.warning("ingest_batch_failed", failed=len(failures), succeeded=len(processed))
            raise AttachmentProcessingError(failures, processed)
        self.logger.info("ingest_batch_completed", count=len(processed))
        return processed

    async def cleanup_provisional(self, file_ids: Optional[Iterable[Path]] = None) -> List[Path]:
        targets = list(file_ids) if file_ids is not None else None
        return await asyncio.to_thread(self.ledger.cleanup, targets)

    def promote(self, file_ids: Iterable[Path]) -> List[Path]:
        return self.ledger.promote(file_ids)

    async def validate_quick(self, ref: ExternalResourceRef) -> bool:
        return await self.workflow.validate_quick(ref)

    async def thumbnail(self, video: ExternalResourceRef | Path | str) -> Optional[Path]:
        """Extract a preview frame; None when the video cannot be read or decoded."""
        if isinstance(video, LocalFileRef):
            return await asyncio.to_thread(self.thumbnails.extract_frame, video.path)
        if isinstance(video, ExternalResourceRef):
            return await asyncio.to_thread(self._thumbnail_from_stream, video)
        return await asyncio.to_thread(self.thumbnails.extract_frame, video)

    def _thumbnail_from_stream(self, ref: ExternalResourceRef) -> Optional[Path]:
        # OpenCV decodes from a path; stage the stream beside the thumbnails.
        store = self.thumbnails.store
        try:
            staged = self.workflow.copier.copy(ref, store)
        except CopyError as exc:
            self.logger.info("thumbnail_unavailable", source=ref.identity, error=str(exc))
            return None
        try:
            return self.thumbnails.extract_frame(staged.path)
        finally:
            store.delete(staged.path)

    async def close(self) -> None:
        await self.cleanup_provisional()

    async def _ingest_and_register(self, ref: ExternalResourceRef) -> IngestResult:
        # Registered as each item finishes; a cancelled batch keeps its finished copies tracked.
        result = await self._ingest_one(ref)
        if isinstance(result, IngestSuccess):
            self.ledger.register(result.file_id)
        return result

    async def _ingest_one(self, ref: ExternalResourceRef) -> IngestResult:
        if not self.retry:
            return await self.workflow.ingest(ref)
        return await self.workflow.ingest_with_retry(
            ref,
            max_attempts=self.settings.retry_max_attempts,
            initial_delay=self.settings.retry_initial_delay_s,
        )


__all__ = ["AttachmentService"]
