from __future__ import annotations

import io
from typing import BinaryIO, List
from uuid import uuid4

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from mediavault.api import deps
from mediavault.core.config import Settings
from mediavault.ingest.resources import ExternalResourceRef, StreamRef, resolve_source_uri
from mediavault.ingest.results import AttachmentProcessingError, IngestResult, IngestSuccess
from mediavault.services.attachment_service import AttachmentService

from . import schemas


router = APIRouter(prefix="/attachments", tags=["attachments"])


def _upload_ref(upload: UploadFile) -> StreamRef:
    def opener() -> BinaryIO:
        # The copier closes the stream it is given.
        upload.file.seek(0)
        return io.BytesIO(upload.file.read())

    return StreamRef(
        f"upload:{uuid4().hex}:{upload.filename or ''}",
        opener,
        declared_kind=upload.content_type,
        declared_size=upload.size,
        display_name=upload.filename,
    )


def _to_result_model(result: IngestResult) -> schemas.IngestResultModel:
    if isinstance(result, IngestSuccess):
        return schemas.IngestResultModel(
            source=result.ref.identity,
            ok=True,
            file_id=result.file_id.name,
            byte_size=result.byte_size,
            kind=result.kind.value,
        )
    return schemas.IngestResultModel(
        source=result.ref.identity,
        ok=False,
        reason=result.reason.value,
        message=result.message,
    )


def _aggregated_error(exc: AttachmentProcessingError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        detail={
            "message": str(exc),
            "failures": [
                {"source": failure.ref.identity, "reason": failure.reason.value, "message": failure.message}
                for failure in exc.failures
            ],
            "processed": [item.file_id.name for item in exc.processed],
        },
    )


async def _ingest(
    service: AttachmentService,
    refs: List[ExternalResourceRef],
    require_all: bool,
) -> schemas.AttachmentsResponse | schemas.IngestResultsResponse:
    if not require_all:
        results = await service.ingest_results(refs)
        return schemas.IngestResultsResponse(results=[_to_result_model(result) for result in results])
    try:
        processed = await service.ingest_batch(refs)
    except AttachmentProcessingError as exc:
        raise _aggregated_error(exc) from exc
    return schemas.AttachmentsResponse(
        attachments=[
            schemas.ProcessedAttachmentModel(file_id=item.file_id.name, kind=item.kind.value) for item in processed
        ]
    )


@router.post(
    "",
    response_model=schemas.AttachmentsResponse | schemas.IngestResultsResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest uploaded files into the private store",
)
async def upload_attachments(
    service: deps.ServiceDependency,
    files: List[UploadFile] = File(...),
    require_all: bool = True,
) -> schemas.AttachmentsResponse | schemas.IngestResultsResponse:
    return await _ingest(service, [_upload_ref(upload) for upload in files], require_all)


@router.post(
    "/import",
    response_model=schemas.AttachmentsResponse | schemas.IngestResultsResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest files referenced by URI",
)
async def import_attachments(
    payload: schemas.ImportRequest,
    service: deps.ServiceDependency,
    settings: Settings = Depends(deps.get_app_settings),
) -> schemas.AttachmentsResponse | schemas.IngestResultsResponse:
    try:
        refs: List[ExternalResourceRef] = [
            resolve_source_uri(uri, settings.allowed_source_uri_schemes) for uri in payload.source_uris
        ]
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return await _ingest(service, refs, payload.require_all)


@router.post("/promote", response_model=schemas.PromoteResponse)
async def promote_attachments(
    payload: schemas.FileIdsRequest,
    service: deps.ServiceDependency,
    store: deps.StoreDependency,
) -> schemas.PromoteResponse:
    file_ids = [deps.resolve_file_id(store, name) for name in payload.file_ids]
    promoted = service.promote(file_ids)
    return schemas.PromoteResponse(promoted=[path.name for path in promoted])


@router.post("/cleanup", response_model=schemas.CleanupResponse)
async def cleanup_attachments(
    service: deps.ServiceDependency,
    store: deps.StoreDependency,
    payload: schemas.CleanupRequest | None = None,
) -> schemas.CleanupResponse:
    file_ids = None
    if payload is not None and payload.file_ids is not None:
        file_ids = [deps.resolve_file_id(store, name) for name in payload.file_ids]
    removed = await service.cleanup_provisional(file_ids)
    return schemas.CleanupResponse(removed=[path.name for path in removed])


@router.get("/progress", response_model=schemas.ProgressResponse)
async def ingest_progress(service: deps.ServiceDependency) -> schemas.ProgressResponse:
    return schemas.ProgressResponse(progress=dict(service.progress_snapshot()))


@router.post("/thumbnail", response_model=schemas.ThumbnailResponse)
async def video_thumbnail(
    payload: schemas.ThumbnailRequest,
    service: deps.ServiceDependency,
    settings: Settings = Depends(deps.get_app_settings),
) -> schemas.ThumbnailResponse:
    try:
        ref = resolve_source_uri(payload.source_uri, settings.allowed_source_uri_schemes)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    thumbnail = await service.thumbnail(ref)
    return schemas.ThumbnailResponse(thumbnail=thumbnail.name if thumbnail else None)


__all__ = ["router"]
