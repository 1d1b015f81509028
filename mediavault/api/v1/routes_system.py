from __future__ import annotations

import asyncio

from fastapi import APIRouter

from mediavault.api import deps

from .schemas import HealthResponse


router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse, summary="Liveness probe with private store status")
async def health(store: deps.StoreDependency, service: deps.ServiceDependency) -> HealthResponse:
    try:
        free_bytes: int | None = await asyncio.to_thread(store.available_bytes)
    except OSError:
        free_bytes = None
    return HealthResponse(
        status="ok" if free_bytes is not None else "degraded",
        free_bytes=free_bytes,
        provisional_files=len(service.ledger),
        copies_in_flight=len(service.progress),
    )


__all__ = ["router"]
