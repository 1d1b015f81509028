from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from mediavault.api.v1 import get_api_router
from mediavault.catalog.aggregator import MediaCatalogAggregator
from mediavault.catalog.index import SqlMediaIndex
from mediavault.core.config import get_settings
from mediavault.core.db import create_engine, create_schema, create_session_factory
from mediavault.core.logging import configure_logging, get_logger, level_from_name
from mediavault.core.storage import get_store, get_thumbnail_store
from mediavault.services.attachment_service import AttachmentService

logger = get_logger(component="app")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(level=level_from_name(settings.log_level))
    store = get_store(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await create_schema(engine)
        service = AttachmentService(settings, store, thumbnail_store=get_thumbnail_store(settings))
        app.state.settings = settings
        app.state.store = store
        app.state.engine = engine
        app.state.session_factory = session_factory
        app.state.attachment_service = service
        app.state.catalog = MediaCatalogAggregator(
            SqlMediaIndex(session_factory),
            default_limit=settings.recent_media_limit,
        )
        logger.info("app_started", storage_root=str(store.root), environment=settings.environment_lower)
        try:
            yield
        finally:
            await service.close()
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.include_router(get_api_router())
    return app


__all__ = ["create_app"]
