from fastapi import FastAPI

from image_api.api.error_handlers import (
    ingestion_exception_handler,
    status_transition_handler,
    store_exception_handler,
)
from image_api.api.lifespan import lifespan
from image_api.api.middleware import RequestLoggingMiddleware
from image_api.api.routes import router as image_router
from image_api.config.settings import Settings
from image_api.container import Container
from image_api.ingestion.exceptions import IngestionError
from image_api.processor.exceptions import InvalidStatusTransitionError
from image_api.storage.exceptions import StoreError


def create_app(settings: Settings | None = None, container: Container | None = None) -> FastAPI:
    """Build the HTTP application.

    Without a container, the lifespan builds one from settings on startup.
    """
    if settings is None:
        settings = container.settings if container is not None else Settings()

    app = FastAPI(
        title="image-api",
        description="Image ingestion with deferred EXIF, IPTC and C2PA extraction",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.container = container

    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(IngestionError, ingestion_exception_handler)
    app.add_exception_handler(InvalidStatusTransitionError, status_transition_handler)
    app.add_exception_handler(StoreError, store_exception_handler)

    app.include_router(image_router)

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "record_store_backend": settings.record_store_backend,
            "queue_backend": settings.queue_backend,
            "embedded_workers": settings.embedded_workers,
        }

    return app
