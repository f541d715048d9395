from contextlib import asynccontextmanager

from fastapi import FastAPI

from image_api.config.settings import Settings
from image_api.container import build_container, needs_database
from image_api.database.connection import close_pool, init_pool
from image_api.logging.logger import Log

_WORKER_STOP_TIMEOUT_SECONDS = 10.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    owns_pool = False
    if app.state.container is None:
        if needs_database(settings):
            init_pool(settings)
            owns_pool = True
        app.state.container = build_container(settings)
    container = app.state.container
    Log.info(
        f"image-api ready (records={settings.record_store_backend}, "
        f"queue={settings.queue_backend}, blobs={settings.blob_store_backend})"
    )

    worker_pool = None
    if settings.embedded_workers > 0:
        worker_pool = container.worker_pool(settings.embedded_workers)
        worker_pool.start()

    yield

    Log.info("Shutting down")
    if worker_pool is not None:
        worker_pool.stop(timeout_seconds=_WORKER_STOP_TIMEOUT_SECONDS)
    if owns_pool:
        close_pool()
