from image_api.config.settings import Settings
from image_api.container import build_container, needs_database
from image_api.database.connection import close_pool, init_pool
from image_api.logging.logger import Log


def main() -> None:
    """Worker entry point: initialize pool -> build dependencies -> run workers."""
    settings = Settings()
    Log.configure(settings.log_level, settings.app_env)
    if settings.queue_backend.lower() == "memory":
        Log.warning("Memory queue is process-local; run workers inside the API process instead")
    if needs_database(settings):
        init_pool(settings)

    try:
        container = build_container(settings)
        container.worker_pool().run()
    finally:
        close_pool()


if __name__ == "__main__":
    main()
