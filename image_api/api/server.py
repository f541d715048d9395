import uvicorn

from image_api.api.app import create_app
from image_api.config.settings import Settings
from image_api.logging.logger import Log


def main() -> None:
    """HTTP entry point; workers run here only when embedded_workers > 0."""
    settings = Settings()
    Log.configure(settings.log_level, settings.app_env)
    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        access_log=False,
    )


if __name__ == "__main__":
    main()
