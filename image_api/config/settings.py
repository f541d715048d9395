from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "image_api"
    db_username: str = "image_api"
    db_password: str = "secret"

    record_store_backend: str = "postgres"
    queue_backend: str = "postgres"
    blob_store_backend: str = "local"
    blob_root: str = "/app/files"

    max_job_attempts: int = 3
    job_poll_interval_seconds: float = 5.0
    job_timeout_seconds: float = 30.0
    extractor_timeout_seconds: float = 5.0
    retry_backoff_base_seconds: float = 2.0
    retry_backoff_max_seconds: float = 60.0
    claim_stale_after_seconds: float = 120.0
    queue_visibility_timeout_seconds: float = 300.0

    worker_concurrency: int = 4
    embedded_workers: int = 0

    max_upload_bytes: int = 50 * 1024 * 1024
    allowed_mime_types: list[str] = [
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/tiff",
        "image/gif",
    ]
    c2pa_trusted_issuers: list[str] = []

    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @model_validator(mode="after")
    def _check_claim_expires_before_redelivery(self) -> "Settings":
        # A job redelivered after a crash must find the abandoned claim stale.
        if self.claim_stale_after_seconds >= self.queue_visibility_timeout_seconds:
            raise ValueError(
                "claim_stale_after_seconds must be lower than "
                "queue_visibility_timeout_seconds"
            )
        return self
