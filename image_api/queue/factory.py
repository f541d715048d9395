from image_api.config.settings import Settings
from image_api.queue.base import BaseJobQueue
from image_api.queue.memory_queue import InMemoryJobQueue
from image_api.queue.postgres_queue import PostgresJobQueue


class JobQueueFactory:
    """Creates the configured job queue."""

    ADAPTERS: dict[str, type[BaseJobQueue]] = {
        "postgres": PostgresJobQueue,
        "memory": InMemoryJobQueue,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseJobQueue:
        backend = settings.queue_backend.lower()
        adapter_cls = cls.ADAPTERS.get(backend)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown queue backend '{backend}'. Choose from: {list(cls.ADAPTERS)}"
            )
        return adapter_cls(  # type: ignore[call-arg]
            visibility_timeout_seconds=settings.queue_visibility_timeout_seconds
        )
