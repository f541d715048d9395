from image_api.config.settings import Settings
from image_api.database.repositories.base import BaseImageRepository
from image_api.database.repositories.image_repository import ImageRepository
from image_api.database.repositories.memory_image_repository import InMemoryImageRepository


class RecordStoreFactory:
    """Creates the configured image record store."""

    ADAPTERS: dict[str, type[BaseImageRepository]] = {
        "postgres": ImageRepository,
        "memory": InMemoryImageRepository,
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseImageRepository:
        backend = settings.record_store_backend.lower()
        adapter_cls = cls.ADAPTERS.get(backend)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown record store backend '{backend}'. Choose from: {list(cls.ADAPTERS)}"
            )
        return adapter_cls()
