from dataclasses import dataclass

from image_api.config.settings import Settings
from image_api.database.repositories.base import BaseImageRepository
from image_api.database.repositories.factory import RecordStoreFactory
from image_api.ingestion.service import ImageService, build_image_service
from image_api.processor.aggregator import MetadataAggregator, build_aggregator
from image_api.processor.orchestrator import PipelineOrchestrator
from image_api.processor.retry_policy import RetryPolicy
from image_api.queue.base import BaseJobQueue
from image_api.queue.factory import JobQueueFactory
from image_api.storage.base import BaseBlobStore
from image_api.storage.factory import BlobStoreFactory
from image_api.worker.job_runner import JobRunner
from image_api.worker.worker import WorkerPool


@dataclass
class Container:
    """Wired application components shared by the API and the workers."""

    settings: Settings
    records: BaseImageRepository
    blob_store: BaseBlobStore
    queue: BaseJobQueue
    aggregator: MetadataAggregator
    orchestrator: PipelineOrchestrator
    job_runner: JobRunner
    image_service: ImageService

    def worker_pool(self, concurrency: int | None = None) -> WorkerPool:
        return WorkerPool(self.queue, self.job_runner, self.settings, concurrency)


def needs_database(settings: Settings) -> bool:
    return "postgres" in (
        settings.record_store_backend.lower(),
        settings.queue_backend.lower(),
    )


def build_container(
    settings: Settings,
    records: BaseImageRepository | None = None,
    blob_store: BaseBlobStore | None = None,
    queue: BaseJobQueue | None = None,
    aggregator: MetadataAggregator | None = None,
) -> Container:
    """Build all components from settings; any of the stores can be injected."""
    records = records or RecordStoreFactory.create(settings)
    blob_store = blob_store or BlobStoreFactory.create(settings)
    queue = queue or JobQueueFactory.create(settings)
    aggregator = aggregator or build_aggregator(settings)
    orchestrator = PipelineOrchestrator(
        records=records,
        blob_store=blob_store,
        queue=queue,
        aggregator=aggregator,
        settings=settings,
    )
    job_runner = JobRunner(orchestrator, queue, RetryPolicy.from_settings(settings))
    image_service = build_image_service(settings, records, blob_store, queue, orchestrator)
    return Container(
        settings=settings,
        records=records,
        blob_store=blob_store,
        queue=queue,
        aggregator=aggregator,
        orchestrator=orchestrator,
        job_runner=job_runner,
        image_service=image_service,
    )
