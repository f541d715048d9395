from abc import ABC, abstractmethod

from image_api.queue.models import ProcessingJob


class BaseJobQueue(ABC):
    """Contract for job queues: enqueue, receive, then exactly one of
    ack / redeliver / dead_letter per delivery."""

    @abstractmethod
    def enqueue(self, job: ProcessingJob) -> ProcessingJob:
        """Add a job and return it with its receipt assigned."""

    @abstractmethod
    def receive(self, timeout_seconds: float = 0.0) -> ProcessingJob | None:
        """Take the next available job, waiting up to ``timeout_seconds``.

        A received job stays invisible to other consumers until it is
        acknowledged, redelivered or dead-lettered. Deliveries that are
        never settled become visible again with ``attempt`` incremented.
        """

    @abstractmethod
    def ack(self, job: ProcessingJob) -> None:
        """Remove a successfully handled job."""

    @abstractmethod
    def redeliver(
        self, job: ProcessingJob, delay_seconds: float = 0.0, count_attempt: bool = True
    ) -> None:
        """Make the job available again after ``delay_seconds``.

        The attempt is incremented unless ``count_attempt`` is False, which
        is used for deliveries deferred without being tried.
        """

    @abstractmethod
    def dead_letter(self, job: ProcessingJob, reason: str) -> None:
        """Remove the job from active processing and keep it for inspection."""
