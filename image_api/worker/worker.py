import threading

from image_api.config.settings import Settings
from image_api.logging.logger import Log
from image_api.queue.base import BaseJobQueue
from image_api.queue.models import ProcessingJob
from image_api.worker.job_runner import JobRunner


class Worker:
    """Poll loop: receive -> dispatch -> sleep when idle."""

    def __init__(
        self,
        queue: BaseJobQueue,
        job_runner: JobRunner,
        settings: Settings,
        name: str = "worker",
    ) -> None:
        self._queue = queue
        self._job_runner = job_runner
        self._settings = settings
        self._name = name

    def run(
        self,
        max_jobs: int | None = None,
        stop_event: threading.Event | None = None,
    ) -> int:
        """Main poll loop. Runs until interrupted or ``stop_event`` is set.

        If max_jobs is set, stop after processing that many jobs (for testing).
        Returns the number of jobs processed.
        """
        stop_event = stop_event or threading.Event()
        Log.info(f"{self._name} started, polling for jobs")
        jobs_done = 0
        try:
            while not stop_event.is_set():
                if max_jobs is not None and jobs_done >= max_jobs:
                    break
                job = self._try_receive_job()
                if job:
                    self._dispatch(job)
                    jobs_done += 1
                else:
                    Log.debug(f"{self._name}: no jobs available, sleeping")
                    stop_event.wait(self._settings.job_poll_interval_seconds)
        except KeyboardInterrupt:
            Log.info(f"{self._name} shutting down gracefully")
        return jobs_done

    def _try_receive_job(self) -> ProcessingJob | None:
        """Attempt to take the next job. Gracefully handle queue errors."""
        try:
            return self._queue.receive()
        except Exception as exc:
            Log.warning(f"{self._name}: queue error, will retry: {exc}")
            return None

    def _dispatch(self, job: ProcessingJob) -> None:
        try:
            self._job_runner.run(job)
        except Exception:
            # The delivery stays unsettled and comes back after the visibility timeout.
            Log.exception(f"{self._name}: could not settle job for image {job.image_id}")


class WorkerPool:
    """Runs several workers on threads against one shared queue."""

    def __init__(
        self,
        queue: BaseJobQueue,
        job_runner: JobRunner,
        settings: Settings,
        concurrency: int | None = None,
    ) -> None:
        self._queue = queue
        self._job_runner = job_runner
        self._settings = settings
        self._concurrency = concurrency or settings.worker_concurrency
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        self._stop_event.clear()
        for index in range(self._concurrency):
            worker = Worker(
                self._queue, self._job_runner, self._settings, name=f"worker-{index + 1}"
            )
            thread = threading.Thread(
                target=worker.run,
                kwargs={"stop_event": self._stop_event},
                name=f"worker-{index + 1}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        Log.info(f"Started {self._concurrency} worker(s)")

    def stop(self, timeout_seconds: float | None = None) -> None:
        self._stop_event.set()
        for thread in self._threads:
            thread.join(timeout=timeout_seconds)
        self._threads.clear()
        Log.info("Worker pool stopped")

    def run(self) -> None:
        """Start the workers and block until interrupted."""
        self.start()
        try:
            while not self._stop_event.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            Log.info("Worker pool shutting down gracefully")
        finally:
            self.stop()
