import itertools
import threading
import time
from dataclasses import dataclass, replace

from image_api.queue.base import BaseJobQueue
from image_api.queue.models import ProcessingJob


@dataclass
class _Delivery:
    job: ProcessingJob
    available_at: float
    locked_at: float | None = None


@dataclass(frozen=True)
class DeadLetter:
    job: ProcessingJob
    reason: str


class InMemoryJobQueue(BaseJobQueue):
    """Thread-safe in-process queue with visibility timeout and dead letters."""

    def __init__(self, visibility_timeout_seconds: float = 300.0) -> None:
        self._visibility_timeout = visibility_timeout_seconds
        self._deliveries: dict[int, _Delivery] = {}
        self._dead_letters: list[DeadLetter] = []
        self._ids = itertools.count(1)
        self._cond = threading.Condition()

    @property
    def dead_letters(self) -> list[DeadLetter]:
        with self._cond:
            return list(self._dead_letters)

    def pending_count(self) -> int:
        """Jobs waiting or in flight (not yet settled)."""
        with self._cond:
            return len(self._deliveries)

    def enqueue(self, job: ProcessingJob) -> ProcessingJob:
        with self._cond:
            receipt = next(self._ids)
            job = replace(job, receipt=receipt)
            self._deliveries[receipt] = _Delivery(job=job, available_at=time.monotonic())
            self._cond.notify()
        return job

    def receive(self, timeout_seconds: float = 0.0) -> ProcessingJob | None:
        deadline = time.monotonic() + timeout_seconds
        with self._cond:
            while True:
                now = time.monotonic()
                delivery = self._next_available(now)
                if delivery is not None:
                    delivery.locked_at = now
                    return delivery.job
                remaining = deadline - now
                if remaining <= 0:
                    return None
                self._cond.wait(timeout=min(remaining, self._soonest_wait(now)))

    def ack(self, job: ProcessingJob) -> None:
        with self._cond:
            self._deliveries.pop(self._receipt(job), None)

    def redeliver(
        self, job: ProcessingJob, delay_seconds: float = 0.0, count_attempt: bool = True
    ) -> None:
        with self._cond:
            delivery = self._deliveries.get(self._receipt(job))
            if delivery is None:
                return
            attempt = job.attempt + 1 if count_attempt else job.attempt
            delivery.job = replace(delivery.job, attempt=attempt)
            delivery.available_at = time.monotonic() + delay_seconds
            delivery.locked_at = None
            self._cond.notify()

    def dead_letter(self, job: ProcessingJob, reason: str) -> None:
        with self._cond:
            delivery = self._deliveries.pop(self._receipt(job), None)
            if delivery is not None:
                self._dead_letters.append(DeadLetter(job=delivery.job, reason=reason))

    def _next_available(self, now: float) -> _Delivery | None:
        best: _Delivery | None = None
        for delivery in self._deliveries.values():
            if delivery.locked_at is not None:
                if now - delivery.locked_at < self._visibility_timeout:
                    continue
                # Never settled: the consumer is presumed dead.
                delivery.job = replace(delivery.job, attempt=delivery.job.attempt + 1)
                delivery.locked_at = None
            if delivery.available_at > now:
                continue
            if best is None or delivery.available_at < best.available_at:
                best = delivery
        return best

    def _soonest_wait(self, now: float) -> float:
        waits = [
            d.available_at - now
            for d in self._deliveries.values()
            if d.locked_at is None and d.available_at > now
        ]
        return max(min(waits), 0.001) if waits else self._visibility_timeout

    @staticmethod
    def _receipt(job: ProcessingJob) -> int:
        if not isinstance(job.receipt, int):
            raise ValueError(f"Job for image {job.image_id} has no in-memory receipt")
        return job.receipt
