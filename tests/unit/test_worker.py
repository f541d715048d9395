import threading
import time
from unittest.mock import MagicMock, patch

from image_api.queue.memory_queue import InMemoryJobQueue
from image_api.queue.models import ProcessingJob
from image_api.worker.worker import Worker, WorkerPool


def _make_worker() -> tuple[Worker, MagicMock, MagicMock]:
    """Create a Worker with mocked dependencies."""
    mock_queue = MagicMock()
    mock_runner = MagicMock()
    settings = MagicMock(job_poll_interval_seconds=1)
    worker = Worker(mock_queue, mock_runner, settings)
    return worker, mock_queue, mock_runner


def _make_job(image_id: str = "img-1") -> ProcessingJob:
    return ProcessingJob(image_id=image_id, blob_ref="a" * 32, receipt=1)


class TestWorkerDispatch:
    def test_dispatches_job_to_runner(self) -> None:
        worker, _queue, mock_runner = _make_worker()
        job = _make_job()

        with patch.object(worker, "_try_receive_job", side_effect=[job, KeyboardInterrupt]):
            worker.run()

        mock_runner.run.assert_called_once_with(job)

    def test_dispatches_multiple_jobs(self) -> None:
        worker, _queue, mock_runner = _make_worker()

        with patch.object(
            worker,
            "_try_receive_job",
            side_effect=[_make_job("a"), _make_job("b"), KeyboardInterrupt],
        ):
            worker.run()

        assert mock_runner.run.call_count == 2

    def test_runner_exception_does_not_stop_worker(self) -> None:
        worker, _queue, mock_runner = _make_worker()
        mock_runner.run.side_effect = [RuntimeError("settle failed"), None]

        with patch.object(
            worker,
            "_try_receive_job",
            side_effect=[_make_job("a"), _make_job("b"), KeyboardInterrupt],
        ):
            worker.run()

        assert mock_runner.run.call_count == 2


class TestWorkerIdle:
    def test_waits_poll_interval_when_no_job(self) -> None:
        worker, _queue, _runner = _make_worker()
        stop_event = MagicMock()
        stop_event.is_set.return_value = False

        with patch.object(worker, "_try_receive_job", side_effect=[None, KeyboardInterrupt]):
            worker.run(stop_event=stop_event)

        stop_event.wait.assert_called_once_with(1)

    def test_queue_error_is_treated_as_idle(self) -> None:
        worker, mock_queue, mock_runner = _make_worker()
        mock_queue.receive.side_effect = RuntimeError("connection lost")

        assert worker._try_receive_job() is None
        mock_runner.run.assert_not_called()


class TestWorkerShutdown:
    def test_stops_after_max_jobs(self) -> None:
        queue = InMemoryJobQueue()
        runner = MagicMock()
        runner.run.side_effect = queue.ack
        queue.enqueue(_make_job("a"))
        queue.enqueue(_make_job("b"))
        queue.enqueue(_make_job("c"))
        worker = Worker(queue, runner, MagicMock(job_poll_interval_seconds=0.01))

        processed = worker.run(max_jobs=2)

        assert processed == 2
        assert queue.pending_count() == 1

    def test_stops_when_event_is_set(self) -> None:
        worker, mock_queue, _runner = _make_worker()
        mock_queue.receive.return_value = None
        stop_event = threading.Event()
        stop_event.set()

        assert worker.run(stop_event=stop_event) == 0
        mock_queue.receive.assert_not_called()


class TestWorkerPool:
    def test_workers_drain_queue(self) -> None:
        queue = InMemoryJobQueue()
        runner = MagicMock()
        runner.run.side_effect = queue.ack
        for name in ("a", "b", "c", "d"):
            queue.enqueue(_make_job(name))
        settings = MagicMock(worker_concurrency=2, job_poll_interval_seconds=0.01)
        pool = WorkerPool(queue, runner, settings)

        pool.start()
        deadline = time.monotonic() + 5.0
        while queue.pending_count() and time.monotonic() < deadline:
            time.sleep(0.01)
        pool.stop(timeout_seconds=2.0)

        assert queue.pending_count() == 0
        assert runner.run.call_count == 4

    def test_each_job_handled_once(self) -> None:
        queue = InMemoryJobQueue()
        handled: list[str] = []
        lock = threading.Lock()

        def run(job: ProcessingJob) -> None:
            with lock:
                handled.append(job.image_id)
            queue.ack(job)

        runner = MagicMock()
        runner.run.side_effect = run
        for index in range(20):
            queue.enqueue(_make_job(f"img-{index}"))
        pool = WorkerPool(
            queue, runner, MagicMock(job_poll_interval_seconds=0.01), concurrency=4
        )

        pool.start()
        deadline = time.monotonic() + 5.0
        while queue.pending_count() and time.monotonic() < deadline:
            time.sleep(0.01)
        pool.stop(timeout_seconds=2.0)

        assert sorted(handled) == sorted(f"img-{index}" for index in range(20))
