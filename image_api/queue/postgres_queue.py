from collections.abc import Generator
from contextlib import contextmanager

import psycopg
from psycopg.rows import dict_row

from image_api.database.connection import get_connection
from image_api.database.exceptions import RecordStoreError, RecordStoreUnavailableError
from image_api.queue.base import BaseJobQueue
from image_api.queue.models import ProcessingJob


@contextmanager
def _translate_errors() -> Generator[None, None, None]:
    try:
        yield
    except psycopg.OperationalError as exc:
        raise RecordStoreUnavailableError(f"Job queue unavailable: {exc}") from exc


class PostgresJobQueue(BaseJobQueue):
    """Job queue backed by the image_jobs table.

    Consumers claim rows with SELECT FOR UPDATE SKIP LOCKED. A row stuck in
    'processing' past the visibility timeout is redelivered with attempts + 1.
    """

    def __init__(self, visibility_timeout_seconds: float = 300.0) -> None:
        self._visibility_timeout = visibility_timeout_seconds

    def enqueue(self, job: ProcessingJob) -> ProcessingJob:
        with _translate_errors(), get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    INSERT INTO image_jobs (image_id, blob_ref, status, attempts)
                    VALUES (%s, %s, 'pending', %s)
                    RETURNING id, available_at
                    """,
                    (job.image_id, job.blob_ref, job.attempt),
                )
                row = cur.fetchone()
            conn.commit()
        if row is None:
            raise RecordStoreError(f"Enqueue for image {job.image_id} returned no row")
        return ProcessingJob(
            image_id=job.image_id,
            blob_ref=job.blob_ref,
            attempt=job.attempt,
            receipt=row["id"],
            available_at=row["available_at"],
        )

    def receive(self, timeout_seconds: float = 0.0) -> ProcessingJob | None:
        """Claim the next available job. Does not block; callers poll."""
        _ = timeout_seconds
        with _translate_errors(), get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, image_id, blob_ref, status, attempts, available_at
                    FROM image_jobs
                    WHERE (status = 'pending' AND available_at <= NOW())
                       OR (status = 'processing'
                           AND locked_at < NOW() - make_interval(secs => %s))
                    ORDER BY available_at
                    LIMIT 1
                    FOR UPDATE SKIP LOCKED
                    """,
                    (self._visibility_timeout,),
                )
                row = cur.fetchone()

            if row is None:
                conn.commit()
                return None

            attempts = row["attempts"]
            if row["status"] == "processing":
                attempts += 1
            conn.execute(
                """
                UPDATE image_jobs
                SET status = 'processing', attempts = %s,
                    locked_at = NOW(), updated_at = NOW()
                WHERE id = %s
                """,
                (attempts, row["id"]),
            )
            conn.commit()

        return ProcessingJob(
            image_id=row["image_id"],
            blob_ref=row["blob_ref"],
            attempt=attempts,
            receipt=row["id"],
            available_at=row["available_at"],
        )

    def ack(self, job: ProcessingJob) -> None:
        with _translate_errors(), get_connection() as conn:
            conn.execute(
                """
                UPDATE image_jobs
                SET status = 'done', locked_at = NULL, updated_at = NOW()
                WHERE id = %s
                """,
                (job.receipt,),
            )
            conn.commit()

    def redeliver(
        self, job: ProcessingJob, delay_seconds: float = 0.0, count_attempt: bool = True
    ) -> None:
        attempt = job.attempt + 1 if count_attempt else job.attempt
        with _translate_errors(), get_connection() as conn:
            conn.execute(
                """
                UPDATE image_jobs
                SET attempts = %s, status = 'pending', locked_at = NULL,
                    available_at = NOW() + make_interval(secs => %s),
                    updated_at = NOW()
                WHERE id = %s
                """,
                (attempt, delay_seconds, job.receipt),
            )
            conn.commit()

    def dead_letter(self, job: ProcessingJob, reason: str) -> None:
        with _translate_errors(), get_connection() as conn:
            conn.execute(
                """
                UPDATE image_jobs
                SET status = 'dead', error_message = %s, locked_at = NULL,
                    updated_at = NOW()
                WHERE id = %s
                """,
                (reason, job.receipt),
            )
            conn.commit()

    def find_by_receipt(self, receipt: int) -> dict[str, object] | None:
        """Return the raw job row. Useful for tests and operators."""
        with _translate_errors(), get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, image_id, blob_ref, status, attempts, error_message,
                           available_at, locked_at, created_at, updated_at
                    FROM image_jobs
                    WHERE id = %s
                    """,
                    (receipt,),
                )
                return cur.fetchone()
