from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ProcessingJob:
    """One unit of deferred metadata extraction work.

    ``attempt`` is 0 on first delivery and is incremented by the queue on
    every redelivery. ``receipt`` is the queue's delivery handle.
    """

    image_id: str
    blob_ref: str
    attempt: int = 0
    receipt: int | str | None = None
    available_at: datetime | None = None

    @property
    def attempt_number(self) -> int:
        """1-based attempt number used in logs and on the record."""
        return self.attempt + 1
