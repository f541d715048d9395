"""metadata_status state machine.

Every legal move is listed in ``_TRANSITIONS``; anything else raises
``InvalidStatusTransitionError``. Writers derive the expected source
statuses and the target of a conditional update from an event.
"""

from enum import Enum

from image_api.database.models import MetadataStatus
from image_api.processor.exceptions import InvalidStatusTransitionError


class StatusEvent(str, Enum):
    CLAIM = "claim"
    SUCCEED = "succeed"
    FAIL = "fail"
    RETRY = "retry"
    REEXTRACT = "reextract"


_TRANSITIONS: dict[tuple[MetadataStatus, StatusEvent], MetadataStatus] = {
    (MetadataStatus.PENDING, StatusEvent.CLAIM): MetadataStatus.PROCESSING,
    (MetadataStatus.FAILED, StatusEvent.CLAIM): MetadataStatus.PROCESSING,
    (MetadataStatus.PROCESSING, StatusEvent.SUCCEED): MetadataStatus.COMPLETED,
    (MetadataStatus.PROCESSING, StatusEvent.FAIL): MetadataStatus.FAILED,
    (MetadataStatus.FAILED, StatusEvent.RETRY): MetadataStatus.PENDING,
    (MetadataStatus.COMPLETED, StatusEvent.REEXTRACT): MetadataStatus.PENDING,
}


def transition(current: MetadataStatus, event: StatusEvent) -> MetadataStatus:
    """Return the status reached from ``current`` on ``event``."""
    try:
        return _TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidStatusTransitionError(
            f"Cannot apply '{event.value}' to metadata_status '{current.value}'"
        ) from None


def sources(event: StatusEvent) -> frozenset[MetadataStatus]:
    """Statuses from which ``event`` is legal."""
    return frozenset(status for status, ev in _TRANSITIONS if ev is event)


def target(event: StatusEvent) -> MetadataStatus:
    """The single status ``event`` leads to."""
    targets = {to for (_, ev), to in _TRANSITIONS.items() if ev is event}
    if len(targets) != 1:
        raise InvalidStatusTransitionError(f"Event '{event.value}' has no unique target")
    return targets.pop()
