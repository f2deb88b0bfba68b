"""
Broadcast lifecycle state machine.

    draft -> scheduled -> sending -> sent | failed
    draft -> sending                              (send now)
    scheduled -> draft                            (cancel)
    failed -> sending                             (retry)

Only the pairs in ``TRANSITIONS`` are legal. Guards that depend on the
record (recipients, schedule time) are checked by ``check_transition``.
"""
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence, Tuple

from ..errors import InvalidTransitionError, NoRecipientsError, ValidationError


class BroadcastStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


class BroadcastEvent(str, Enum):
    SCHEDULE = "schedule"
    CANCEL = "cancel"
    SEND = "send"  # send-now, cron-due and retry all enter here
    TRANSPORT_SUCCESS = "transport_success"
    TRANSPORT_FAILURE = "transport_failure"


TRANSITIONS = {
    (BroadcastStatus.DRAFT, BroadcastEvent.SCHEDULE): BroadcastStatus.SCHEDULED,
    (BroadcastStatus.SCHEDULED, BroadcastEvent.CANCEL): BroadcastStatus.DRAFT,
    (BroadcastStatus.DRAFT, BroadcastEvent.SEND): BroadcastStatus.SENDING,
    (BroadcastStatus.SCHEDULED, BroadcastEvent.SEND): BroadcastStatus.SENDING,
    (BroadcastStatus.FAILED, BroadcastEvent.SEND): BroadcastStatus.SENDING,
    (BroadcastStatus.SENDING, BroadcastEvent.TRANSPORT_SUCCESS): BroadcastStatus.SENT,
    (BroadcastStatus.SENDING, BroadcastEvent.TRANSPORT_FAILURE): BroadcastStatus.FAILED,
}

EDITABLE_STATUSES = (BroadcastStatus.DRAFT, BroadcastStatus.FAILED)
DELETABLE_STATUSES = (BroadcastStatus.DRAFT, BroadcastStatus.SENT, BroadcastStatus.FAILED)


def next_status(current, event) -> BroadcastStatus:
    """Target status for ``event`` from ``current``, or InvalidTransitionError."""
    current = BroadcastStatus(current)
    event = BroadcastEvent(event)
    target = TRANSITIONS.get((current, event))
    if target is None:
        raise InvalidTransitionError(current.value, event.value)
    return target


def source_statuses(event) -> Tuple[BroadcastStatus, ...]:
    """All statuses from which ``event`` is legal."""
    event = BroadcastEvent(event)
    return tuple(src for (src, ev) in TRANSITIONS if ev is event)


def check_transition(
    current,
    event,
    recipients: Optional[Sequence[str]] = None,
    scheduled_for: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> BroadcastStatus:
    """Validate ``event`` against the table and its guard; return the target status."""
    target = next_status(current, event)
    event = BroadcastEvent(event)

    if event in (BroadcastEvent.SCHEDULE, BroadcastEvent.SEND) and not recipients:
        raise NoRecipientsError()

    if event is BroadcastEvent.SCHEDULE:
        if scheduled_for is None:
            raise ValidationError("scheduled_for is required", field="scheduled_for")
        if now is not None and scheduled_for <= now:
            raise ValidationError("Scheduled date must be in the future", field="scheduled_for")

    return target


def ensure_editable(current) -> None:
    if BroadcastStatus(current) not in EDITABLE_STATUSES:
        raise InvalidTransitionError(BroadcastStatus(current).value, "edit")


def ensure_deletable(current) -> None:
    if BroadcastStatus(current) not in DELETABLE_STATUSES:
        raise InvalidTransitionError(BroadcastStatus(current).value, "delete")
