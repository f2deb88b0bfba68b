"""
Broadcast lifecycle operations used by the campaign management routes.
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..logging_config import delivery_logger
from ..models.broadcast import Broadcast
from ..richtext import content_digest, render_content
from ..timeutil import to_naive_utc, utcnow
from .executor import DeliveryExecutor, DeliveryOutcome
from .lifecycle import (
    DELETABLE_STATUSES,
    EDITABLE_STATUSES,
    BroadcastEvent,
    BroadcastStatus,
    check_transition,
    ensure_deletable,
    ensure_editable,
    next_status,
    source_statuses,
)
from .recipients import RecipientResolver
from .store import BroadcastStore

EDITABLE_FIELDS = ("subject", "content", "manual_recipients", "group_ids")


def _require_subject(subject: Optional[str]) -> str:
    if subject is None or not str(subject).strip():
        raise ValidationError("subject is required", field="subject")
    return subject


def _require_content(content: Any) -> Any:
    if content is None or content == "" or content == {}:
        raise ValidationError("content is required", field="content")
    return content


class BroadcastService:
    def __init__(
        self,
        store: BroadcastStore,
        resolver: RecipientResolver,
        executor: DeliveryExecutor,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.resolver = resolver
        self.executor = executor
        self.clock = clock

    def get(self, broadcast_id: str) -> Broadcast:
        broadcast = self.store.get(broadcast_id)
        if broadcast is None:
            raise NotFoundError(f"Broadcast {broadcast_id} not found")
        return broadcast

    def _raise_lost_race(self, broadcast_id: str, event: str):
        current = self.store.status_of(broadcast_id)
        if current is None:
            raise NotFoundError(f"Broadcast {broadcast_id} not found")
        raise InvalidTransitionError(current, event)

    def _rendered(self, content: Any) -> Dict[str, Any]:
        return {"content_html": render_content(content), "content_digest": content_digest(content)}

    # ----------------------------------------------------------------
    # Drafts
    # ----------------------------------------------------------------

    def create(
        self,
        owner_id: int,
        subject: str,
        content: Any,
        manual_recipients: Optional[List[str]] = None,
        group_ids: Optional[List] = None,
        scheduled_for: Optional[datetime] = None,
    ) -> Broadcast:
        """Create a draft; with ``scheduled_for`` it is scheduled straight away."""
        _require_subject(subject)
        _require_content(content)

        manual_recipients = list(manual_recipients or [])
        group_ids = list(group_ids or [])
        recipients = self.resolver.collect(manual_recipients, group_ids)

        if scheduled_for is not None:
            # Validate up front so an invalid schedule never leaves a stray draft.
            scheduled_for = to_naive_utc(scheduled_for)
            check_transition(
                BroadcastStatus.DRAFT,
                BroadcastEvent.SCHEDULE,
                recipients=recipients,
                scheduled_for=scheduled_for,
                now=self.clock(),
            )

        broadcast = Broadcast(
            owner_id=owner_id,
            subject=subject,
            content=content,
            manual_recipients=manual_recipients,
            group_ids=group_ids,
            recipients=recipients,
            total_recipients=len(recipients),
            status=BroadcastStatus.DRAFT.value,
            **self._rendered(content),
        )
        broadcast = self.store.add(broadcast)
        delivery_logger.info("Broadcast created", broadcast_id=broadcast.id, recipients=len(recipients))

        if scheduled_for is not None:
            return self.schedule(broadcast.id, scheduled_for)
        return broadcast

    def update(self, broadcast_id: str, changes: Dict[str, Any]) -> Broadcast:
        broadcast = self.get(broadcast_id)
        ensure_editable(broadcast.status)

        values = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
        if "subject" in values:
            _require_subject(values["subject"])
        if "content" in values:
            _require_content(values["content"])
            values.update(self._rendered(values["content"]))

        if "manual_recipients" in values or "group_ids" in values:
            recipients = self.resolver.collect(
                values.get("manual_recipients", broadcast.manual_recipients),
                values.get("group_ids", broadcast.group_ids),
            )
            values["recipients"] = recipients
            values["total_recipients"] = len(recipients)

        if values and not self.store.compare_and_set(broadcast_id, EDITABLE_STATUSES, **values):
            self._raise_lost_race(broadcast_id, "edit")
        return self.get(broadcast_id)

    def delete(self, broadcast_id: str) -> None:
        broadcast = self.get(broadcast_id)
        ensure_deletable(broadcast.status)
        if not self.store.delete_if(broadcast_id, DELETABLE_STATUSES):
            self._raise_lost_race(broadcast_id, "delete")
        delivery_logger.info("Broadcast deleted", broadcast_id=broadcast_id)

    # ----------------------------------------------------------------
    # Transitions
    # ----------------------------------------------------------------

    def schedule(self, broadcast_id: str, scheduled_for: datetime) -> Broadcast:
        broadcast = self.get(broadcast_id)
        next_status(broadcast.status, BroadcastEvent.SCHEDULE)

        scheduled_for = to_naive_utc(scheduled_for)
        recipients = self.resolver.resolve(broadcast.manual_recipients, broadcast.group_ids)
        target = check_transition(
            broadcast.status,
            BroadcastEvent.SCHEDULE,
            recipients=recipients,
            scheduled_for=scheduled_for,
            now=self.clock(),
        )

        applied = self.store.compare_and_set(
            broadcast_id,
            source_statuses(BroadcastEvent.SCHEDULE),
            status=target,
            scheduled_for=scheduled_for,
            recipients=recipients,
            total_recipients=len(recipients),
        )
        if not applied:
            self._raise_lost_race(broadcast_id, BroadcastEvent.SCHEDULE.value)

        delivery_logger.info(
            "Broadcast scheduled",
            broadcast_id=broadcast_id,
            scheduled_for=scheduled_for.isoformat(),
            recipients=len(recipients),
        )
        return self.get(broadcast_id)

    def cancel(self, broadcast_id: str) -> Broadcast:
        broadcast = self.get(broadcast_id)
        target = next_status(broadcast.status, BroadcastEvent.CANCEL)

        applied = self.store.compare_and_set(
            broadcast_id,
            source_statuses(BroadcastEvent.CANCEL),
            status=target,
            scheduled_for=None,
        )
        if not applied:
            self._raise_lost_race(broadcast_id, BroadcastEvent.CANCEL.value)

        delivery_logger.info("Broadcast schedule cancelled", broadcast_id=broadcast_id)
        return self.get(broadcast_id)

    async def send_now(self, broadcast_id: str) -> DeliveryOutcome:
        """Immediate send, also used to retry a failed broadcast."""
        broadcast = self.get(broadcast_id)
        next_status(broadcast.status, BroadcastEvent.SEND)
        recipients = self.resolver.resolve(broadcast.manual_recipients, broadcast.group_ids)
        return await self.executor.execute(broadcast_id, recipients=recipients)
