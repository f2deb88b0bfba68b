"""
Persistence for broadcast lifecycle state.

Every status change goes through ``compare_and_set``: a single
``UPDATE ... WHERE id = :id AND status IN (:expected)`` whose row count
says whether this caller won. Nothing here reads a status and then
writes it in a separate statement.
"""
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.orm import sessionmaker

from ..logging_config import db_logger
from ..models.broadcast import Broadcast
from ..timeutil import utcnow
from .lifecycle import BroadcastStatus

STAT_COLUMNS = ("opened_count", "clicked_count")


def _status_values(statuses: Iterable) -> List[str]:
    return [BroadcastStatus(s).value for s in statuses]


class BroadcastStore:
    """Short-lived sessions per operation over a shared session factory."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ----------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------

    def get(self, broadcast_id: str) -> Optional[Broadcast]:
        with self._session_factory() as db:
            return db.get(Broadcast, broadcast_id)

    def status_of(self, broadcast_id: str) -> Optional[str]:
        with self._session_factory() as db:
            return db.execute(
                select(Broadcast.status).where(Broadcast.id == broadcast_id)
            ).scalar_one_or_none()

    def find_due(self, now: datetime) -> List[str]:
        """Ids of scheduled broadcasts whose time has come."""
        with self._session_factory() as db:
            rows = db.execute(
                select(Broadcast.id)
                .where(
                    Broadcast.status == BroadcastStatus.SCHEDULED.value,
                    Broadcast.scheduled_for <= now,
                )
                .order_by(Broadcast.scheduled_for.asc())
            ).scalars().all()
            return list(rows)

    def find_stuck(self, claimed_before: datetime) -> List[str]:
        with self._session_factory() as db:
            rows = db.execute(
                select(Broadcast.id).where(
                    Broadcast.status == BroadcastStatus.SENDING.value,
                    (Broadcast.claimed_at == None) | (Broadcast.claimed_at < claimed_before),  # noqa: E711
                )
            ).scalars().all()
            return list(rows)

    # ----------------------------------------------------------------
    # Writes
    # ----------------------------------------------------------------

    def add(self, broadcast: Broadcast) -> Broadcast:
        with self._session_factory() as db:
            db.add(broadcast)
            db.commit()
            db.refresh(broadcast)
            return broadcast

    def compare_and_set(
        self,
        broadcast_id: str,
        expected: Sequence,
        *conditions,
        **values,
    ) -> bool:
        """Apply ``values`` only if the persisted status is one of ``expected``."""
        values.setdefault("updated_at", utcnow())
        if "status" in values:
            values["status"] = BroadcastStatus(values["status"]).value

        with self._session_factory() as db:
            result = db.execute(
                update(Broadcast)
                .where(
                    Broadcast.id == broadcast_id,
                    Broadcast.status.in_(_status_values(expected)),
                    *conditions,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            won = result.rowcount == 1

        db_logger.debug(
            "Broadcast compare-and-set",
            broadcast_id=broadcast_id,
            expected=_status_values(expected),
            new_status=values.get("status"),
            applied=won,
        )
        return won

    def claim(
        self,
        broadcast_id: str,
        eligible: Sequence,
        now: datetime,
        recipients: Optional[Sequence[str]] = None,
        due_by: Optional[datetime] = None,
    ) -> bool:
        """Atomically move an eligible broadcast with recipients into ``sending``.

        With ``due_by`` the claim also requires ``scheduled_for <= due_by``,
        so a broadcast rescheduled after it was selected is not taken.
        Records already accepted by the transport are never claimed again.
        """
        if recipients is not None and not recipients:
            return False
        values = {
            "status": BroadcastStatus.SENDING,
            "claimed_at": now,
            "last_error": None,
            "updated_at": now,
        }
        # A provider reference means the transport already accepted this broadcast.
        conditions = [Broadcast.provider_reference == None]  # noqa: E711
        if recipients is not None:
            values["recipients"] = list(recipients)
            values["total_recipients"] = len(recipients)
        else:
            conditions.append(Broadcast.total_recipients > 0)
        if due_by is not None:
            conditions.append(Broadcast.scheduled_for <= due_by)
        return self.compare_and_set(broadcast_id, eligible, *conditions, **values)

    def finalize_sent(
        self,
        broadcast_id: str,
        provider_reference: str,
        now: datetime,
        **cache,
    ) -> bool:
        return self.compare_and_set(
            broadcast_id,
            [BroadcastStatus.SENDING],
            status=BroadcastStatus.SENT,
            sent_at=now,
            provider_reference=provider_reference,
            scheduled_for=None,
            updated_at=now,
            **cache,
        )

    def finalize_failed(self, broadcast_id: str, reason: str, now: datetime, **cache) -> bool:        return self.compare_and_set(
            broadcast_id,
            [BroadcastStatus.SENDING],
            status=BroadcastStatus.FAILED,
            last_error=reason,
            updated_at=now,
            **cache,
        )

    def delete_if(self, broadcast_id: str, allowed: Sequence) -> bool:
        with self._session_factory() as db:
            result = db.execute(
                delete(Broadcast)
                .where(
                    Broadcast.id == broadcast_id,
                    Broadcast.status.in_(_status_values(allowed)),
                )
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount == 1

    def increment_stat(self, broadcast_id: str, column: str) -> bool:
        """Bump a delivery counter of a sent broadcast in place."""
        if column not in STAT_COLUMNS:
            raise ValueError(f"Unknown stat column: {column}")
        counter = getattr(Broadcast, column)
        with self._session_factory() as db:
            result = db.execute(
                update(Broadcast)
                .where(
                    Broadcast.id == broadcast_id,
                    Broadcast.status == BroadcastStatus.SENT.value,
                )
                .values({column: counter + 1})
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount == 1
