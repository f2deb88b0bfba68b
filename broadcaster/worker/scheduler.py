"""
Scheduled Broadcast Poller

Invoked on a fixed external cadence (cron hitting the guarded trigger
endpoint):
- Finds broadcasts with status 'scheduled' whose time has passed
- Drives each through the delivery executor concurrently
- One candidate failing never stops the others
- Overlapping runs are safe: only the run that wins a broadcast's claim sends it
- A broadcast rescheduled after it was selected waits for its new time
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..delivery.executor import DeliveryExecutor, DeliveryOutcome
from ..delivery.lifecycle import BroadcastStatus
from ..delivery.store import BroadcastStore
from ..logging_config import timed, worker_logger
from ..timeutil import utcnow


@dataclass
class PollSummary:
    """Result of one poller run"""
    attempted: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    results: List[DeliveryOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "results": [r.to_dict() for r in self.results],
        }


class SchedulerPoller:
    """Sends every scheduled broadcast that is due."""

    def __init__(
        self,
        store: BroadcastStore,
        executor: DeliveryExecutor,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.executor = executor
        self.clock = clock

    @timed(worker_logger)
    async def poll(self, now: Optional[object] = None) -> PollSummary:
        now = now or self.clock()
        due = self.store.find_due(now)

        summary = PollSummary(attempted=len(due))
        if not due:
            worker_logger.debug("No scheduled broadcasts due")
            return summary

        worker_logger.info("Processing due broadcasts", count=len(due))

        settled = await asyncio.gather(
            *(
                self.executor.execute(broadcast_id, eligible=(BroadcastStatus.SCHEDULED,), due_by=now)
                for broadcast_id in due
            ),
            return_exceptions=True,
        )

        for broadcast_id, result in zip(due, settled):
            if isinstance(result, BaseException):
                worker_logger.error("Scheduled delivery raised", error=result, broadcast_id=broadcast_id)
                result = DeliveryOutcome(
                    broadcast_id=broadcast_id,
                    status=BroadcastStatus.FAILED.value,
                    error=str(result) or type(result).__name__,
                )
            summary.results.append(result)

            if result.status == BroadcastStatus.SENT.value:
                summary.sent += 1
            elif result.status == BroadcastStatus.FAILED.value:
                summary.failed += 1
            else:
                summary.skipped += 1

        worker_logger.info(
            "Poll complete",
            attempted=summary.attempted,
            sent=summary.sent,
            failed=summary.failed,
            skipped=summary.skipped,
        )
        return summary
