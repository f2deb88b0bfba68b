"""
Stuck-sending reconciliation.

A process that dies between claim and finalize leaves a broadcast in
'sending'. This sweep fails such records once their claim is older than
the grace period, making them eligible for an explicit retry.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, List

from ..delivery.store import BroadcastStore
from ..logging_config import worker_logger
from ..timeutil import utcnow

STUCK_REASON = "stuck in sending"


@dataclass
class ReconcileSummary:
    examined: int = 0
    failed_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"examined": self.examined, "failed": len(self.failed_ids), "failed_ids": self.failed_ids}


class StuckSendingReconciler:
    def __init__(self, store: BroadcastStore, grace: timedelta, clock: Callable = utcnow):
        self.store = store
        self.grace = grace
        self.clock = clock

    def sweep(self) -> ReconcileSummary:
        now = self.clock()
        cutoff = now - self.grace
        candidates = self.store.find_stuck(cutoff)

        summary = ReconcileSummary(examined=len(candidates))
        for broadcast_id in candidates:
            # Conditional on 'sending': a late finalize by the original executor wins.
            if self.store.finalize_failed(broadcast_id, STUCK_REASON, now):
                summary.failed_ids.append(broadcast_id)
                worker_logger.warning("Failed stuck broadcast", broadcast_id=broadcast_id)

        if candidates:
            worker_logger.info("Reconcile sweep complete", examined=summary.examined, failed=len(summary.failed_ids))
        return summary

    async def run_forever(self, interval_seconds: float):
        """Sweep on a fixed interval until cancelled."""
        while True:
            try:
                self.sweep()
            except Exception as e:
                worker_logger.error("Reconcile sweep failed", error=e)
            await asyncio.sleep(interval_seconds)
