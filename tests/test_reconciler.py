"""
Tests for stuck-sending reconciliation and the background task supervisor.
"""
import asyncio
from datetime import timedelta

import pytest

from broadcaster.timeutil import utcnow
from broadcaster.worker.reconciler import STUCK_REASON, StuckSendingReconciler
from broadcaster.worker.supervisor import TaskSupervisor


class TestStuckSendingReconciler:
    def test_old_claim_failed(self, store, make_broadcast):
        stuck = make_broadcast(status="sending", claimed_at=utcnow() - timedelta(hours=2))

        summary = StuckSendingReconciler(store, grace=timedelta(minutes=30)).sweep()

        assert summary.failed_ids == [stuck.id]
        saved = store.get(stuck.id)
        assert saved.status == "failed"
        assert saved.last_error == STUCK_REASON

    def test_recent_claim_left_alone(self, store, make_broadcast):
        active = make_broadcast(status="sending", claimed_at=utcnow() - timedelta(minutes=1))

        summary = StuckSendingReconciler(store, grace=timedelta(minutes=30)).sweep()

        assert summary.examined == 0
        assert store.status_of(active.id) == "sending"

    def test_missing_claim_time_counts_as_stuck(self, store, make_broadcast):
        orphan = make_broadcast(status="sending", claimed_at=None)

        StuckSendingReconciler(store, grace=timedelta(minutes=30)).sweep()

        assert store.status_of(orphan.id) == "failed"

    def test_other_statuses_ignored(self, store, make_broadcast):
        old = utcnow() - timedelta(days=1)
        sent = make_broadcast(status="sent", claimed_at=old)
        scheduled = make_broadcast(status="scheduled", scheduled_for=old)

        StuckSendingReconciler(store, grace=timedelta(minutes=30)).sweep()

        assert store.status_of(sent.id) == "sent"
        assert store.status_of(scheduled.id) == "scheduled"

    def test_reconciled_broadcast_can_be_retried(self, client, auth_headers, make_broadcast, store, transport):
        stuck = make_broadcast(status="sending", claimed_at=utcnow() - timedelta(hours=2))
        StuckSendingReconciler(store, grace=timedelta(minutes=30)).sweep()

        response = client.post(f"/api/broadcasts/{stuck.id}/send", headers=auth_headers)

        assert response.status_code == 200
        assert store.status_of(stuck.id) == "sent"


class TestTaskSupervisor:
    @pytest.mark.asyncio
    async def test_crash_is_contained(self):
        supervisor = TaskSupervisor()

        async def explode():
            raise RuntimeError("background failure")

        task = supervisor.spawn(explode(), name="explode")
        await asyncio.gather(task, return_exceptions=True)
        await asyncio.sleep(0)

        assert supervisor.active == 0

    @pytest.mark.asyncio
    async def test_shutdown_cancels_loops(self, store, make_broadcast):
        stuck = make_broadcast(status="sending", claimed_at=None)
        reconciler = StuckSendingReconciler(store, grace=timedelta(minutes=30))
        supervisor = TaskSupervisor()

        supervisor.spawn(reconciler.run_forever(0.01), name="reconciler")
        await asyncio.sleep(0.05)
        await supervisor.shutdown()

        assert supervisor.active == 0
        assert store.status_of(stuck.id) == "failed"
