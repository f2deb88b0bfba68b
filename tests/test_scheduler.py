"""
Tests for the scheduled broadcast poller.
"""
import asyncio
from datetime import timedelta

import pytest

from broadcaster.delivery.executor import DeliveryExecutor
from broadcaster.delivery.externalizer import ImageExternalizer
from broadcaster.delivery.lifecycle import BroadcastStatus
from broadcaster.errors import TransportError
from broadcaster.timeutil import utcnow
from broadcaster.worker.scheduler import SchedulerPoller


class SubjectFailingTransport:
    """Rejects messages whose subject contains ``poison``."""

    def __init__(self):
        self.sent = []

    async def send(self, message):
        self.sent.append(message)
        await asyncio.sleep(0)
        if "poison" in message.subject:
            raise TransportError("rejected", 422)
        return f"msg_{len(self.sent)}"


def build_poller(store, transport, blob_store):
    executor = DeliveryExecutor(
        store=store,
        transport=transport,
        externalizer=ImageExternalizer(blob_store),
        sender="news@example.com",
    )
    return SchedulerPoller(store=store, executor=executor)


class TestSchedulerPoller:
    @pytest.mark.asyncio
    async def test_due_broadcast_sent_once(self, store, transport, blob_store, make_broadcast):
        """Scenario: a past-due scheduled broadcast is sent exactly once."""
        broadcast = make_broadcast(status="scheduled", scheduled_for=utcnow() - timedelta(minutes=5))

        summary = await build_poller(store, transport, blob_store).poll()

        assert summary.attempted == 1
        assert summary.sent == 1
        assert len(transport.sent) == 1
        saved = store.get(broadcast.id)
        assert saved.status == "sent"
        assert saved.provider_reference == "msg_1"
        assert saved.sent_at is not None
        assert saved.scheduled_for is None

    @pytest.mark.asyncio
    async def test_future_and_draft_untouched(self, store, transport, blob_store, make_broadcast):
        future = make_broadcast(status="scheduled", scheduled_for=utcnow() + timedelta(hours=1))
        draft = make_broadcast()

        summary = await build_poller(store, transport, blob_store).poll()

        assert summary.attempted == 0
        assert transport.sent == []
        assert store.status_of(future.id) == "scheduled"
        assert store.status_of(draft.id) == "draft"

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_others(self, store, blob_store, make_broadcast):
        past = utcnow() - timedelta(minutes=1)
        good = make_broadcast(status="scheduled", scheduled_for=past, subject="fine")
        bad = make_broadcast(status="scheduled", scheduled_for=past, subject="poison pill")
        transport = SubjectFailingTransport()

        summary = await build_poller(store, transport, blob_store).poll()

        assert (summary.attempted, summary.sent, summary.failed) == (2, 1, 1)
        assert store.status_of(good.id) == "sent"
        assert store.status_of(bad.id) == "failed"

    @pytest.mark.asyncio
    async def test_overlapping_runs_send_once(self, store, transport, blob_store, make_broadcast):
        make_broadcast(status="scheduled", scheduled_for=utcnow() - timedelta(minutes=1))
        transport.delay = 0.05
        poller = build_poller(store, transport, blob_store)

        first, second = await asyncio.gather(poller.poll(), poller.poll())

        assert len(transport.sent) == 1
        assert first.sent + second.sent == 1
        assert first.failed + second.failed == 0

    @pytest.mark.asyncio
    async def test_summary_dict(self, store, transport, blob_store, make_broadcast):
        broadcast = make_broadcast(status="scheduled", scheduled_for=utcnow() - timedelta(minutes=1))

        data = (await build_poller(store, transport, blob_store).poll()).to_dict()

        assert data["sent"] == 1
        assert data["results"][0]["broadcast_id"] == broadcast.id

    @pytest.mark.asyncio
    async def test_rescheduled_after_selection_not_sent(
        self, store, transport, blob_store, make_broadcast, monkeypatch
    ):
        """Cancelled and rescheduled for tomorrow between the due query and the claim."""
        broadcast = make_broadcast(status="scheduled", scheduled_for=utcnow() - timedelta(minutes=1))
        tomorrow = utcnow() + timedelta(days=1)
        real_find_due = store.find_due

        def find_then_reschedule(now):
            due = real_find_due(now)
            assert store.compare_and_set(broadcast.id, (BroadcastStatus.SCHEDULED,), status=BroadcastStatus.DRAFT)
            assert store.compare_and_set(
                broadcast.id,
                (BroadcastStatus.DRAFT,),
                status=BroadcastStatus.SCHEDULED,
                scheduled_for=tomorrow,
            )
            return due

        monkeypatch.setattr(store, "find_due", find_then_reschedule)

        summary = await build_poller(store, transport, blob_store).poll()

        assert summary.attempted == 1
        assert summary.sent == 0
        assert summary.skipped == 1
        assert transport.sent == []
        saved = store.get(broadcast.id)
        assert saved.status == "scheduled"
        assert saved.scheduled_for == tomorrow
