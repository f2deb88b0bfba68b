"""
Tests for conditional writes in the broadcast store.
"""
from datetime import timedelta

from broadcaster.delivery.lifecycle import BroadcastStatus
from broadcaster.timeutil import utcnow


class TestCompareAndSet:
    def test_applies_when_status_matches(self, store, make_broadcast):
        broadcast = make_broadcast()

        assert store.compare_and_set(broadcast.id, (BroadcastStatus.DRAFT,), subject="Edited")
        assert store.get(broadcast.id).subject == "Edited"

    def test_rejected_when_status_moved(self, store, make_broadcast):
        broadcast = make_broadcast(status="sending")

        assert not store.compare_and_set(broadcast.id, (BroadcastStatus.DRAFT,), subject="Edited")
        assert store.get(broadcast.id).subject == "Monthly update"

    def test_claim_once(self, store, make_broadcast):
        broadcast = make_broadcast()
        now = utcnow()

        assert store.claim(broadcast.id, (BroadcastStatus.DRAFT,), now)
        assert not store.claim(broadcast.id, (BroadcastStatus.DRAFT,), now)
        assert store.get(broadcast.id).claimed_at == now

    def test_claim_refuses_empty_snapshot(self, store, make_broadcast):
        broadcast = make_broadcast(recipients=[])

        assert not store.claim(broadcast.id, (BroadcastStatus.DRAFT,), utcnow())
        assert not store.claim(broadcast.id, (BroadcastStatus.DRAFT,), utcnow(), recipients=[])
        assert store.status_of(broadcast.id) == "draft"

    def test_finalize_requires_sending(self, store, make_broadcast):
        broadcast = make_broadcast(status="failed")

        assert not store.finalize_sent(broadcast.id, "msg_1", utcnow())
        assert store.status_of(broadcast.id) == "failed"

    def test_claim_due_by(self, store, make_broadcast):
        now = utcnow()
        broadcast = make_broadcast(status="scheduled", scheduled_for=now + timedelta(hours=1))

        assert not store.claim(broadcast.id, (BroadcastStatus.SCHEDULED,), now, due_by=now)
        assert store.claim(broadcast.id, (BroadcastStatus.SCHEDULED,), now, due_by=now + timedelta(hours=2))

    def test_claim_refuses_delivered_record(self, store, make_broadcast):
        broadcast = make_broadcast(status="failed", provider_reference="msg_7")

        assert not store.claim(broadcast.id, (BroadcastStatus.FAILED,), utcnow())
        assert store.status_of(broadcast.id) == "failed"

    def test_find_due_ordered(self, store, make_broadcast):
        now = utcnow()
        later = make_broadcast(status="scheduled", scheduled_for=now - timedelta(minutes=1))
        earlier = make_broadcast(status="scheduled", scheduled_for=now - timedelta(minutes=10))
        make_broadcast(status="scheduled", scheduled_for=now + timedelta(minutes=10))

        assert store.find_due(now) == [earlier.id, later.id]

    def test_delete_if(self, store, make_broadcast):
        scheduled = make_broadcast(status="scheduled", scheduled_for=utcnow() + timedelta(hours=1))

        assert not store.delete_if(scheduled.id, (BroadcastStatus.DRAFT,))
        assert store.get(scheduled.id) is not None
