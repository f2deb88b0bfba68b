"""
Tests for the transport delivery-event webhook.
"""


def event(event_type, broadcast_id=None, as_list=False):
    data = {"email_id": "msg_1"}
    if broadcast_id is not None:
        data["tags"] = (
            [{"name": "broadcast_id", "value": broadcast_id}] if as_list else {"broadcast_id": broadcast_id}
        )
    return {"type": event_type, "data": data}


class TestTransportWebhook:
    def test_open_increments(self, client, make_broadcast, store):
        broadcast = make_broadcast(status="sent")

        response = client.post("/api/webhooks/transport", json=event("email.opened", broadcast.id))
        client.post("/api/webhooks/transport", json=event("email.opened", broadcast.id, as_list=True))

        assert response.json()["updated"] is True
        assert store.get(broadcast.id).opened_count == 2

    def test_click_increments(self, client, make_broadcast, store):
        broadcast = make_broadcast(status="sent")

        client.post("/api/webhooks/transport", json=event("email.clicked", broadcast.id))

        saved = store.get(broadcast.id)
        assert saved.clicked_count == 1
        assert saved.opened_count == 0

    def test_missing_tag_acknowledged(self, client):
        response = client.post("/api/webhooks/transport", json=event("email.opened"))
        assert response.status_code == 200
        assert response.json()["ignored"] is True

    def test_unknown_event_acknowledged(self, client, make_broadcast, store):
        broadcast = make_broadcast(status="sent")

        response = client.post("/api/webhooks/transport", json=event("email.bounced", broadcast.id))

        assert response.status_code == 200
        assert response.json()["ignored"] is True
        assert store.get(broadcast.id).opened_count == 0

    def test_unsent_broadcast_not_counted(self, client, make_broadcast, store):
        broadcast = make_broadcast()

        response = client.post("/api/webhooks/transport", json=event("email.opened", broadcast.id))

        assert response.json()["updated"] is False
        assert store.get(broadcast.id).opened_count == 0
