"""
Transport Webhook Routes
========================
Delivery events posted back by the email provider. Opens and clicks carry
the ``broadcast_id`` tag attached at send time and bump the broadcast's
engagement counters.
"""

from fastapi import APIRouter, Body, Depends
from typing import Any, Dict, Optional

from ..delivery.store import BroadcastStore
from ..dependencies import get_store
from ..logging_config import api_logger

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

EVENT_COLUMNS = {
    "email.opened": "opened_count",
    "email.clicked": "clicked_count",
}


def _broadcast_tag(data: Dict[str, Any]) -> Optional[str]:
    """``tags`` arrives either as a mapping or as a list of name/value pairs."""
    tags = data.get("tags")
    if isinstance(tags, dict):
        value = tags.get("broadcast_id")
    elif isinstance(tags, list):
        value = next(
            (t.get("value") for t in tags if isinstance(t, dict) and t.get("name") == "broadcast_id"),
            None,
        )
    else:
        value = None
    return str(value) if value else None


@router.post("/transport")
def transport_event(
    payload: Dict[str, Any] = Body(...),
    store: BroadcastStore = Depends(get_store),
):
    event_type = payload.get("type")
    data = payload.get("data") if isinstance(payload.get("data"), dict) else {}

    broadcast_id = _broadcast_tag(data)
    if not broadcast_id:
        api_logger.info("Transport event without broadcast tag ignored", event_type=event_type)
        return {"ok": True, "ignored": True, "reason": "missing broadcast_id tag"}

    column = EVENT_COLUMNS.get(event_type)
    if column is None:
        api_logger.debug("Unhandled transport event", event_type=event_type, broadcast_id=broadcast_id)
        return {"ok": True, "ignored": True, "reason": f"unhandled event {event_type}"}

    updated = store.increment_stat(broadcast_id, column)
    api_logger.info(
        "Transport event recorded",
        event_type=event_type,
        broadcast_id=broadcast_id,
        updated=updated,
    )
    return {"ok": True, "updated": updated}
