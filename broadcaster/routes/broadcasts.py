"""
Broadcast routes: drafts, scheduling, immediate send and preview.
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Optional

from ..auth import can_manage, get_required_user
from ..database import get_db
from ..delivery.lifecycle import BroadcastStatus
from ..delivery.service import BroadcastService
from ..dependencies import get_broadcast_service
from ..errors import NotFoundError
from ..logging_config import api_logger
from ..models.broadcast import Broadcast
from ..models.user import User
from ..responses import (
    bad_gateway,
    conflict,
    deleted,
    domain_errors,
    forbidden,
    not_found,
    paginated,
    parse_timestamp,
)
from ..richtext import content_digest, render_content, render_email_preview
from ..schemas.broadcast import BroadcastCreate, BroadcastUpdate, ScheduleRequest

router = APIRouter(prefix="/api/broadcasts", tags=["broadcasts"])


def _visible(db: Session, user: User):
    query = db.query(Broadcast)
    if not user.is_elevated:
        query = query.filter(Broadcast.owner_id == user.id)
    return query


def _load_managed(service: BroadcastService, broadcast_id: str, user: User) -> Broadcast:
    try:
        broadcast = service.get(broadcast_id)
    except NotFoundError:
        not_found("Broadcast", broadcast_id)
    if not can_manage(user, broadcast):
        forbidden("You do not have access to this broadcast")
    return broadcast


@router.get("/stats")
def get_broadcast_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Counts per status plus aggregated engagement counters."""
    rows = (
        _visible(db, current_user)
        .with_entities(Broadcast.status, func.count(Broadcast.id))
        .group_by(Broadcast.status)
        .all()
    )
    by_status = {status.value: 0 for status in BroadcastStatus}
    by_status.update({status: count for status, count in rows})

    sent = _visible(db, current_user).filter(Broadcast.status == BroadcastStatus.SENT.value)
    totals = sent.with_entities(
        func.coalesce(func.sum(Broadcast.total_recipients), 0),
        func.coalesce(func.sum(Broadcast.opened_count), 0),
        func.coalesce(func.sum(Broadcast.clicked_count), 0),
    ).one()

    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "total_delivered": int(totals[0]),
        "opened": int(totals[1]),
        "clicked": int(totals[2]),
    }


@router.get("")
def list_broadcasts(
    status: Optional[str] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """List broadcasts, newest first. Admins and editors see every account's."""
    query = _visible(db, current_user)
    if status:
        query = query.filter(Broadcast.status == status)

    total = query.count()
    broadcasts = query.order_by(Broadcast.created_at.desc()).offset(offset).limit(limit).all()
    return paginated([b.to_dict() for b in broadcasts], total, offset, limit)


@router.post("", status_code=201)
def create_broadcast(
    data: BroadcastCreate,
    service: BroadcastService = Depends(get_broadcast_service),
    current_user: User = Depends(get_required_user),
):
    """Create a draft. With ``scheduled_for`` the draft is scheduled immediately."""
    scheduled_for = parse_timestamp(data.scheduled_for, "scheduled_for")
    with domain_errors():
        broadcast = service.create(
            owner_id=current_user.id,
            subject=data.subject,
            content=data.content,
            manual_recipients=data.recipients,
            group_ids=data.group_ids,
            scheduled_for=scheduled_for,
        )
    api_logger.info("Broadcast created", broadcast_id=broadcast.id, user_id=current_user.id)
    return broadcast.to_dict()


@router.get("/{broadcast_id}")
def get_broadcast(
    broadcast_id: str,
    service: BroadcastService = Depends(get_broadcast_service),
    current_user: User = Depends(get_required_user),
):
    broadcast = _load_managed(service, broadcast_id, current_user)
    return broadcast.to_dict(include_html=True)


@router.patch("/{broadcast_id}")
def update_broadcast(
    broadcast_id: str,
    data: BroadcastUpdate,
    service: BroadcastService = Depends(get_broadcast_service),
    current_user: User = Depends(get_required_user),
):
    """Edit a draft or failed broadcast."""
    _load_managed(service, broadcast_id, current_user)
    changes = data.model_dump(exclude_unset=True)
    if "recipients" in changes:
        changes["manual_recipients"] = changes.pop("recipients")
    with domain_errors():
        broadcast = service.update(broadcast_id, changes)
    return broadcast.to_dict()


@router.delete("/{broadcast_id}")
def delete_broadcast(
    broadcast_id: str,
    service: BroadcastService = Depends(get_broadcast_service),
    current_user: User = Depends(get_required_user),
):
    _load_managed(service, broadcast_id, current_user)
    with domain_errors():
        service.delete(broadcast_id)
    return deleted("Broadcast deleted")


@router.post("/{broadcast_id}/schedule")
def schedule_broadcast(
    broadcast_id: str,
    data: ScheduleRequest,
    service: BroadcastService = Depends(get_broadcast_service),
    current_user: User = Depends(get_required_user),
):
    _load_managed(service, broadcast_id, current_user)
    scheduled_for = parse_timestamp(data.scheduled_for, "scheduled_for")
    with domain_errors():
        broadcast = service.schedule(broadcast_id, scheduled_for)
    return broadcast.to_dict()


@router.post("/{broadcast_id}/cancel")
def cancel_broadcast(
    broadcast_id: str,
    service: BroadcastService = Depends(get_broadcast_service),
    current_user: User = Depends(get_required_user),
):
    """Return a scheduled broadcast to draft."""
    _load_managed(service, broadcast_id, current_user)
    with domain_errors():
        broadcast = service.cancel(broadcast_id)
    return broadcast.to_dict()


@router.post("/{broadcast_id}/send")
async def send_broadcast(
    broadcast_id: str,
    service: BroadcastService = Depends(get_broadcast_service),
    current_user: User = Depends(get_required_user),
):
    """
    Send immediately. Also retries a failed broadcast.

    A transport failure answers 502 and leaves the broadcast in ``failed``;
    losing the claim to a concurrent send answers 409.
    """
    _load_managed(service, broadcast_id, current_user)
    with domain_errors():
        outcome = await service.send_now(broadcast_id)

    if outcome.status == "skipped":
        conflict(outcome.error or "Broadcast is already being sent", "ALREADY_CLAIMED", outcome.to_dict())
    if outcome.status == "failed":
        bad_gateway(outcome.error or "Delivery failed", "DELIVERY_FAILED", outcome.to_dict())

    api_logger.info("Broadcast sent on demand", broadcast_id=broadcast_id, user_id=current_user.id)
    return {
        "outcome": outcome.to_dict(),
        "broadcast": service.get(broadcast_id).to_dict(),
    }


@router.get("/{broadcast_id}/preview", response_class=HTMLResponse)
def preview_broadcast(
    broadcast_id: str,
    service: BroadcastService = Depends(get_broadcast_service),
    current_user: User = Depends(get_required_user),
):
    """Rendered body inside the minimal email shell."""
    broadcast = _load_managed(service, broadcast_id, current_user)
    if broadcast.content_html is not None and broadcast.content_digest == content_digest(broadcast.content):
        body = broadcast.content_html
    else:
        body = render_content(broadcast.content)
    return HTMLResponse(render_email_preview(body))
