"""
Broadcast group routes: named subscriber collections used as recipient sources.

Each account has at most one default group. It has no explicit membership,
it stands for every active subscriber, and it cannot be deleted.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List

from ..auth import get_required_user
from ..database import get_db
from ..errors import DefaultGroupError
from ..logging_config import api_logger
from ..models.broadcast_group import BroadcastGroup, group_subscribers
from ..models.subscriber import Subscriber
from ..models.user import User
from ..responses import deleted, domain_errors, not_found, success
from ..schemas.broadcast_group import GroupCreate, GroupMembersRequest, GroupUpdate

router = APIRouter(prefix="/api/broadcast-groups", tags=["broadcast-groups"])

DEFAULT_GROUP_NAME = "All Subscribers"


def _get_owned(db: Session, group_id: int, user: User) -> BroadcastGroup:
    group = db.query(BroadcastGroup).filter(
        BroadcastGroup.id == group_id,
        BroadcastGroup.owner_id == user.id,
    ).first()
    if not group:
        not_found("Group", str(group_id))
    return group


def _active_subscribers(db: Session, owner_id: int):
    return db.query(Subscriber).filter(Subscriber.owner_id == owner_id, Subscriber.is_active.is_(True))


def _subscriber_count(db: Session, group: BroadcastGroup) -> int:
    if group.is_default:
        return _active_subscribers(db, group.owner_id).count()
    return (
        db.query(func.count(group_subscribers.c.subscriber_id))
        .join(Subscriber, Subscriber.id == group_subscribers.c.subscriber_id)
        .filter(group_subscribers.c.group_id == group.id, Subscriber.is_active.is_(True))
        .scalar()
    ) or 0


def _clear_other_defaults(db: Session, group: BroadcastGroup) -> None:
    db.query(BroadcastGroup).filter(
        BroadcastGroup.owner_id == group.owner_id,
        BroadcastGroup.id != group.id,
        BroadcastGroup.is_default.is_(True),
    ).update({BroadcastGroup.is_default: False}, synchronize_session=False)


def _resolve_members(db: Session, owner_id: int, subscriber_ids: List[int], emails: List[str]) -> List[Subscriber]:
    """Owned subscribers by id or address; unknown addresses become active subscribers."""
    members = []
    if subscriber_ids:
        members.extend(
            db.query(Subscriber)
            .filter(Subscriber.owner_id == owner_id, Subscriber.id.in_(subscriber_ids))
            .all()
        )

    for raw in emails:
        email = raw.strip().lower()
        if not email:
            continue
        subscriber = db.query(Subscriber).filter(
            Subscriber.owner_id == owner_id,
            Subscriber.email == email,
        ).first()
        if subscriber is None:
            subscriber = Subscriber(owner_id=owner_id, email=email, is_active=True)
            db.add(subscriber)
            db.flush()
        members.append(subscriber)
    return members


def _require_explicit_membership(group: BroadcastGroup) -> None:
    if group.is_default:
        raise DefaultGroupError("The default group always includes every active subscriber")


@router.get("")
def list_groups(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    groups = (
        db.query(BroadcastGroup)
        .filter(BroadcastGroup.owner_id == current_user.id)
        .order_by(BroadcastGroup.is_default.desc(), BroadcastGroup.name)
        .all()
    )
    return success(data=[g.to_dict(subscriber_count=_subscriber_count(db, g)) for g in groups])


@router.post("/ensure-default")
def ensure_default_group(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Create the account's default group if it has none."""
    group = db.query(BroadcastGroup).filter(
        BroadcastGroup.owner_id == current_user.id,
        BroadcastGroup.is_default.is_(True),
    ).first()
    created = group is None
    if created:
        group = BroadcastGroup(
            owner_id=current_user.id,
            name=DEFAULT_GROUP_NAME,
            description="Every active subscriber",
            is_default=True,
        )
        db.add(group)
        db.commit()
        db.refresh(group)
        api_logger.info("Default group created", group_id=group.id, user_id=current_user.id)

    return success(data=group.to_dict(subscriber_count=_subscriber_count(db, group)), meta={"created": created})


@router.post("", status_code=201)
def create_group(
    data: GroupCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    group = BroadcastGroup(
        owner_id=current_user.id,
        name=data.name,
        description=data.description,
        is_default=data.is_default,
    )
    db.add(group)
    db.flush()

    if group.is_default:
        _clear_other_defaults(db, group)
    elif data.subscriber_ids or data.emails:
        group.subscribers = _resolve_members(db, current_user.id, data.subscriber_ids, data.emails)

    db.commit()
    db.refresh(group)
    api_logger.info("Group created", group_id=group.id, user_id=current_user.id)
    return group.to_dict(subscriber_count=_subscriber_count(db, group))


@router.patch("/{group_id}")
def update_group(
    group_id: int,
    data: GroupUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    group = _get_owned(db, group_id, current_user)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(group, field, value)
    if group.is_default:
        _clear_other_defaults(db, group)

    db.commit()
    db.refresh(group)
    return group.to_dict(subscriber_count=_subscriber_count(db, group))


@router.delete("/{group_id}")
def delete_group(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    group = _get_owned(db, group_id, current_user)
    with domain_errors():
        if group.is_default:
            raise DefaultGroupError("The default group cannot be deleted")
    db.delete(group)
    db.commit()
    return deleted("Group deleted")


@router.get("/{group_id}/subscribers")
def list_group_subscribers(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    group = _get_owned(db, group_id, current_user)
    if group.is_default:
        members = _active_subscribers(db, group.owner_id).order_by(Subscriber.email).all()
    else:
        members = sorted(group.subscribers, key=lambda s: s.email)
    return success(data=[s.to_dict() for s in members])


@router.post("/{group_id}/subscribers")
def add_group_subscribers(
    group_id: int,
    data: GroupMembersRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    """Add members by subscriber id or address."""
    group = _get_owned(db, group_id, current_user)
    with domain_errors():
        _require_explicit_membership(group)

    current = {s.id for s in group.subscribers}
    added = 0
    for subscriber in _resolve_members(db, current_user.id, data.subscriber_ids, data.emails):
        if subscriber.id not in current:
            group.subscribers.append(subscriber)
            current.add(subscriber.id)
            added += 1

    db.commit()
    return success(data={"added": added, "subscriber_count": _subscriber_count(db, group)})


@router.delete("/{group_id}/subscribers")
def remove_group_subscribers(
    group_id: int,
    data: GroupMembersRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    group = _get_owned(db, group_id, current_user)
    with domain_errors():
        _require_explicit_membership(group)

    emails = {e.strip().lower() for e in data.emails}
    ids = set(data.subscriber_ids)
    removing = [s for s in group.subscribers if s.id in ids or s.email in emails]
    for subscriber in removing:
        group.subscribers.remove(subscriber)

    db.commit()
    return success(data={"removed": len(removing), "subscriber_count": _subscriber_count(db, group)})
