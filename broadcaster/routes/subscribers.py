"""
Subscriber routes: the addresses broadcasts and groups draw from.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional

from ..auth import get_required_user
from ..database import get_db
from ..logging_config import api_logger
from ..models.subscriber import Subscriber
from ..models.user import User
from ..responses import conflict, deleted, not_found, paginated
from ..schemas.subscriber import SubscriberCreate, SubscriberUpdate

router = APIRouter(prefix="/api/subscribers", tags=["subscribers"])


def _get_owned(db: Session, subscriber_id: int, user: User) -> Subscriber:
    subscriber = db.query(Subscriber).filter(
        Subscriber.id == subscriber_id,
        Subscriber.owner_id == user.id,
    ).first()
    if not subscriber:
        not_found("Subscriber", str(subscriber_id))
    return subscriber


@router.get("")
def list_subscribers(
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    query = db.query(Subscriber).filter(Subscriber.owner_id == current_user.id)
    if is_active is not None:
        query = query.filter(Subscriber.is_active == is_active)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Subscriber.email.ilike(pattern), Subscriber.name.ilike(pattern)))

    total = query.count()
    subscribers = query.order_by(Subscriber.created_at.desc()).offset(offset).limit(limit).all()
    return paginated([s.to_dict() for s in subscribers], total, offset, limit)


@router.post("", status_code=201)
def create_subscriber(
    data: SubscriberCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    email = data.email.strip().lower()
    existing = db.query(Subscriber).filter(
        Subscriber.owner_id == current_user.id,
        Subscriber.email == email,
    ).first()
    if existing:
        conflict(f"Subscriber '{email}' already exists", "DUPLICATE_SUBSCRIBER")

    subscriber = Subscriber(owner_id=current_user.id, email=email, name=data.name)
    db.add(subscriber)
    db.commit()
    db.refresh(subscriber)

    api_logger.info("Subscriber created", subscriber_id=subscriber.id, user_id=current_user.id)
    return subscriber.to_dict()


@router.patch("/{subscriber_id}")
def update_subscriber(
    subscriber_id: int,
    data: SubscriberUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    subscriber = _get_owned(db, subscriber_id, current_user)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(subscriber, field, value)
    db.commit()
    db.refresh(subscriber)
    return subscriber.to_dict()


@router.delete("/{subscriber_id}")
def delete_subscriber(
    subscriber_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_required_user),
):
    subscriber = _get_owned(db, subscriber_id, current_user)
    db.delete(subscriber)
    db.commit()
    return deleted("Subscriber deleted")
