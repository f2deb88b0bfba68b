"""
BroadcastGroup model: a named collection of subscribers.

At most one group per owner carries ``is_default``; the default group
stands for every active subscriber of its owner and cannot be deleted.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey, Table
from sqlalchemy.orm import relationship
from ..database import Base
from ..timeutil import utcnow, isoformat


group_subscribers = Table(
    "group_subscribers",
    Base.metadata,
    Column("group_id", Integer, ForeignKey("broadcast_groups.id", ondelete="CASCADE"), primary_key=True),
    Column("subscriber_id", Integer, ForeignKey("subscribers.id", ondelete="CASCADE"), primary_key=True),
    Column("created_at", DateTime, default=utcnow),
)


class BroadcastGroup(Base):
    __tablename__ = "broadcast_groups"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    owner = relationship("User", back_populates="broadcast_groups")
    subscribers = relationship("Subscriber", secondary=group_subscribers, back_populates="groups")

    def to_dict(self, subscriber_count: int = None):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_default": self.is_default,
            "subscriber_count": subscriber_count,
            "created_at": isoformat(self.created_at),
        }
