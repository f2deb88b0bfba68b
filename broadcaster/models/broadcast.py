"""
Broadcast model: one email campaign and its lifecycle record.
"""
import uuid

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from ..database import Base
from ..timeutil import utcnow, isoformat


class Broadcast(Base):
    __tablename__ = "broadcasts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subject = Column(String(500), nullable=False)
    content = Column(JSON, nullable=False)  # rich-text document
    content_html = Column(Text, nullable=True)  # cached render of `content`
    content_digest = Column(String(64), nullable=True)  # digest of the content `content_html` came from
    manual_recipients = Column(JSON, nullable=False, default=list)
    group_ids = Column(JSON, nullable=False, default=list)
    recipients = Column(JSON, nullable=False, default=list)  # resolved, deduplicated
    total_recipients = Column(Integer, default=0)
    status = Column(String(20), default="draft", nullable=False, index=True)  # draft, scheduled, sending, sent, failed
    scheduled_for = Column(DateTime, nullable=True, index=True)
    claimed_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    provider_reference = Column(String(255), nullable=True, index=True)
    last_error = Column(Text, nullable=True)
    opened_count = Column(Integer, default=0, nullable=False)
    clicked_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    owner = relationship("User", back_populates="broadcasts")

    def to_dict(self, include_html: bool = False):
        """Convert to dictionary for API responses"""
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            "subject": self.subject,
            "content": self.content,
            "manual_recipients": self.manual_recipients or [],
            "group_ids": self.group_ids or [],
            "recipients": self.recipients or [],
            "total_recipients": self.total_recipients or 0,
            "status": self.status,
            "scheduled_for": isoformat(self.scheduled_for),
            "sent_at": isoformat(self.sent_at),
            "provider_reference": self.provider_reference,
            "last_error": self.last_error,
            "opened_count": self.opened_count or 0,
            "clicked_count": self.clicked_count or 0,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if include_html:
            data["content_html"] = self.content_html
        return data
