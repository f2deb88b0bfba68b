"""
User model for authentication and ownership.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship
from ..database import Base
from ..timeutil import utcnow


ELEVATED_ROLES = ("admin", "editor")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    display_name = Column(String(100))
    role = Column(String(20), default="user", nullable=False)  # user, editor, admin
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    broadcasts = relationship("Broadcast", back_populates="owner", cascade="all, delete-orphan")
    subscribers = relationship("Subscriber", back_populates="owner", cascade="all, delete-orphan")
    broadcast_groups = relationship("BroadcastGroup", back_populates="owner", cascade="all, delete-orphan")

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES
