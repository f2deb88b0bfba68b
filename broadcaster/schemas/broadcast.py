from pydantic import BaseModel, Field
from typing import Any, List, Optional


class BroadcastCreate(BaseModel):
    subject: str
    content: Any
    recipients: List[str] = Field(default_factory=list)
    group_ids: List[int] = Field(default_factory=list)
    scheduled_for: Optional[str] = None


class BroadcastUpdate(BaseModel):
    subject: Optional[str] = None
    content: Optional[Any] = None
    recipients: Optional[List[str]] = None
    group_ids: Optional[List[int]] = None


class ScheduleRequest(BaseModel):
    scheduled_for: str
