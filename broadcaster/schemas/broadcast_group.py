from pydantic import BaseModel, Field
from typing import List, Optional


class GroupCreate(BaseModel):
    name: str
    description: Optional[str] = None
    is_default: bool = False
    subscriber_ids: List[int] = Field(default_factory=list)
    emails: List[str] = Field(default_factory=list)


class GroupUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_default: Optional[bool] = None


class GroupMembersRequest(BaseModel):
    subscriber_ids: List[int] = Field(default_factory=list)
    emails: List[str] = Field(default_factory=list)
