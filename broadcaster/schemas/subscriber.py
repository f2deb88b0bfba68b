from pydantic import BaseModel, EmailStr
from typing import Optional


class SubscriberCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = None


class SubscriberUpdate(BaseModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None
