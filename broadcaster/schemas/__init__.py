from .auth import UserCreate, UserLogin, UserResponse
from .broadcast import BroadcastCreate, BroadcastUpdate, ScheduleRequest
from .subscriber import SubscriberCreate, SubscriberUpdate
from .broadcast_group import GroupCreate, GroupUpdate, GroupMembersRequest

__all__ = [
    "UserCreate", "UserLogin", "UserResponse",
    "BroadcastCreate", "BroadcastUpdate", "ScheduleRequest",
    "SubscriberCreate", "SubscriberUpdate",
    "GroupCreate", "GroupUpdate", "GroupMembersRequest",
]
