from .user import User
from .broadcast import Broadcast
from .broadcast_group import BroadcastGroup, group_subscribers
from .subscriber import Subscriber

__all__ = [
    "User",
    "Broadcast",
    "BroadcastGroup",
    "Subscriber",
    "group_subscribers",
]
