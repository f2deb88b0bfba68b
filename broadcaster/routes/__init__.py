from .auth import router as auth_router
from .cron import router as cron_router
from .broadcasts import router as broadcasts_router
from .subscribers import router as subscribers_router
from .broadcast_groups import router as broadcast_groups_router
from .webhooks import router as webhooks_router

__all__ = [
    "auth_router",
    "cron_router",
    "broadcasts_router",
    "subscribers_router",
    "broadcast_groups_router",
    "webhooks_router",
]
