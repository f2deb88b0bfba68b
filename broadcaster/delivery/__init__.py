from .lifecycle import BroadcastEvent, BroadcastStatus, TRANSITIONS, next_status, check_transition
from .store import BroadcastStore
from .recipients import RecipientResolver
from .groups import SqlGroupDirectory
from .externalizer import ImageExternalizer, ExternalizeResult
from .transport import EmailTransport, OutboundEmail, ResendTransport
from .blob_store import BlobStore, StorageBlobStore
from .executor import DeliveryExecutor, DeliveryOutcome
from .service import BroadcastService

__all__ = [
    "BroadcastEvent",
    "BroadcastStatus",
    "TRANSITIONS",
    "next_status",
    "check_transition",
    "BroadcastStore",
    "RecipientResolver",
    "SqlGroupDirectory",
    "ImageExternalizer",
    "ExternalizeResult",
    "EmailTransport",
    "OutboundEmail",
    "ResendTransport",
    "BlobStore",
    "StorageBlobStore",
    "DeliveryExecutor",
    "DeliveryOutcome",
    "BroadcastService",
]
