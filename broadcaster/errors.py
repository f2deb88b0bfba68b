"""
Domain exceptions for the broadcast delivery engine.

Routers translate these into HTTP responses via ``broadcaster.responses``;
the core never raises HTTP exceptions itself.
"""
from typing import Optional


class BroadcastError(Exception):
    """Base class for all delivery-engine errors."""

    error_code = "BROADCAST_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(BroadcastError):
    """Input rejected synchronously; nothing was persisted."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class NoRecipientsError(ValidationError):
    """Neither manual addresses nor groups yielded a single address."""

    error_code = "NO_RECIPIENTS"

    def __init__(self, message: str = "Broadcast has no recipients"):
        super().__init__(message, field="recipients")


class InvalidTransitionError(BroadcastError):
    """A lifecycle event is not permitted from the current status."""

    error_code = "INVALID_TRANSITION"

    def __init__(self, current: str, event: str):
        self.current = current
        self.event = event
        super().__init__(f"Cannot {event} a broadcast in status '{current}'")


class NotFoundError(BroadcastError):
    error_code = "NOT_FOUND"


class DefaultGroupError(BroadcastError):
    """Operation not permitted on the default group (delete, explicit membership)."""

    error_code = "DEFAULT_GROUP"


class GroupLookupError(BroadcastError):
    error_code = "GROUP_LOOKUP_FAILED"


class ContentParseError(BroadcastError):
    """A rich-text document does not have the expected tree shape."""

    error_code = "CONTENT_PARSE_ERROR"


class TransportError(BroadcastError):
    """The email transport rejected the message or could not be reached."""

    error_code = "TRANSPORT_ERROR"

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class BlobUploadError(BroadcastError):
    error_code = "BLOB_UPLOAD_FAILED"

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)
