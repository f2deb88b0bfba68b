"""
Broadcaster API Response Utilities
Standardized response format and error handling
"""
from contextlib import contextmanager

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from typing import Any, Dict, List, NoReturn, Optional
from datetime import datetime, timezone

from .errors import (
    BroadcastError,
    DefaultGroupError,
    InvalidTransitionError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from .logging_config import api_logger


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


# ============================================================
# SUCCESS RESPONSES
# ============================================================

def success(data: Any = None, message: str = None, meta: Dict = None) -> Dict:
    """Create success response"""
    response = {
        "ok": True,
        "timestamp": _timestamp(),
    }

    if data is not None:
        response["data"] = data

    if message:
        response["message"] = message

    if meta:
        response["meta"] = meta

    return response


def deleted(message: str = "Deleted successfully") -> Dict:
    return success(message=message)


def paginated(items: List, total: int, offset: int = 0, limit: int = 20) -> Dict:
    """Offset/limit list response"""
    return {
        "ok": True,
        "data": items,
        "pagination": {
            "total": total,
            "offset": offset,
            "limit": limit,
            "has_more": offset + limit < total,
        },
        "timestamp": _timestamp(),
    }


# ============================================================
# ERROR RESPONSES
# ============================================================

class ApiException(HTTPException):
    """Custom API exception with error codes"""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str = None,
        details: Dict = None,
    ):
        self.error_code = error_code or f"ERR_{status_code}"
        self.details = details
        super().__init__(status_code=status_code, detail=message)


def bad_request(message: str, code: str = "BAD_REQUEST", details: Dict = None) -> NoReturn:
    raise ApiException(400, message, code, details)

def unauthorized(message: str = "Authentication required") -> NoReturn:
    raise ApiException(401, message, "UNAUTHORIZED")

def forbidden(message: str = "Access denied") -> NoReturn:
    raise ApiException(403, message, "FORBIDDEN")

def not_found(resource: str = "Resource", id: str = None) -> NoReturn:
    message = f"{resource} not found" if not id else f"{resource} '{id}' not found"
    raise ApiException(404, message, "NOT_FOUND")

def conflict(message: str = "Resource conflict", code: str = "CONFLICT", details: Dict = None) -> NoReturn:
    raise ApiException(409, message, code, details)

def validation_error(message: str, details: Dict = None) -> NoReturn:
    raise ApiException(422, message, "VALIDATION_ERROR", details)

def bad_gateway(message: str, code: str = "UPSTREAM_ERROR", details: Dict = None) -> NoReturn:
    raise ApiException(502, message, code, details)


def raise_for_domain_error(error: BroadcastError) -> NoReturn:
    """Translate a delivery-engine exception into the matching API error."""
    if isinstance(error, ValidationError):
        details = {"field": error.field} if error.field else None
        raise ApiException(400, error.message, error.error_code, details)
    if isinstance(error, InvalidTransitionError):
        conflict(error.message, error.error_code, {"current": error.current, "event": error.event})
    if isinstance(error, DefaultGroupError):
        conflict(error.message, error.error_code)
    if isinstance(error, NotFoundError):
        raise ApiException(404, error.message, error.error_code)
    if isinstance(error, TransportError):
        bad_gateway(error.message, error.error_code)
    raise ApiException(500, error.message, error.error_code)


@contextmanager
def domain_errors():
    """Re-raise delivery-engine exceptions from the enclosed block as API errors."""
    try:
        yield
    except BroadcastError as e:
        raise_for_domain_error(e)


# ============================================================
# EXCEPTION HANDLER
# ============================================================

async def api_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for API errors"""

    if isinstance(exc, ApiException):
        api_logger.warning(
            f"API Error: {exc.detail}",
            status_code=exc.status_code,
            error_code=exc.error_code,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "ok": False,
                "error": exc.detail,
                "error_code": exc.error_code,
                "details": exc.details,
                "timestamp": _timestamp(),
            }
        )

    api_logger.error(
        f"Unexpected error: {exc}",
        error=exc,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={
            "ok": False,
            "error": "An unexpected error occurred",
            "error_code": "INTERNAL_ERROR",
            "timestamp": _timestamp(),
        }
    )


# ============================================================
# VALIDATION HELPERS
# ============================================================

def require(value: Any, field_name: str):
    """Require a field to be present"""
    if value is None or (isinstance(value, str) and not value.strip()):
        validation_error(f"{field_name} is required", {"field": field_name})
    return value


def parse_timestamp(value: Optional[str], field_name: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (a trailing Z is accepted)."""
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        bad_request(f"Invalid {field_name}: expected an ISO-8601 timestamp", "VALIDATION_ERROR", {"field": field_name})
