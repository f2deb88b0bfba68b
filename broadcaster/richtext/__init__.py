from .parser import parse_document
from .render import (
    ERROR_FRAGMENT,
    content_digest,
    render_content,
    render_document,
    render_email_preview,
)

__all__ = [
    "parse_document",
    "render_content",
    "render_document",
    "render_email_preview",
    "content_digest",
    "ERROR_FRAGMENT",
]
