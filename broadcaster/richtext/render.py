"""
Rich-text to HTML rendering for outbound email.

``render_content`` is the pipeline entry point: it accepts whatever is
stored in ``Broadcast.content`` and always returns a string. Documents
that do not parse degrade to ``ERROR_FRAGMENT``.
"""
import hashlib
import html
import json
from typing import Any, Iterable, Optional

from ..errors import ContentParseError
from ..logging_config import get_logger
from .nodes import (
    AiImage,
    Blockquote,
    BulletList,
    CodeBlock,
    Document,
    HardBreak,
    Heading,
    HorizontalRule,
    Image,
    ListItem,
    Mark,
    MarkKind,
    Node,
    OrderedList,
    Paragraph,
    Text,
    TextAlign,
    UnknownNode,
)
from .parser import parse_document

logger = get_logger("richtext")

ERROR_FRAGMENT = "<p>Error rendering content</p>"

_UNSAFE_SCHEMES = ("javascript:", "vbscript:")


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


def _attributes(**attrs: Optional[str]) -> str:
    """Render attributes in keyword order, skipping empty values."""
    parts = [f' {name.replace("_", "-")}="{_attr(value)}"' for name, value in attrs.items() if value]
    return "".join(parts)


def _align_style(align: Optional[TextAlign]) -> Optional[str]:
    if align is None or align is TextAlign.LEFT:
        return None
    return f"text-align: {align.value}"


def _safe_href(href: Optional[str]) -> Optional[str]:
    if not href:
        return None
    if href.strip().lower().startswith(_UNSAFE_SCHEMES):
        return None
    return href


def _wrap_mark(mark: Mark, inner: str) -> str:
    kind = mark.kind
    if kind is MarkKind.BOLD:
        return f"<strong>{inner}</strong>"
    if kind is MarkKind.ITALIC:
        return f"<em>{inner}</em>"
    if kind is MarkKind.UNDERLINE:
        return f"<u>{inner}</u>"
    if kind is MarkKind.STRIKE:
        return f"<s>{inner}</s>"
    if kind is MarkKind.CODE:
        return f"<code>{inner}</code>"
    if kind is MarkKind.SUBSCRIPT:
        return f"<sub>{inner}</sub>"
    if kind is MarkKind.SUPERSCRIPT:
        return f"<sup>{inner}</sup>"
    if kind is MarkKind.HIGHLIGHT:
        style = f"background-color: {mark.color}" if mark.color else None
        return f"<mark{_attributes(style=style)}>{inner}</mark>"
    if kind is MarkKind.TEXT_STYLE:
        if not mark.color:
            return inner
        return f"<span{_attributes(style=f'color: {mark.color}')}>{inner}</span>"
    if kind is MarkKind.LINK:
        href = _safe_href(mark.href)
        if href is None:
            return inner
        attrs = _attributes(href=href, target=mark.target, rel="noopener noreferrer")
        return f"<a{attrs}>{inner}</a>"
    return inner


def _render_text(node: Text) -> str:
    # First mark ends up outermost.
    out = html.escape(node.text, quote=False)
    for mark in reversed(node.marks):
        out = _wrap_mark(mark, out)
    return out


def _render_children(children: Iterable[Node]) -> str:
    return "".join(render_node(child) for child in children)


def _render_image(node: Image) -> str:
    if not node.src:
        return ""
    attrs = _attributes(src=node.src, alt=node.alt, title=node.title, width=node.width, height=node.height)
    return f"<img{attrs}>"


def _render_ai_image(node: AiImage) -> str:
    img = f"<img{_attributes(src=node.src, alt=node.prompt)}>" if node.src else ""
    attrs = _attributes(data_type="image-generator", data_prompt=node.prompt)
    return f"<div{attrs}>{img}</div>"


def _render_code_block(node: CodeBlock) -> str:
    # Marks are not rendered inside code blocks.
    text = "".join(
        html.escape(child.text, quote=False) for child in node.children if isinstance(child, Text)
    )
    cls = f"language-{node.language}" if node.language else None
    return f"<pre><code{_attributes(**{'class': cls})}>{text}</code></pre>"


def render_node(node: Node) -> str:
    """Render a single node (and its subtree) to HTML."""
    if isinstance(node, Text):
        return _render_text(node)
    if isinstance(node, Paragraph):
        return f"<p{_attributes(style=_align_style(node.align))}>{_render_children(node.children)}</p>"
    if isinstance(node, Heading):
        tag = f"h{node.level}"
        return f"<{tag}{_attributes(style=_align_style(node.align))}>{_render_children(node.children)}</{tag}>"
    if isinstance(node, BulletList):
        return f"<ul>{_render_children(node.children)}</ul>"
    if isinstance(node, OrderedList):
        start = str(node.start) if node.start != 1 else None
        return f"<ol{_attributes(start=start)}>{_render_children(node.children)}</ol>"
    if isinstance(node, ListItem):
        return f"<li>{_render_children(node.children)}</li>"
    if isinstance(node, Blockquote):
        return f"<blockquote>{_render_children(node.children)}</blockquote>"
    if isinstance(node, CodeBlock):
        return _render_code_block(node)
    if isinstance(node, Image):
        return _render_image(node)
    if isinstance(node, AiImage):
        return _render_ai_image(node)
    if isinstance(node, HardBreak):
        return "<br>"
    if isinstance(node, HorizontalRule):
        return "<hr>"
    if isinstance(node, UnknownNode):
        return f"<div>{_render_children(node.children)}</div>"
    raise TypeError(f"Unsupported node {type(node).__name__}")


def render_document(document: Document) -> str:
    return _render_children(document.children)


def _looks_like_html(value: str) -> bool:
    stripped = value.strip()
    return stripped.startswith("<") and stripped.endswith(">")


def render_content(content: Any) -> str:
    """Render stored broadcast content to HTML. Never raises."""
    if content is None:
        return ""

    try:
        if isinstance(content, str):
            if _looks_like_html(content):
                return content
            stripped = content.strip()
            if stripped.startswith("{") and stripped.endswith("}"):
                try:
                    content = json.loads(stripped)
                except ValueError:
                    return f"<p>{html.escape(content, quote=False)}</p>"
            else:
                return f"<p>{html.escape(content, quote=False)}</p>" if stripped else ""

        return render_document(parse_document(content))
    except (ContentParseError, TypeError, ValueError, RecursionError) as e:
        logger.warning("Falling back to error fragment", error_type=type(e).__name__, error_message=str(e))
        return ERROR_FRAGMENT


def content_digest(content: Any) -> str:
    """Stable digest of stored content, used to detect a stale ``content_html``."""
    canonical = json.dumps(content, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def render_email_preview(body_html: str) -> str:
    return (
        "<!DOCTYPE html>"
        "<html><head><meta charset=\"utf-8\"><style>"
        "body { font-family: Arial, sans-serif; line-height: 1.6; }"
        "h1, h2, h3 { color: #333; }"
        "p { margin-bottom: 1em; }"
        "a { color: #0066cc; }"
        "img { max-width: 100%; }"
        "</style></head>"
        f"<body>{body_html}</body></html>"
    )
