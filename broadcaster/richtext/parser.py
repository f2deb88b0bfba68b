"""
Parse editor JSON (``{"type": "doc", "content": [...]}``) into typed nodes.
"""
from typing import Any, Dict, List, Optional, Tuple

from ..errors import ContentParseError
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

_MARK_KINDS = {kind.value: kind for kind in MarkKind}
_ALIGNMENTS = {align.value: align for align in TextAlign}


def parse_document(raw: Any) -> Document:
    """Build a ``Document`` from a decoded JSON object.

    Raises ContentParseError when the value is not a document-shaped tree.
    Unrecognized node types are kept as ``UnknownNode``; unrecognized
    marks are dropped.
    """
    if not isinstance(raw, dict):
        raise ContentParseError(f"Document must be an object, got {type(raw).__name__}")
    if raw.get("type") != "doc" and "content" not in raw:
        raise ContentParseError("Document must have type 'doc' or a content list")
    return Document(children=_parse_children(raw))


def _parse_children(obj: Dict[str, Any]) -> Tuple[Node, ...]:
    content = obj.get("content")
    if content is None:
        return ()
    if not isinstance(content, list):
        raise ContentParseError(f"'content' of {obj.get('type')!r} must be a list")
    return tuple(_parse_node(child) for child in content)


def _attrs(obj: Dict[str, Any]) -> Dict[str, Any]:
    attrs = obj.get("attrs")
    if attrs is None:
        return {}
    if not isinstance(attrs, dict):
        raise ContentParseError(f"'attrs' of {obj.get('type')!r} must be an object")
    return attrs


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _parse_align(attrs: Dict[str, Any]) -> Optional[TextAlign]:
    return _ALIGNMENTS.get(attrs.get("textAlign"))


def _parse_marks(obj: Dict[str, Any]) -> Tuple[Mark, ...]:
    raw_marks = obj.get("marks")
    if raw_marks is None:
        return ()
    if not isinstance(raw_marks, list):
        raise ContentParseError("'marks' must be a list")

    marks: List[Mark] = []
    for raw in raw_marks:
        if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
            raise ContentParseError("Each mark must be an object with a string type")
        kind = _MARK_KINDS.get(raw["type"])
        if kind is None:
            continue
        attrs = _attrs(raw)
        marks.append(Mark(
            kind=kind,
            href=_optional_str(attrs.get("href")),
            target=_optional_str(attrs.get("target")),
            color=_optional_str(attrs.get("color")),
        ))
    return tuple(marks)


def _parse_level(attrs: Dict[str, Any]) -> int:
    level = attrs.get("level", 1)
    if isinstance(level, bool) or not isinstance(level, int):
        raise ContentParseError(f"Heading level must be an integer, got {level!r}")
    return min(max(level, 1), 6)


def _parse_node(obj: Any) -> Node:
    if not isinstance(obj, dict):
        raise ContentParseError(f"Node must be an object, got {type(obj).__name__}")
    node_type = obj.get("type")
    if not isinstance(node_type, str):
        raise ContentParseError("Node is missing a string 'type'")

    if node_type == "text":
        text = obj.get("text")
        if not isinstance(text, str):
            raise ContentParseError("Text node must carry a string 'text'")
        return Text(text=text, marks=_parse_marks(obj))

    attrs = _attrs(obj)

    if node_type == "paragraph":
        return Paragraph(children=_parse_children(obj), align=_parse_align(attrs))
    if node_type == "heading":
        return Heading(level=_parse_level(attrs), children=_parse_children(obj), align=_parse_align(attrs))
    if node_type == "bulletList":
        return BulletList(children=_parse_children(obj))
    if node_type == "orderedList":
        start = attrs.get("start", 1)
        if isinstance(start, bool) or not isinstance(start, int):
            start = 1
        return OrderedList(children=_parse_children(obj), start=start)
    if node_type == "listItem":
        return ListItem(children=_parse_children(obj))
    if node_type == "blockquote":
        return Blockquote(children=_parse_children(obj))
    if node_type == "codeBlock":
        return CodeBlock(language=_optional_str(attrs.get("language")), children=_parse_children(obj))
    if node_type in ("image", "resizableImage"):
        return Image(
            src=str(attrs.get("src") or ""),
            alt=_optional_str(attrs.get("alt")),
            title=_optional_str(attrs.get("title")),
            width=_optional_str(attrs.get("width")),
            height=_optional_str(attrs.get("height")),
        )
    if node_type == "imageGenerator":
        return AiImage(
            prompt=str(attrs.get("prompt") or ""),
            src=_optional_str(attrs.get("generatedImageUrl")),
        )
    if node_type == "hardBreak":
        return HardBreak()
    if node_type == "horizontalRule":
        return HorizontalRule()

    return UnknownNode(type_name=node_type, children=_parse_children(obj))
