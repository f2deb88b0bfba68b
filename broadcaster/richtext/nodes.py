"""
Typed node tree for rich-text broadcast content.

The node set is closed: every kind the editor produces has its own
dataclass, and anything else is carried as ``UnknownNode`` so that newer
documents still render.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union


class TextAlign(Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFY = "justify"


class MarkKind(Enum):
    BOLD = "bold"
    ITALIC = "italic"
    UNDERLINE = "underline"
    STRIKE = "strike"
    CODE = "code"
    LINK = "link"
    HIGHLIGHT = "highlight"
    SUBSCRIPT = "subscript"
    SUPERSCRIPT = "superscript"
    TEXT_STYLE = "textStyle"


@dataclass(frozen=True)
class Mark:
    kind: MarkKind
    href: Optional[str] = None
    target: Optional[str] = None
    color: Optional[str] = None


@dataclass(frozen=True)
class Text:
    text: str
    marks: Tuple[Mark, ...] = ()


@dataclass(frozen=True)
class HardBreak:
    pass


@dataclass(frozen=True)
class HorizontalRule:
    pass


@dataclass(frozen=True)
class Image:
    src: str
    alt: Optional[str] = None
    title: Optional[str] = None
    width: Optional[str] = None
    height: Optional[str] = None


@dataclass(frozen=True)
class AiImage:
    """Editor block holding a generated image and the prompt it came from."""
    prompt: str
    src: Optional[str] = None


@dataclass(frozen=True)
class Paragraph:
    children: Tuple["Node", ...] = ()
    align: Optional[TextAlign] = None


@dataclass(frozen=True)
class Heading:
    level: int
    children: Tuple["Node", ...] = ()
    align: Optional[TextAlign] = None


@dataclass(frozen=True)
class BulletList:
    children: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class OrderedList:
    children: Tuple["Node", ...] = ()
    start: int = 1


@dataclass(frozen=True)
class ListItem:
    children: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class Blockquote:
    children: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class CodeBlock:
    language: Optional[str] = None
    children: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class UnknownNode:
    type_name: str
    children: Tuple["Node", ...] = ()


@dataclass(frozen=True)
class Document:
    children: Tuple["Node", ...] = field(default_factory=tuple)


Node = Union[
    Text,
    HardBreak,
    HorizontalRule,
    Image,
    AiImage,
    Paragraph,
    Heading,
    BulletList,
    OrderedList,
    ListItem,
    Blockquote,
    CodeBlock,
    UnknownNode,
]
