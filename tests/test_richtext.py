"""
Tests for rich-text parsing and HTML rendering.
"""
import pytest

from broadcaster.errors import ContentParseError
from broadcaster.richtext import (
    ERROR_FRAGMENT,
    content_digest,
    parse_document,
    render_content,
    render_document,
    render_email_preview,
)
from broadcaster.richtext.nodes import Paragraph, Text, UnknownNode


def doc(*children):
    return {"type": "doc", "content": list(children)}


def para(*children, **attrs):
    node = {"type": "paragraph", "content": list(children)}
    if attrs:
        node["attrs"] = attrs
    return node


def text(value, *marks):
    node = {"type": "text", "text": value}
    if marks:
        node["marks"] = list(marks)
    return node


class TestParser:
    def test_parses_paragraph(self):
        document = parse_document(doc(para(text("Hi"))))
        assert document.children == (Paragraph(children=(Text(text="Hi"),)),)

    def test_unknown_node_kept(self):
        document = parse_document(doc({"type": "callout", "content": [text("x")]}))
        assert isinstance(document.children[0], UnknownNode)
        assert document.children[0].type_name == "callout"

    def test_unknown_mark_dropped(self):
        document = parse_document(doc(para(text("x", {"type": "sparkle"}))))
        assert document.children[0].children[0].marks == ()

    @pytest.mark.parametrize("raw", [
        [],
        "doc",
        {"type": "paragraph"},
        {"type": "doc", "content": "nope"},
        doc({"type": "text", "text": 5}),
        doc({"content": []}),
        doc({"type": "heading", "attrs": {"level": "two"}}),
        doc(para(text("x", "bold"))),
    ])
    def test_malformed_documents_rejected(self, raw):
        with pytest.raises(ContentParseError):
            parse_document(raw)

    def test_heading_level_clamped(self):
        document = parse_document(doc({"type": "heading", "attrs": {"level": 9}}))
        assert document.children[0].level == 6


class TestRenderer:
    def test_basic_blocks(self):
        html = render_content(doc(
            {"type": "heading", "attrs": {"level": 2}, "content": [text("Title")]},
            para(text("Body")),
            {"type": "bulletList", "content": [{"type": "listItem", "content": [para(text("one"))]}]},
            {"type": "horizontalRule"},
        ))
        assert html == "<h2>Title</h2><p>Body</p><ul><li><p>one</p></li></ul><hr>"

    def test_marks_nest_first_outermost(self):
        html = render_content(doc(para(text("x", {"type": "bold"}, {"type": "italic"}))))
        assert html == "<p><strong><em>x</em></strong></p>"

    def test_link(self):
        html = render_content(doc(para(text("go", {"type": "link", "attrs": {"href": "https://a.io/?q=1&r=2"}}))))
        assert html == '<p><a href="https://a.io/?q=1&amp;r=2" rel="noopener noreferrer">go</a></p>'

    def test_javascript_link_dropped(self):
        html = render_content(doc(para(text("x", {"type": "link", "attrs": {"href": "javascript:alert(1)"}}))))
        assert html == "<p>x</p>"

    def test_text_is_escaped(self):
        assert render_content(doc(para(text("<b>&</b>")))) == "<p>&lt;b&gt;&amp;&lt;/b&gt;</p>"

    def test_alignment(self):
        html = render_content(doc(para(text("c"), textAlign="center")))
        assert html == '<p style="text-align: center">c</p>'

    def test_ordered_list_start(self):
        html = render_content(doc({"type": "orderedList", "attrs": {"start": 3}, "content": []}))
        assert html == '<ol start="3"></ol>'

    def test_code_block(self):
        html = render_content(doc({
            "type": "codeBlock",
            "attrs": {"language": "python"},
            "content": [text("a < b")],
        }))
        assert html == '<pre><code class="language-python">a &lt; b</code></pre>'

    def test_images(self):
        html = render_content(doc(
            {"type": "image", "attrs": {"src": "https://x.io/a.png", "alt": "A"}},
            {"type": "resizableImage", "attrs": {"src": "https://x.io/b.png", "width": "300"}},
            {"type": "image", "attrs": {"src": ""}},
        ))
        assert html == '<img src="https://x.io/a.png" alt="A"><img src="https://x.io/b.png" width="300">'

    def test_ai_image(self):
        html = render_content(doc({
            "type": "imageGenerator",
            "attrs": {"prompt": "a cat", "generatedImageUrl": "https://x.io/cat.png"},
        }))
        assert html == (
            '<div data-type="image-generator" data-prompt="a cat">'
            '<img src="https://x.io/cat.png" alt="a cat"></div>'
        )

    def test_unknown_node_renders_children(self):
        html = render_content(doc({"type": "callout", "content": [para(text("kept"))]}))
        assert html == "<div><p>kept</p></div>"

    def test_deterministic(self):
        content = doc(para(text("same", {"type": "bold"})), {"type": "hardBreak"})
        assert render_content(content) == render_content(content)
        assert render_document(parse_document(content)) == render_content(content)


class TestRenderContent:
    """``render_content`` accepts anything stored and never raises."""

    def test_none(self):
        assert render_content(None) == ""

    def test_html_passthrough(self):
        assert render_content("<p>Already HTML</p>") == "<p>Already HTML</p>"

    def test_json_string(self):
        assert render_content('{"type": "doc", "content": [{"type": "paragraph"}]}') == "<p></p>"

    def test_plain_text(self):
        assert render_content("Tom & Jerry") == "<p>Tom &amp; Jerry</p>"

    def test_blank_text(self):
        assert render_content("   ") == ""

    @pytest.mark.parametrize("content", [[1, 2], {"type": "doc", "content": "x"}, 42])
    def test_malformed_yields_placeholder(self, content):
        assert render_content(content) == ERROR_FRAGMENT


class TestDigestAndPreview:
    def test_digest_ignores_key_order(self):
        assert content_digest({"a": 1, "b": 2}) == content_digest({"b": 2, "a": 1})

    def test_digest_changes_with_content(self):
        assert content_digest(doc(para(text("a")))) != content_digest(doc(para(text("b"))))

    def test_preview_wraps_body(self):
        page = render_email_preview("<p>Hi</p>")
        assert page.startswith("<!DOCTYPE html>")
        assert "<body><p>Hi</p></body>" in page
