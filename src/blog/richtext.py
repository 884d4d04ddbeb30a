"""Rich-text content tree for drafted sections.

Sections are stored as a small block/inline node tree rather than free
HTML so the publisher can translate them into the CMS's own node format
and the assembler can flatten them to text.  The writer produces the
tree from lightweight markup:

- ``[H3]Heading[/H3]`` for subheadings
- blank lines between paragraphs
- ``[anchor text](https://...)`` for inline citations

Persisted and external payloads may carry section content in several
historical shapes; :func:`decode_content` resolves them in a fixed
priority order.
"""

from __future__ import annotations

import html
import logging
import re
from collections.abc import Iterator
from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Node models
# ---------------------------------------------------------------------------


class TextNode(BaseModel):
    type: Literal["text"] = "text"
    data: str = ""


class LinkNode(BaseModel):
    type: Literal["link"] = "link"
    href: str
    target: str = "_blank"
    rel: str = "noopener noreferrer"
    nodes: list[TextNode] = Field(default_factory=list)


InlineNode = Annotated[TextNode | LinkNode, Field(discriminator="type")]


class HeadingNode(BaseModel):
    type: Literal["heading"] = "heading"
    level: int = 3
    nodes: list[InlineNode] = Field(default_factory=list)


class ParagraphNode(BaseModel):
    type: Literal["paragraph"] = "paragraph"
    nodes: list[InlineNode] = Field(default_factory=list)


BlockNode = Annotated[HeadingNode | ParagraphNode, Field(discriminator="type")]

_block_adapter: TypeAdapter[HeadingNode | ParagraphNode] = TypeAdapter(BlockNode)


class RichDocument(BaseModel):
    """Ordered list of block nodes."""

    nodes: list[BlockNode] = Field(default_factory=list)


class Unrecognized(BaseModel):
    """Content in a shape none of the decoders understood. Renders as nothing."""

    raw_type: str = ""


# ---------------------------------------------------------------------------
# Markup parsing
# ---------------------------------------------------------------------------

_H3_SPLIT_RE = re.compile(r"(\[H3\].*?\[/H3\])", re.DOTALL)
_H3_INNER_RE = re.compile(r"\[H3\](.*?)\[/H3\]", re.DOTALL)
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\n+")
_LINK_RE = re.compile(r"\[([^\]]+)\]\((https?://[^)]+)\)")
_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_TAG_RE = re.compile(r"<[^>]*>")


def close_unclosed_headings(text: str) -> str:
    """Close the last ``[H3]`` that has no ``[/H3]`` after it.

    The closing tag goes at the next blank line, else the next newline,
    else the end of the text.
    """
    opens = [m.start() for m in re.finditer(r"\[H3\]", text)]
    closes = [m.start() for m in re.finditer(r"\[/H3\]", text)]
    if len(opens) <= len(closes):
        return text

    for open_pos in reversed(opens):
        if any(close_pos > open_pos for close_pos in closes):
            continue
        search_from = open_pos + len("[H3]")
        insert_at = text.find("\n\n", search_from)
        if insert_at == -1:
            insert_at = text.find("\n", search_from)
        if insert_at == -1:
            insert_at = len(text)
        return text[:insert_at] + "[/H3]" + text[insert_at:]
    return text


def parse_inline(text: str) -> list[TextNode | LinkNode]:
    """Split text into text and link nodes."""
    nodes: list[TextNode | LinkNode] = []
    last = 0
    for match in _LINK_RE.finditer(text):
        if match.start() > last:
            nodes.append(TextNode(data=text[last : match.start()]))
        nodes.append(LinkNode(href=match.group(2), nodes=[TextNode(data=match.group(1))]))
        last = match.end()
    if last < len(text):
        nodes.append(TextNode(data=text[last:]))
    if not nodes:
        nodes.append(TextNode(data=text))
    return nodes


def parse_markup(text: str) -> RichDocument:
    """Parse writer markup into a :class:`RichDocument`."""
    blocks: list[HeadingNode | ParagraphNode] = []
    for part in _H3_SPLIT_RE.split(text):
        if not part.strip():
            continue
        if part.startswith("[H3]"):
            heading = _H3_INNER_RE.sub(r"\1", part, count=1).strip()
            blocks.append(HeadingNode(level=3, nodes=parse_inline(heading)))
            continue
        for para in _PARAGRAPH_SPLIT_RE.split(part):
            if para.strip():
                blocks.append(ParagraphNode(nodes=parse_inline(para.strip())))
    return RichDocument(nodes=blocks)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def inline_text(nodes: list[TextNode | LinkNode]) -> str:
    parts: list[str] = []
    for node in nodes:
        if isinstance(node, TextNode):
            parts.append(node.data)
        else:
            parts.append(inline_text(list(node.nodes)))
    return "".join(parts)


def to_html(document: RichDocument) -> str:
    """Render a document to HTML with all text and attributes escaped."""
    out: list[str] = []
    for block in document.nodes:
        if isinstance(block, HeadingNode):
            level = block.level or 3
            out.append(f"<h{level}>{html.escape(inline_text(block.nodes))}</h{level}>")
            continue
        out.append("<p>")
        for node in block.nodes:
            if isinstance(node, TextNode):
                out.append(html.escape(node.data))
            else:
                target = f' target="{html.escape(node.target)}"' if node.target else ""
                out.append(
                    f'<a href="{html.escape(node.href or "#")}"{target}>'
                    f"{html.escape(inline_text(list(node.nodes)))}</a>"
                )
        out.append("</p>")
    return "".join(out)


def to_text(content: RichDocument | str | Unrecognized) -> str:
    """Flatten content to plain text, blocks separated by blank lines."""
    if isinstance(content, str):
        return content
    if isinstance(content, Unrecognized):
        return ""
    return "\n\n".join(inline_text(block.nodes) for block in content.nodes)


def iter_links(content: RichDocument | str | Unrecognized) -> Iterator[tuple[str, str]]:
    """Yield ``(anchor_text, href)`` for every inline link."""
    if isinstance(content, str):
        for match in _MARKDOWN_LINK_RE.finditer(content):
            yield match.group(1), match.group(2)
        return
    if isinstance(content, Unrecognized):
        return
    for block in content.nodes:
        for node in block.nodes:
            if isinstance(node, LinkNode):
                yield inline_text(list(node.nodes)), node.href


# ---------------------------------------------------------------------------
# Shape decoding
# ---------------------------------------------------------------------------


def _decode_document(nodes: list[object]) -> RichDocument:
    blocks: list[HeadingNode | ParagraphNode] = []
    for raw in nodes:
        try:
            blocks.append(_block_adapter.validate_python(raw))
        except ValidationError:
            logger.debug("Skipping invalid content node: %r", raw)
    return RichDocument(nodes=blocks)


def decode_content(raw: object) -> RichDocument | str | Unrecognized:
    """Resolve section content from any of its known shapes.

    Checked in order:
    1. plain string: writer markup text
    2. an already-built :class:`RichDocument`
    3. mapping with a ``nodes`` list: node tree (invalid nodes skipped)
    4. mapping with an ``html`` or ``contentHtml`` string: tags stripped

    Anything else decodes to :class:`Unrecognized`.
    """
    if isinstance(raw, str):
        return raw
    if isinstance(raw, RichDocument | Unrecognized):
        return raw
    if isinstance(raw, dict):
        if set(raw) == {"raw_type"}:
            return Unrecognized.model_validate(raw)
        nodes = raw.get("nodes")
        if isinstance(nodes, list):
            return _decode_document(nodes)
        for key in ("html", "contentHtml"):
            value = raw.get(key)
            if isinstance(value, str):
                return html.unescape(_TAG_RE.sub("", value))
    logger.warning("Unrecognized section content shape: %s", type(raw).__name__)
    return Unrecognized(raw_type=type(raw).__name__)
