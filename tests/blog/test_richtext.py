"""Tests for the section rich-text tree: parsing, rendering, decoding."""

from __future__ import annotations

from blogpipe.blog.models import Section
from blogpipe.blog.richtext import (
    HeadingNode,
    LinkNode,
    ParagraphNode,
    RichDocument,
    TextNode,
    Unrecognized,
    close_unclosed_headings,
    decode_content,
    iter_links,
    parse_markup,
    to_html,
    to_text,
)

MARKUP = (
    "[H3]Early Treatment[/H3]\n"
    "Rest and ice help. See [NHS guidance](https://www.nhs.uk/conditions/sprains/).\n\n"
    "Gentle movement follows."
)


class TestCloseUnclosedHeadings:
    def test_closes_at_blank_line(self):
        assert close_unclosed_headings("[H3]Title\n\nBody") == "[H3]Title[/H3]\n\nBody"

    def test_closes_at_newline(self):
        assert close_unclosed_headings("[H3]Title\nBody") == "[H3]Title[/H3]\nBody"

    def test_closes_at_end(self):
        assert close_unclosed_headings("Intro [H3]Title") == "Intro [H3]Title[/H3]"

    def test_balanced_untouched(self):
        assert close_unclosed_headings(MARKUP) == MARKUP


class TestParseMarkup:
    def test_heading_and_paragraphs(self):
        doc = parse_markup(MARKUP)
        assert [type(b) for b in doc.nodes] == [HeadingNode, ParagraphNode, ParagraphNode]
        assert doc.nodes[0].nodes[0].data == "Early Treatment"

    def test_links_become_link_nodes(self):
        doc = parse_markup(MARKUP)
        inline = doc.nodes[1].nodes
        assert isinstance(inline[0], TextNode)
        assert isinstance(inline[1], LinkNode)
        assert inline[1].href == "https://www.nhs.uk/conditions/sprains/"
        assert inline[1].nodes[0].data == "NHS guidance"
        assert inline[2].data == "."

    def test_link_text_stops_at_first_bracket(self):
        doc = parse_markup("See [a] and [b](https://x.example).")
        inline = doc.nodes[0].nodes
        assert inline[0].data == "See [a] and "
        assert inline[1].href == "https://x.example"
        assert inline[1].nodes[0].data == "b"

    def test_non_http_links_stay_text(self):
        doc = parse_markup("See [notes](ftp://example.org/x).")
        assert all(isinstance(n, TextNode) for n in doc.nodes[0].nodes)

    def test_blank_input(self):
        assert parse_markup("   \n\n ").nodes == []


class TestRendering:
    def test_to_text_joins_blocks(self):
        assert to_text(parse_markup(MARKUP)) == (
            "Early Treatment\n\nRest and ice help. See NHS guidance.\n\nGentle movement follows."
        )

    def test_to_text_passthrough_and_unrecognized(self):
        assert to_text("plain") == "plain"
        assert to_text(Unrecognized(raw_type="int")) == ""

    def test_to_html_escapes(self):
        doc = parse_markup("Use <ice> & rest [a \"b\"](https://x.org/?a=1&b=2)")
        rendered = to_html(doc)
        assert "&lt;ice&gt; &amp; rest" in rendered
        assert 'href="https://x.org/?a=1&amp;b=2"' in rendered
        assert "a &quot;b&quot;" in rendered
        assert "<ice>" not in rendered

    def test_to_html_structure(self):
        rendered = to_html(parse_markup(MARKUP))
        assert rendered.startswith("<h3>Early Treatment</h3><p>")
        assert 'target="_blank"' in rendered

    def test_iter_links(self):
        assert list(iter_links(parse_markup(MARKUP))) == [
            ("NHS guidance", "https://www.nhs.uk/conditions/sprains/"),
        ]
        assert list(iter_links("see [x](https://x.org)")) == [("x", "https://x.org")]
        assert list(iter_links(Unrecognized())) == []


class TestDecodeContent:
    def test_string(self):
        assert decode_content("text") == "text"

    def test_node_tree(self):
        raw = parse_markup(MARKUP).model_dump()
        decoded = decode_content(raw)
        assert isinstance(decoded, RichDocument)
        assert decoded == parse_markup(MARKUP)

    def test_invalid_nodes_skipped(self):
        raw = {"nodes": [{"type": "paragraph", "nodes": []}, {"type": "video"}, 42]}
        decoded = decode_content(raw)
        assert len(decoded.nodes) == 1

    def test_html_payload(self):
        assert decode_content({"html": "<p>Knee &amp; hip</p>"}) == "Knee & hip"
        assert decode_content({"contentHtml": "<b>Bold</b>"}) == "Bold"

    def test_unknown_shapes(self):
        assert isinstance(decode_content(42), Unrecognized)
        assert isinstance(decode_content({"other": 1}), Unrecognized)
        assert decode_content(None).raw_type == "NoneType"

    def test_unrecognized_round_trips_through_section(self):
        section = Section(title="x", content=12)
        reloaded = Section.model_validate(section.model_dump())
        assert isinstance(reloaded.content, Unrecognized)
        assert reloaded.content.raw_type == "int"

    def test_section_reload_keeps_document(self):
        section = Section(title="x", content=parse_markup(MARKUP))
        reloaded = Section.model_validate_json(section.model_dump_json())
        assert isinstance(reloaded.content, RichDocument)
        assert to_text(reloaded.content) == to_text(section.content)
