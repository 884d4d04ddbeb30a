"""Tests for section drafting."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from blogpipe.blog.models import ResearchData, Source, Tone, WriterOptions
from blogpipe.blog.richtext import HeadingNode, RichDocument
from blogpipe.blog.writer import SectionWriter, build_section, token_budget
from blogpipe.shared.errors import PreconditionError, SectionWriteError
from blogpipe.shared.llm import LLMError

DRAFTED = (
    "[H3]What Happens in a Sprain\n\n"
    "Ligaments stretch or tear. [NHS guidance](https://www.nhs.uk/conditions/sprains/)"
    " recommends rest.\n\nMost people recover within weeks."
)


def _research() -> ResearchData:
    return ResearchData(
        topic="Ankle Sprain Recovery",
        keywords=["ankle", "sprain"],
        sources=[
            Source(title="NHS - Sprains", content="Sprains advice", url="https://www.nhs.uk/conditions/sprains/"),
        ],
    )


class TestTokenBudget:
    def test_clamped(self):
        assert token_budget(100) == 1000
        assert token_budget(300) == 1000
        assert token_budget(1000) == 2400
        assert token_budget(5000) == 4000


class TestBuildSection:
    def test_builds_document_and_html(self):
        section = build_section("Early Care", DRAFTED, 2)
        assert section.section_number == 2
        assert isinstance(section.content, RichDocument)
        assert isinstance(section.content.nodes[0], HeadingNode)
        assert "<h3>What Happens in a Sprain</h3>" in section.content_html
        assert section.word_count == len(DRAFTED.split())


class TestWriteSection:
    def test_writes_section(self):
        complete = MagicMock(return_value=DRAFTED)
        options = WriterOptions(tone=Tone.FRIENDLY, target_audience="footballers", word_count_per_section=1000)

        section = SectionWriter(complete).write_section(
            "Ankle Sprain Recovery", "Early Care", _research(), 1, options
        )

        assert section.title == "Early Care"
        assert section.section_number == 2
        kwargs = complete.call_args.kwargs
        assert kwargs["max_tokens"] == 2400
        assert kwargs["temperature"] == 0.6
        prompt = complete.call_args.args[1]
        assert "1000-word blog section" in prompt
        assert "Tone: friendly" in prompt
        assert "Target audience: footballers" in prompt
        assert "https://www.nhs.uk/conditions/sprains/" in prompt
        assert "[H3]" in prompt

    def test_no_headers_option(self):
        complete = MagicMock(return_value="Plain text.")
        SectionWriter(complete).write_section(
            "Neck Pain", "Intro", _research(), 0, WriterOptions(include_headers=False)
        )
        assert "[H3]" not in complete.call_args.args[1]

    def test_requires_research(self):
        complete = MagicMock()
        with pytest.raises(PreconditionError):
            SectionWriter(complete).write_section("Neck Pain", "Intro", None, 0)
        complete.assert_not_called()

    def test_llm_failure(self):
        complete = MagicMock(side_effect=LLMError("overloaded"))
        with pytest.raises(SectionWriteError) as exc_info:
            SectionWriter(complete).write_section("Neck Pain", "Intro", _research(), 3)
        assert exc_info.value.index == 3
        assert exc_info.value.title == "Intro"
        assert "overloaded" in str(exc_info.value)

    def test_blank_output(self):
        complete = MagicMock(return_value="   ")
        with pytest.raises(SectionWriteError, match="empty response"):
            SectionWriter(complete).write_section("Neck Pain", "Intro", _research(), 0)

    def test_invalid_word_count_rejected(self):
        with pytest.raises(ValueError):
            WriterOptions(word_count_per_section=0)


class TestManualSection:
    def test_uses_supplied_text(self):
        section = SectionWriter.manual_section("Intro", "Hand written.\n\nSecond para.", 0)
        assert section.section_number == 1
        assert len(section.content.nodes) == 2
        assert section.word_count == 4
