"""Section drafting: one cited, structured section per call."""

from __future__ import annotations

import logging
import re

from blogpipe.blog.models import ResearchData, Section, WriterOptions
from blogpipe.blog.prompts import WRITER_SYSTEM_PROMPT, build_section_prompt
from blogpipe.blog.richtext import close_unclosed_headings, parse_markup, to_html
from blogpipe.shared.errors import PreconditionError, SectionWriteError
from blogpipe.shared.llm import CompleteFn, LLMError
from blogpipe.shared.text import word_count

logger = logging.getLogger(__name__)

WRITER_TEMPERATURE = 0.6
MIN_SECTION_TOKENS = 1000
MAX_SECTION_TOKENS = 4000

_CITATION_RE = re.compile(r"\[.*?\]\(https?://.*?\)")


def token_budget(words: int) -> int:
    """Roughly two tokens per word plus headroom, clamped."""
    return max(MIN_SECTION_TOKENS, min(MAX_SECTION_TOKENS, words * 2 + 400))


def build_section(title: str, text: str, section_number: int) -> Section:
    """Turn writer markup into a stored Section."""
    document = parse_markup(close_unclosed_headings(text))
    return Section(
        title=title,
        content=document,
        content_html=to_html(document),
        section_number=section_number,
        word_count=word_count(text),
    )


class SectionWriter:
    """Draft sections with the generative text capability."""

    def __init__(self, complete: CompleteFn) -> None:
        self.complete = complete

    def write_section(
        self,
        topic: str,
        section_title: str,
        research: ResearchData | None,
        section_index: int,
        options: WriterOptions | None = None,
    ) -> Section:
        """Draft the section at *section_index* (0-based).

        Raises:
            PreconditionError: No research available.
            SectionWriteError: Generation failed or produced nothing.
        """
        if research is None:
            raise PreconditionError("Research data is required before writing sections")
        opts = options or WriterOptions()

        prompt = build_section_prompt(topic, section_title, research, opts)
        try:
            text = self.complete(
                WRITER_SYSTEM_PROMPT,
                prompt,
                max_tokens=token_budget(opts.word_count_per_section),
                temperature=WRITER_TEMPERATURE,
                label=f"section-{section_index}",
            )
        except LLMError as exc:
            raise SectionWriteError(section_index, section_title, str(exc)) from exc

        if not text.strip():
            raise SectionWriteError(section_index, section_title, "empty response")

        citations = _CITATION_RE.findall(text)
        logger.info(
            "Drafted section %d %r: %d words, %d citations",
            section_index, section_title, word_count(text), len(citations),
        )
        return build_section(section_title, text, section_index + 1)

    @staticmethod
    def manual_section(title: str, text: str, section_index: int) -> Section:
        """Build a section from caller-supplied text without generation."""
        return build_section(title, text, section_index + 1)
