"""Outline generation: an ordered list of section titles for a topic."""

from __future__ import annotations

import logging

from blogpipe.blog.models import ResearchData
from blogpipe.blog.prompts import OUTLINE_SYSTEM_PROMPT, build_outline_prompt
from blogpipe.shared.errors import OutlineError
from blogpipe.shared.llm import CompleteFn, LLMError, extract_json_array

logger = logging.getLogger(__name__)

OUTLINE_MAX_TOKENS = 500
OUTLINE_TEMPERATURE = 0.7


def normalize_outline(raw: str, section_count: int) -> list[str]:
    """Coerce model output into exactly *section_count* titles.

    Uses the first JSON array in the text. Non-string items are
    stringified, blank items dropped. Missing positions are filled
    with ``Section N``; extras are cut.
    """
    titles: list[str] = []
    for item in extract_json_array(raw):
        if item is None:
            continue
        title = item.strip() if isinstance(item, str) else str(item).strip()
        if title:
            titles.append(title)

    while len(titles) < section_count:
        titles.append(f"Section {len(titles) + 1}")
    return titles[:section_count]


class OutlineGenerator:
    """Propose section titles using the generative text capability."""

    def __init__(self, complete: CompleteFn) -> None:
        self.complete = complete

    def outline(self, topic: str, research: ResearchData, section_count: int = 5) -> list[str]:
        if section_count < 1:
            raise ValueError(f"section_count must be >= 1, got {section_count}")

        try:
            raw = self.complete(
                OUTLINE_SYSTEM_PROMPT,
                build_outline_prompt(topic, research, section_count),
                max_tokens=OUTLINE_MAX_TOKENS,
                temperature=OUTLINE_TEMPERATURE,
                label="outline",
            )
        except LLMError as exc:
            raise OutlineError(f"Outline generation failed for {topic!r}: {exc}") from exc

        titles = normalize_outline(raw, section_count)
        logger.info("Outline for %r: %d sections", topic, len(titles))
        return titles
