"""Prompt templates for outline generation and section drafting."""

from blogpipe.blog.models import ResearchData, WriterOptions

SNIPPET_CHARS = 120

WRITER_SYSTEM_PROMPT = (
    "You are an expert physiotherapy content writer. Write engaging,"
    " informative, and accurate content for a physiotherapy blog. You must"
    " follow citation instructions precisely. Use UK English spelling and"
    " grammar (e.g., colour, analyse, organised, physiotherapy)."
)

OUTLINE_SYSTEM_PROMPT = (
    "You plan physiotherapy clinic blog articles. Reply with a JSON array of"
    " section titles and nothing else."
)

_CITATION_INSTRUCTION = (
    "IMPORTANT - CITATION REQUIREMENT:\n"
    "You MUST cite the research sources naturally throughout the content."
    " When you reference information from a source, use this format to create"
    " a citation:\n"
    "[citation_text](source_url)\n\n"
    "For example: According to [NHS guidance on physiotherapy]"
    "(https://www.nhs.uk/conditions/physiotherapy/), treatment can help"
    " improve recovery."
)

_CITATION_GUIDELINES = (
    "Guidelines:\n"
    "- Create 2-4 citations naturally integrated into your writing\n"
    '- Use meaningful anchor text (e.g., "Mayo Clinic research", "NHS guidelines",'
    ' "expert recommendations") - NOT generic terms\n'
    "- The anchor text should be 2-5 words and make sense in context\n"
    "- Each citation should be attributed to a different source when possible\n"
    "- Always use the exact source URLs provided above"
)

_HEADER_INSTRUCTION = (
    "Include relevant subheadings for better readability. Format subheadings"
    " with [H3] prefix like this:\n"
    "[H3]Subheading Title[/H3]\n"
    "Content for this subsection..."
)


def render_source_list(research: ResearchData) -> str:
    """Numbered source list: ``n. "title" (url): snippet...``."""
    lines: list[str] = []
    usable = [s for s in research.sources if s.title or s.content]
    for i, source in enumerate(usable, 1):
        snippet = source.content[:SNIPPET_CHARS]
        suffix = "..." if snippet else ""
        lines.append(
            f'{i}. "{source.title or "Source"}" ({source.url or "no url"}): {snippet}{suffix}'
        )
    return "\n".join(lines)


def build_section_prompt(
    topic: str,
    section_title: str,
    research: ResearchData,
    options: WriterOptions,
) -> str:
    sources = render_source_list(research) or "No specific sources available"
    keywords = ", ".join(research.keywords) if research.keywords else topic
    headers = _HEADER_INSTRUCTION if options.include_headers else ""

    return (
        f'Write a {options.word_count_per_section}-word blog section titled'
        f' "{section_title}" for a post about "{topic}".\n\n'
        f"Tone: {options.tone}\n"
        f"Target audience: {options.target_audience}\n\n"
        f"{_CITATION_INSTRUCTION}\n\n"
        f"Available sources to cite from:\n{sources}\n\n"
        f"{_CITATION_GUIDELINES}\n\n"
        f"Keywords to incorporate: {keywords}\n\n"
        f"{headers}\n\n"
        "Write engaging, informative content that helps the reader understand"
        " and apply the information. Use UK English spelling and grammar throughout."
    )


def build_outline_prompt(topic: str, research: ResearchData, section_count: int) -> str:
    titles = ", ".join(s.title for s in research.sources if s.title)
    return (
        f'Based on the topic "{topic}" and the following research sources, create'
        f" a detailed blog outline with exactly {section_count} main sections."
        " Use UK English spelling and grammar.\n\n"
        f"Topic: {topic}\n"
        f"Research Sources: {titles}\n\n"
        f"Return ONLY a JSON array of {section_count} section titles, like this format:\n"
        f'["Introduction to {topic}", "Key Benefits", "How It Works", "Expert Tips", "Conclusion"]'
    )
