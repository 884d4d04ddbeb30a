"""Blog content generation for a physiotherapy clinic.

Turns a topic into researched, sectioned, SEO-enriched articles and keeps
each draft's progress in a local JSON store until it is published to Wix.
"""

from blogpipe.blog.assembler import (
    assemble,
    enrich_metadata,
    format_as_html,
    format_as_markdown,
    merge_metadata,
    reset_metadata_for_context,
    validate,
)
from blogpipe.blog.models import (
    FAQ,
    AssembledPost,
    Draft,
    DraftStatus,
    Metadata,
    OutboundLink,
    PublishAction,
    PublishResult,
    ResearchData,
    Section,
    Source,
    Tone,
    ValidationResult,
    WriterOptions,
)
from blogpipe.blog.outline import OutlineGenerator
from blogpipe.blog.research import (
    ResearchAggregator,
    filter_by_selection,
    merge_research,
)
from blogpipe.blog.richtext import RichDocument, parse_markup, to_text
from blogpipe.blog.store import DraftStore
from blogpipe.blog.writer import SectionWriter

__all__ = [
    "AssembledPost",
    "Draft",
    "DraftStatus",
    "DraftStore",
    "FAQ",
    "Metadata",
    "OutboundLink",
    "OutlineGenerator",
    "PublishAction",
    "PublishResult",
    "ResearchAggregator",
    "ResearchData",
    "RichDocument",
    "Section",
    "SectionWriter",
    "Source",
    "Tone",
    "ValidationResult",
    "WriterOptions",
    "assemble",
    "enrich_metadata",
    "filter_by_selection",
    "format_as_html",
    "format_as_markdown",
    "merge_metadata",
    "merge_research",
    "parse_markup",
    "reset_metadata_for_context",
    "to_text",
    "validate",
]
