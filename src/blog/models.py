"""Pure data models for blog generation.

All Pydantic models and enums live here. No I/O, no business logic,
no network calls. Services import from this module; this module
only imports from stdlib, third-party packages, and blogpipe.shared.*.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from blogpipe.blog.richtext import RichDocument, Unrecognized, decode_content
from blogpipe.shared.text import hostname, slugify

DEFAULT_AUTHOR = "JT Physiotherapy"
DEFAULT_CATEGORY = "Health & Wellness"


def _now() -> datetime:
    return datetime.now(UTC)


def _today() -> str:
    return date.today().isoformat()


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DraftStatus(StrEnum):
    """Lifecycle of a draft. Ordered: each value is further along."""

    DRAFT = "draft"
    WRITING = "writing"
    ASSEMBLED = "assembled"
    PUBLISHED = "published"

    @property
    def rank(self) -> int:
        return list(DraftStatus).index(self)


class Tone(StrEnum):
    """Writing tone for drafted sections."""

    PROFESSIONAL = "professional"
    FRIENDLY = "friendly"
    EXPERT = "expert"
    CLINICAL = "clinical"


class PublishAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"


# ---------------------------------------------------------------------------
# Research
# ---------------------------------------------------------------------------


class Source(BaseModel):
    """A single research reference."""

    title: str = ""
    content: str = ""
    source: str = ""
    url: str | None = None
    relevance_score: float = 0.0

    @property
    def key(self) -> str:
        """Identity key: the URL when present, otherwise the title."""
        return self.url or self.title

    @property
    def label(self) -> str:
        """Short display label used in citations and keyword lists."""
        return (self.source or hostname(self.url) or self.title or "").strip()


class ResearchData(BaseModel):
    """The retrieved source set for a topic."""

    topic: str
    keywords: list[str] = Field(default_factory=list)
    sources: list[Source] = Field(default_factory=list)
    location_info: dict[str, object] | None = None
    timestamp: datetime = Field(default_factory=_now)


# ---------------------------------------------------------------------------
# Sections and metadata
# ---------------------------------------------------------------------------


class Section(BaseModel):
    """One drafted unit of the article."""

    title: str
    content: RichDocument | str | Unrecognized = ""
    content_html: str = ""
    section_number: int = 1
    word_count: int = 0

    @field_validator("content", mode="before")
    @classmethod
    def _decode_content(cls, value: object) -> object:
        return decode_content(value)


class FAQ(BaseModel):
    question: str
    answer: str


class OutboundLink(BaseModel):
    title: str
    url: str
    source: str


class Metadata(BaseModel):
    """Editorial and SEO attributes of a draft."""

    title: str = ""
    slug: str = ""
    excerpt: str = ""
    seo_title: str = ""
    seo_description: str = ""
    seo_keywords: list[str] = Field(default_factory=list)
    featured_image_url: str | None = None
    author: str = DEFAULT_AUTHOR
    publish_date: str = Field(default_factory=_today)
    read_time: int = 0
    category: str = DEFAULT_CATEGORY
    featured: bool = False
    faqs: list[FAQ] = Field(default_factory=list)
    checklist: list[str] = Field(default_factory=list)
    outbound_links: list[OutboundLink] = Field(default_factory=list)

    @classmethod
    def for_topic(cls, topic: str) -> Metadata:
        """Topic-derived defaults for a fresh draft."""
        return cls(title=topic, seo_title=topic, slug=slugify(topic))


# ---------------------------------------------------------------------------
# Draft
# ---------------------------------------------------------------------------


class Draft(BaseModel):
    """A persisted, in-progress or published article."""

    id: str
    topic: str
    location: str | None = None
    sport: str | None = None
    status: DraftStatus = DraftStatus.DRAFT
    sections: list[Section | None] = Field(default_factory=list)
    metadata: Metadata = Field(default_factory=Metadata)
    research_data: ResearchData | None = None
    selected_source_ids: list[str] = Field(default_factory=list)
    include_checklist: bool = True
    include_faq: bool = True
    include_internal_cta: bool = True
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    published_at: datetime | None = None
    external_post_id: str | None = None

    def written_sections(self) -> list[Section]:
        """Non-empty sections in index order."""
        return [s for s in self.sections if s is not None]


# ---------------------------------------------------------------------------
# Writer options
# ---------------------------------------------------------------------------


class WriterOptions(BaseModel):
    tone: Tone = Tone.PROFESSIONAL
    target_audience: str = "physiotherapy patients"
    word_count_per_section: int = Field(default=300, gt=0)
    include_headers: bool = True


# ---------------------------------------------------------------------------
# Assembly and publishing
# ---------------------------------------------------------------------------


class AssembledPost(BaseModel):
    """Publication-ready article produced by the assembler."""

    title: str
    slug: str
    excerpt: str
    seo_title: str
    seo_description: str
    seo_keywords: list[str] = Field(default_factory=list)
    featured_image_url: str | None = None
    content: str
    sections: list[Section] = Field(default_factory=list)
    faqs: list[FAQ] = Field(default_factory=list)
    checklist: list[str] = Field(default_factory=list)
    outbound_links: list[OutboundLink] = Field(default_factory=list)
    metadata: Metadata
    location: str | None = None
    sport: str | None = None
    research_data: ResearchData | None = None


class ValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


class PublishResult(BaseModel):
    action: PublishAction
    external_id: str
    draft_handle: str | None = None
    url: str | None = None
    media_url: str | None = None
