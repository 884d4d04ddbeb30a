"""Assembly of drafted sections into a publication-ready post.

Everything here is pure: no I/O and no network.  ``assemble`` flattens
the sections, fills in contextual SEO metadata without clobbering
editor-provided values, and attaches the FAQ, recovery checklist and
outbound links.  ``validate`` reports problems as data.
"""

from __future__ import annotations

import html
import re
from datetime import date

from blogpipe.blog.models import (
    DEFAULT_AUTHOR,
    DEFAULT_CATEGORY,
    FAQ,
    AssembledPost,
    Metadata,
    OutboundLink,
    ResearchData,
    Section,
    Source,
    ValidationResult,
)
from blogpipe.blog.research import filter_by_selection
from blogpipe.blog.richtext import RichDocument, iter_links, parse_markup, to_html, to_text
from blogpipe.shared.text import natural_join, read_time_minutes, slugify, unique

BRAND = "JT Physiotherapy"
MAX_SEO_KEYWORDS = 20
MIN_CONTENT_CHARS = 300
CITED_SOURCE_LIMIT = 3

RECOVERY_CHECKLIST: list[str] = [
    "✓ Schedule assessment with qualified physiotherapist",
    "✓ Follow personalized exercise program daily",
    "✓ Apply ice/heat as advised for pain management",
    "✓ Maintain proper posture throughout the day",
    "✓ Avoid activities that aggravate symptoms",
    "✓ Attend all scheduled therapy sessions",
    "✓ Track pain levels and progress in journal",
    "✓ Strengthen supporting muscle groups",
    "✓ Practice relaxation and stress management",
    "✓ Return to activities gradually as cleared",
]

_CASE_STUDY_SUFFIX_RE = re.compile(r" (Case Study|Example|Story|Experience)$", re.IGNORECASE)
_LOCATION_SPLIT_RE = re.compile(r"[|,]")


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


def section_body(section: Section) -> str:
    return to_text(section.content)


def assemble_content(sections: list[Section]) -> str:
    """``## title`` followed by the section body, per section."""
    return "".join(f"## {s.title}\n\n{section_body(s)}\n\n" for s in sections)


def extract_condition_name(topic: str) -> str:
    """The condition a topic is about.

    "Neck Pain and Cardiff City striker..." -> "Neck Pain";
    "Runner's Knee Case Study" -> "Runner's Knee".
    """
    if " and " in topic:
        return topic.split(" and ")[0].strip()
    return _CASE_STUDY_SUFFIX_RE.sub("", topic).strip()


def generate_faqs(topic: str) -> list[FAQ]:
    condition = extract_condition_name(topic)
    return [
        FAQ(
            question=f"What should I expect when treating {condition}?",
            answer=(
                "Treatment depends on severity. Initially, expect assessment, personalized"
                " exercises, and advice. Most patients see improvement within 2-4 weeks of"
                " consistent treatment."
            ),
        ),
        FAQ(
            question=f"How long does recovery from {condition} typically take?",
            answer=(
                "Recovery varies by individual and severity. Mild cases may resolve in weeks,"
                " while complex cases may require several months of targeted physiotherapy."
            ),
        ),
        FAQ(
            question=f"Can physiotherapy prevent {condition} from returning?",
            answer=(
                "Yes. Strengthening exercises, proper posture, and ergonomic adjustments"
                " significantly reduce recurrence risk."
            ),
        ),
        FAQ(
            question=f"Is {condition} painful to treat?",
            answer=(
                "Physiotherapy aims to reduce pain progressively. Some discomfort is normal"
                " during rehabilitation, but treatment should not cause sharp pain."
            ),
        ),
    ]


def extract_outbound_links(sections: list[Section], sources: list[Source]) -> list[OutboundLink]:
    """Source URLs first, then links cited inside sections, deduped by URL."""
    links: dict[str, OutboundLink] = {}
    for source in sources:
        if source.url and source.url not in links:
            links[source.url] = OutboundLink(
                title=source.title, url=source.url, source=source.source or "Research"
            )
    for section in sections:
        for text, url in iter_links(section.content):
            if url not in links:
                links[url] = OutboundLink(title=text, url=url, source=section.title)
    return list(links.values())


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def _blank(value: str | None) -> bool:
    return not value or not value.strip()


def enrich_metadata(
    base: Metadata,
    *,
    topic: str,
    research: ResearchData,
    location: str | None = None,
    sport: str | None = None,
) -> Metadata:
    """Fill contextual defaults into *base* without overwriting edits.

    Title, SEO title and slug are only replaced while they still hold
    the topic-derived default (or are empty).  Excerpt and description
    are only filled when blank.  Keywords are extended, never dropped.
    """
    topic = topic.strip()
    location_phrase = f" in {location}" if location else ""
    sport_phrase = f" for {sport}" if sport else ""

    labels = [s.label for s in research.sources if s.label]
    cited = natural_join(labels[:CITED_SOURCE_LIMIT])
    source_sentence = f" Insights referenced from {cited}." if cited else ""

    if location:
        default_title = f"{topic} Physiotherapy in {location}"
    elif sport:
        default_title = f"{topic} Support for {sport}"
    else:
        default_title = f"{topic} Treatment Guide"

    default_seo_title = f"{topic}{sport_phrase}{f' | {location}' if location else ''} | {BRAND}"
    excerpt_fallback = (
        f"Comprehensive guide to {topic}{sport_phrase}{location_phrase}, covering causes,"
        f" recovery timelines, and prevention strategies.{source_sentence}"
    )
    description_fallback = (
        f"Discover how {BRAND} treats {topic}"
        f"{f' impacting {sport} athletes' if sport else ''}"
        f"{f' across {location}' if location else ''}"
        f" with evidence-based rehab plans.{source_sentence}"
    )

    def is_topic_default(value: str) -> bool:
        return _blank(value) or value.strip().lower() == topic.lower()

    default_slug = slugify(topic)
    slug_seed = " ".join(p for p in (topic, sport, location) if p)
    slug_needs_update = _blank(base.slug) or base.slug.strip() == default_slug

    keywords: list[str] = list(base.seo_keywords)
    candidates: list[str | None] = [topic, f"{topic} physiotherapy", f"{topic} treatment"]
    if location:
        candidates += [location, f"{topic} {location}", f"physiotherapy {location}"]
        candidates += _LOCATION_SPLIT_RE.split(location)
    if sport:
        candidates += [sport, f"{sport} injury", f"{sport} rehabilitation"]
    candidates += research.keywords
    candidates += labels
    for value in candidates:
        if value and value.strip():
            keywords.append(value.strip())

    return base.model_copy(update={
        "title": default_title if is_topic_default(base.title) else base.title,
        "slug": slugify(slug_seed) if slug_needs_update else base.slug,
        "excerpt": excerpt_fallback if _blank(base.excerpt) else base.excerpt,
        "seo_title": default_seo_title if is_topic_default(base.seo_title) else base.seo_title,
        "seo_description": (
            description_fallback if _blank(base.seo_description) else base.seo_description
        ),
        "seo_keywords": unique(keywords)[:MAX_SEO_KEYWORDS],
    })


def merge_metadata(existing: Metadata, overrides: dict[str, object] | None) -> Metadata:
    """Overlay caller-supplied metadata fields.

    ``seo_keywords`` is only replaced when a list is supplied; ``None``
    values are ignored.
    """
    if not overrides:
        return existing.model_copy(deep=True)
    data = existing.model_dump()
    for key, value in overrides.items():
        if key not in Metadata.model_fields or value is None:
            continue
        if key == "seo_keywords" and not isinstance(value, list):
            continue
        data[key] = value
    return Metadata.model_validate(data)


def reset_metadata_for_context(metadata: Metadata, topic: str) -> Metadata:
    """Return title, SEO fields and slug to their topic defaults so the
    next assembly regenerates them for a changed topic, location or sport.
    """
    return metadata.model_copy(update={
        "title": topic,
        "seo_title": topic,
        "slug": "",
        "excerpt": "",
        "seo_description": "",
        "seo_keywords": [],
    })


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def assemble(
    topic: str,
    sections: list[Section],
    metadata: Metadata,
    research: ResearchData,
    selected_source_ids: list[str] | None = None,
    *,
    location: str | None = None,
    sport: str | None = None,
    include_faq: bool = True,
    include_checklist: bool = True,
) -> AssembledPost:
    content = assemble_content(sections)
    location = (location or "").strip() or None
    sport = (sport or "").strip() or None
    selected = filter_by_selection(research, selected_source_ids)

    enriched = enrich_metadata(
        metadata, topic=topic, research=selected, location=location, sport=sport
    )
    faqs = generate_faqs(topic) if include_faq else []
    checklist = list(RECOVERY_CHECKLIST) if include_checklist else []
    outbound_links = extract_outbound_links(sections, selected.sources)

    final = enriched.model_copy(update={
        "author": enriched.author or DEFAULT_AUTHOR,
        "category": enriched.category or DEFAULT_CATEGORY,
        "publish_date": enriched.publish_date or date.today().isoformat(),
        "read_time": read_time_minutes(content),
        "faqs": faqs,
        "checklist": checklist,
        "outbound_links": outbound_links,
    })

    return AssembledPost(
        title=final.title,
        slug=final.slug,
        excerpt=final.excerpt,
        seo_title=final.seo_title,
        seo_description=final.seo_description,
        seo_keywords=final.seo_keywords,
        featured_image_url=final.featured_image_url,
        content=content,
        sections=sections,
        faqs=faqs,
        checklist=checklist,
        outbound_links=outbound_links,
        metadata=final,
        location=location,
        sport=sport,
        research_data=research,
    )


def validate(post: AssembledPost) -> ValidationResult:
    errors: list[str] = []
    if _blank(post.title):
        errors.append("Blog post must have a title")
    if _blank(post.slug):
        errors.append("Blog post must have a slug")
    if not post.sections:
        errors.append("Blog post must have at least one section")
    if len(post.content.strip()) < MIN_CONTENT_CHARS:
        errors.append("Blog post content is too short (minimum 300 characters)")
    if _blank(post.metadata.publish_date):
        errors.append("Blog post must have a publish date")
    return ValidationResult(is_valid=not errors, errors=errors)


# ---------------------------------------------------------------------------
# Export formats
# ---------------------------------------------------------------------------


def format_as_markdown(post: AssembledPost) -> str:
    meta = post.metadata
    out = [f"# {post.title}\n\n"]
    out.append(f"*By {meta.author or DEFAULT_AUTHOR} | {meta.publish_date} | {meta.read_time} min read*\n\n")
    out.append("---\n\n")
    for section in post.sections:
        out.append(f"## {section.title}\n\n{section_body(section)}\n\n")

    if post.faqs:
        out.append("## Frequently Asked Questions\n\n")
        for faq in post.faqs:
            out.append(f"### {faq.question}\n{faq.answer}\n\n")

    if post.checklist:
        out.append("## Recovery Checklist\n\n")
        out.extend(f"- {item}\n" for item in post.checklist)
        out.append("\n")

    if post.outbound_links:
        out.append("## Sources & Further Reading\n\n")
        out.extend(f"- {link.source}: {link.title}\n" for link in post.outbound_links)

    return "".join(out)


_HTML_STYLE = """\
    body { font-family: system-ui, sans-serif; line-height: 1.6; max-width: 800px; margin: 0 auto; padding: 20px; color: #374151; }
    h1 { color: #111827; font-size: 2.25em; margin-bottom: 0.5em; }
    h2 { color: #1f2937; border-bottom: 2px solid #e5e7eb; padding-bottom: 0.5rem; margin-top: 2.5rem; }
    h3 { color: #374151; margin-top: 1.5rem; font-size: 1.5em; }
    ul { padding-left: 1.5rem; margin-bottom: 1.5rem; }
    p { margin-bottom: 1.25rem; }
    a { color: #2563eb; text-decoration: underline; }
    .meta { color: #6b7280; font-size: 0.9em; margin-bottom: 2rem; border-bottom: 1px solid #e5e7eb; padding-bottom: 1rem; }
    dt { font-weight: bold; margin-top: 1rem; }
    dd { margin-left: 0; margin-bottom: 1rem; }"""


def _section_html(section: Section) -> str:
    content = section.content
    if isinstance(content, str):
        return to_html(parse_markup(content))
    if isinstance(content, RichDocument):
        return section.content_html or to_html(content)
    return ""


def format_as_html(post: AssembledPost) -> str:
    """Standalone HTML page. All text content is escaped."""
    esc = html.escape
    meta = post.metadata
    body: list[str] = []
    for section in post.sections:
        body.append(f"<section><h2>{esc(section.title)}</h2>{_section_html(section)}</section>")
    if post.faqs:
        items = "".join(f"<dt>{esc(f.question)}</dt><dd>{esc(f.answer)}</dd>" for f in post.faqs)
        body.append(f"<section><h2>Frequently Asked Questions</h2><dl>{items}</dl></section>")
    if post.checklist:
        items = "".join(f"<li>{esc(item)}</li>" for item in post.checklist)
        body.append(f"<section><h2>Recovery Checklist</h2><ul>{items}</ul></section>")
    if post.outbound_links:
        items = "".join(
            f'<li><a href="{esc(link.url)}" target="_blank" rel="noopener noreferrer">'
            f"{esc(link.source)}: {esc(link.title)}</a></li>"
            for link in post.outbound_links
        )
        body.append(f"<section><h2>Sources &amp; Further Reading</h2><ul>{items}</ul></section>")

    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n'
        '  <meta charset="UTF-8">\n'
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        f'  <meta name="description" content="{esc(post.seo_description)}">\n'
        f'  <meta name="keywords" content="{esc(", ".join(post.seo_keywords))}">\n'
        f"  <title>{esc(post.seo_title)}</title>\n"
        f"  <style>\n{_HTML_STYLE}\n  </style>\n"
        "</head>\n<body>\n  <article>\n"
        f"    <header>\n      <h1>{esc(post.title)}</h1>\n"
        f'      <p class="meta">By {esc(meta.author or DEFAULT_AUTHOR)} | '
        f"{esc(meta.publish_date)} | {meta.read_time} min read</p>\n    </header>\n"
        f"    <main>\n{''.join(body)}\n    </main>\n"
        "  </article>\n</body>\n</html>\n"
    )
