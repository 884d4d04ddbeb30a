"""Research aggregation: tiered source retrieval for a topic.

Sources come from the first tier that yields results:

1. the primary backend (the clinic's Vertex AI Search data store)
2. the secondary backend (Google Custom Search)
3. a fixed catalogue of reputable clinical references

A backend that raises is treated like one that returned nothing, so
research never fails and never comes back empty.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from blogpipe.blog.models import ResearchData, Source
from blogpipe.integrations.search import SearchHit
from blogpipe.shared.text import hostname, unique

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 8
MAX_KEYWORDS = 5

STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "is", "was",
})

FALLBACK_SOURCES: list[SearchHit] = [
    SearchHit(
        title="NHS - Physiotherapy and Rehabilitation Services",
        snippet=(
            "Information about physiotherapy treatments, exercises, and recovery "
            "programs provided by the NHS."
        ),
        source="nhs.uk",
        url="https://www.nhs.uk/conditions/physiotherapy/",
    ),
    SearchHit(
        title="Mayo Clinic - Physiotherapy and Physical Medicine",
        snippet=(
            "Mayo Clinic's guide to physiotherapy treatments, rehabilitation "
            "programs, and recovery protocols."
        ),
        source="mayoclinic.org",
        url="https://www.mayoclinic.org/tests-procedures/physical-therapy/about/pac-20384701",
    ),
    SearchHit(
        title="Cleveland Clinic - Physical Therapy Services",
        snippet=(
            "Cleveland Clinic's comprehensive information on physical therapy, "
            "rehabilitation, and recovery treatments."
        ),
        source="clevelandclinic.org",
        url="https://my.clevelandclinic.org/health/treatments/8657-physical-therapy",
    ),
    SearchHit(
        title="American Physical Therapy Association",
        snippet=(
            "APTA provides resources about physical therapy treatments, benefits, "
            "and finding certified therapists."
        ),
        source="apta.org",
        url="https://www.apta.org/patient-care",
    ),
    SearchHit(
        title="Johns Hopkins Medicine - Rehabilitation Services",
        snippet=(
            "Johns Hopkins offers comprehensive rehabilitation and physical therapy "
            "services for various conditions."
        ),
        source="hopkinsmedicine.org",
        url="https://www.hopkinsmedicine.org/health/treatment-tests-and-therapies/physical-therapy",
    ),
]


class SearchBackend(Protocol):
    def search(self, query: str, max_results: int) -> list[SearchHit]: ...


LocationLookup = Callable[[], "dict | None"]


def extract_keywords(topic: str) -> list[str]:
    """Lowercased topic words longer than three characters, stopwords removed."""
    words = [w for w in topic.lower().split() if w not in STOPWORDS and len(w) > 3]
    return words[:MAX_KEYWORDS]


def source_key(source: Source) -> str:
    """Identity key of a source: its URL, else its title."""
    return source.key


def fallback_hits(topic: str, max_results: int) -> list[SearchHit]:
    """Catalogue entries sharing a keyword with *topic*, else the whole catalogue."""
    keywords = extract_keywords(topic) or [topic.lower()]
    matched = [
        hit for hit in FALLBACK_SOURCES
        if any(k in hit.title.lower() or k in hit.snippet.lower() for k in keywords)
    ]
    return (matched or FALLBACK_SOURCES)[:max_results]


def _to_sources(hits: list[SearchHit]) -> list[Source]:
    return [
        Source(
            title=hit.title,
            content=hit.snippet,
            source=hit.source or hostname(hit.url) or "",
            url=hit.url,
            relevance_score=round(1 - i * 0.1, 2),
        )
        for i, hit in enumerate(hits)
    ]


class ResearchAggregator:
    """Retrieve and normalise research sources for a topic."""

    def __init__(
        self,
        primary: SearchBackend | None = None,
        secondary: SearchBackend | None = None,
        location_lookup: LocationLookup | None = None,
        *,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.location_lookup = location_lookup
        self.max_results = max_results

    def _try(self, name: str, backend: SearchBackend | None, query: str) -> list[SearchHit]:
        if backend is None:
            logger.debug("%s search not configured", name)
            return []
        try:
            hits = backend.search(query, self.max_results)
        except Exception:
            logger.warning("%s search failed for %r", name, query, exc_info=True)
            return []
        if not hits:
            logger.warning("%s search returned no results for %r", name, query)
        return hits[: self.max_results]

    def _location_info(self) -> dict | None:
        if self.location_lookup is None:
            return None
        try:
            return self.location_lookup()
        except Exception:
            logger.warning("Location lookup failed", exc_info=True)
            return None

    def research(self, topic: str) -> ResearchData:
        """Gather sources for *topic*. Never raises, never returns zero sources."""
        keywords = extract_keywords(topic)
        query = " ".join([topic, *keywords])
        logger.info("Researching %r", query)

        hits = self._try("Primary", self.primary, query)
        if not hits:
            hits = self._try("Secondary", self.secondary, query)
        if not hits:
            hits = fallback_hits(topic, self.max_results)
            logger.info("Using %d catalogue sources for %r", len(hits), topic)

        return ResearchData(
            topic=topic,
            keywords=keywords,
            sources=_to_sources(hits),
            location_info=self._location_info(),
            timestamp=datetime.now(tz=UTC),
        )


def merge_research(existing: ResearchData | None, new: ResearchData) -> ResearchData:
    """Union two research results.

    Sources already in *existing* keep their order and values; only
    sources with an unseen key are appended.  Keywords are unioned
    existing-first.  Topic and timestamp come from *new*.
    """
    if existing is None:
        return new.model_copy(deep=True)

    seen = {s.key for s in existing.sources}
    sources = [s.model_copy() for s in existing.sources]
    for source in new.sources:
        if source.key not in seen:
            seen.add(source.key)
            sources.append(source.model_copy())

    return ResearchData(
        topic=new.topic,
        keywords=unique([*existing.keywords, *new.keywords]),
        sources=sources,
        location_info=new.location_info if new.location_info is not None else existing.location_info,
        timestamp=new.timestamp,
    )


def filter_by_selection(research: ResearchData, selected_ids: list[str] | None) -> ResearchData:
    """Restrict sources to the selected keys.

    An empty selection, or one matching nothing, leaves every source in place.
    """
    if not selected_ids:
        return research.model_copy(deep=True)
    wanted = set(selected_ids)
    matched = [s for s in research.sources if s.key in wanted]
    if not matched:
        logger.debug("Source selection matched nothing, using all sources")
        return research.model_copy(deep=True)
    return research.model_copy(update={"sources": matched}, deep=True)
