"""Blog pipeline: topic → research → outline → sections → assembled post → Wix.

``BlogPipeline`` sequences the stages against the draft store.  Every
collaborator is injected, so the CLI wires real clients and tests wire
fakes.  Stage failures surface as ``StageError`` naming the stage and
draft; precondition and not-found errors pass through unchanged apart
from carrying the same context.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from datetime import UTC, datetime

from blogpipe.blog import (
    AssembledPost,
    Draft,
    DraftStatus,
    DraftStore,
    OutlineGenerator,
    PublishResult,
    ResearchAggregator,
    ResearchData,
    Section,
    SectionWriter,
    ValidationResult,
    WriterOptions,
    assemble,
    filter_by_selection,
    merge_metadata,
    merge_research,
    reset_metadata_for_context,
    validate,
)
from blogpipe.blog.publishers import WixPublisher
from blogpipe.shared.errors import (
    BlogpipeError,
    ConfigurationError,
    DraftNotFoundError,
    PreconditionError,
    StageError,
)
from blogpipe.shared.images import FeaturedImageService
from pydantic import BaseModel

logger = logging.getLogger(__name__)

_list = list


class ResearchOutcome(BaseModel):
    draft: Draft
    research: ResearchData
    outline: list[str] = []


class AssemblyOutcome(BaseModel):
    """Result of an assemble or publish request.

    ``draft`` is None when validation failed and nothing was persisted.
    """

    post: AssembledPost
    validation: ValidationResult
    draft: Draft | None = None
    publish_result: PublishResult | None = None


def clean_source_ids(ids: list[object]) -> list[str]:
    """Keep trimmed, non-blank strings, first occurrence only."""
    cleaned: list[str] = []
    for value in ids:
        if not isinstance(value, str):
            continue
        value = value.strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


@contextlib.contextmanager
def _stage(stage: str, draft_id: str | None) -> Iterator[None]:
    """Attach stage context to errors raised inside the block."""
    try:
        yield
    except (PreconditionError, DraftNotFoundError, ConfigurationError, ValueError) as exc:
        exc.stage = stage  # type: ignore[attr-defined]
        exc.draft_id = getattr(exc, "draft_id", None) or draft_id  # type: ignore[attr-defined]
        raise
    except StageError:
        raise
    except BlogpipeError as exc:
        logger.error("%s failed for draft %s: %s", stage, draft_id, exc)
        raise StageError(stage, draft_id, str(exc)) from exc


class BlogPipeline:
    """Orchestrates the blog stages against a DraftStore."""

    def __init__(
        self,
        store: DraftStore,
        aggregator: ResearchAggregator,
        *,
        outline_generator: OutlineGenerator | None = None,
        writer: SectionWriter | None = None,
        image_service: FeaturedImageService | None = None,
        publisher: WixPublisher | None = None,
    ) -> None:
        self.store = store
        self.aggregator = aggregator
        self.outline_generator = outline_generator
        self.writer = writer
        self.image_service = image_service
        self.publisher = publisher

    # ── Helpers ──────────────────────────────────────────────────

    def _require(self, draft_id: str) -> Draft:
        draft = self.store.get(draft_id)
        if draft is None:
            raise DraftNotFoundError(draft_id)
        return draft

    def _update(self, draft_id: str, **fields: object) -> Draft:
        draft = self.store.update(draft_id, **fields)
        if draft is None:
            raise DraftNotFoundError(draft_id)
        return draft

    @staticmethod
    def _require_research(draft: Draft) -> ResearchData:
        if draft.research_data is None:
            raise PreconditionError(
                f"Draft {draft.id} has no research data yet; run research first"
            )
        return draft.research_data

    # ── Research and outline ─────────────────────────────────────

    def research(
        self,
        topic: str,
        *,
        draft_id: str | None = None,
        location: str | None = None,
        sport: str | None = None,
        section_count: int = 5,
        research_more: bool = False,
        include_checklist: bool = True,
        include_faq: bool = True,
        include_internal_cta: bool = True,
    ) -> ResearchOutcome:
        """Research *topic* into a new draft, or refresh an existing one.

        ``research_more`` merges the new sources into the draft's existing
        research and skips the outline.
        """
        topic = topic.strip()
        if not topic:
            raise PreconditionError("Topic is required")

        with _stage("research", draft_id):
            if draft_id:
                draft = self._require(draft_id)
            else:
                draft = self.store.create(topic)
                draft = self._update(
                    draft.id,
                    location=_clean_optional(location),
                    sport=_clean_optional(sport),
                    include_checklist=include_checklist,
                    include_faq=include_faq,
                    include_internal_cta=include_internal_cta,
                )

            research = self.aggregator.research(topic)
            if research_more:
                research = merge_research(draft.research_data, research)

            status = draft.status
            if not research_more and status.rank < DraftStatus.WRITING.rank:
                status = DraftStatus.WRITING
            draft = self._update(draft.id, research_data=research, status=status)
            logger.info(
                "Research for %s: %d sources, %d keywords",
                draft.id, len(research.sources), len(research.keywords),
            )

        outline: list[str] = []
        if not research_more and self.outline_generator is not None:
            outline = self.outline(draft.id, section_count=section_count)

        return ResearchOutcome(draft=draft, research=research, outline=outline)

    def outline(self, draft_id: str, section_count: int = 5) -> list[str]:
        with _stage("outline", draft_id):
            if self.outline_generator is None:
                raise ConfigurationError(["ANTHROPIC_API_KEY"])
            draft = self._require(draft_id)
            research = self._require_research(draft)
            return self.outline_generator.outline(draft.topic, research, section_count)

    # ── Sections ─────────────────────────────────────────────────

    def write_section(
        self,
        draft_id: str,
        index: int,
        title: str,
        options: WriterOptions | None = None,
        content: str | None = None,
    ) -> Section:
        """Draft (or store caller-provided *content* for) section *index*.

        Only the addressed slot is written, so concurrent calls for
        different indices never lose each other's work.
        """
        with _stage("write_section", draft_id):
            if index < 0:
                raise PreconditionError(f"Section index must be >= 0, got {index}")
            if not title.strip():
                raise PreconditionError("Section title is required")
            draft = self._require(draft_id)
            research = self._require_research(draft)

            if content:
                section = SectionWriter.manual_section(title, content, index)
            else:
                if self.writer is None:
                    raise ConfigurationError(["ANTHROPIC_API_KEY"])
                section = self.writer.write_section(
                    draft.topic,
                    title,
                    filter_by_selection(research, draft.selected_source_ids),
                    index,
                    options,
                )

            if self.store.put_section(draft_id, index, section) is None:
                raise DraftNotFoundError(draft_id)
            return section

    def select_sources(self, draft_id: str, ids: list[object]) -> Draft:
        with _stage("select_sources", draft_id):
            self._require(draft_id)
            return self._update(draft_id, selected_source_ids=clean_source_ids(ids))

    # ── Image ────────────────────────────────────────────────────

    def generate_image(self, draft_id: str) -> str | None:
        """Generate a featured image and store its URL on the draft."""
        with _stage("generate_image", draft_id):
            if self.image_service is None:
                raise ConfigurationError(["GOOGLE_AI_API_KEY"])
            draft = self._require(draft_id)
            keywords = draft.research_data.keywords if draft.research_data else []
            url = self.image_service.generate(draft.topic, keywords)
            if url is None:
                logger.warning("No featured image generated for %s", draft_id)
                return None
            metadata = draft.metadata.model_copy(update={"featured_image_url": url})
            self._update(draft_id, metadata=metadata)
            return url

    # ── Assemble and publish ─────────────────────────────────────

    def assemble(
        self,
        draft_id: str,
        *,
        metadata: dict[str, object] | None = None,
        selected_source_ids: list[object] | None = None,
        topic: str | None = None,
        location: str | None = None,
        sport: str | None = None,
        refresh_metadata: bool = False,
        content: str | None = None,
        assemble_only: bool = False,
        preserve_status: bool = False,
        allow_regress: bool = False,
    ) -> AssemblyOutcome:
        """Assemble the draft and, unless *assemble_only*, publish it.

        ``location`` / ``sport`` of ``""`` clear the stored value; ``None``
        leaves it alone.  Validation failures come back in the outcome and
        nothing is persisted.
        """
        stage = "assemble" if assemble_only else "publish"
        with _stage(stage, draft_id):
            draft = self._require(draft_id)

            context: dict[str, object] = {}
            new_topic = (topic or "").strip()
            if new_topic and new_topic != draft.topic:
                context["topic"] = new_topic
            if location is not None:
                context["location"] = _clean_optional(location)
            if sport is not None:
                context["sport"] = _clean_optional(sport)
            if context:
                draft = self._update(draft_id, **context)

            research = self._require_research(draft)
            sections = draft.written_sections()
            if not sections:
                raise PreconditionError("Draft must contain at least one section")

            merged = merge_metadata(draft.metadata, metadata)
            if refresh_metadata:
                merged = reset_metadata_for_context(merged, draft.topic)
            source_ids = (
                clean_source_ids(selected_source_ids)
                if selected_source_ids is not None
                else draft.selected_source_ids
            )

            post = assemble(
                draft.topic,
                sections,
                merged,
                research,
                source_ids,
                location=draft.location,
                sport=draft.sport,
                include_faq=draft.include_faq,
                include_checklist=draft.include_checklist,
            )
            if content:
                post = post.model_copy(update={"content": content})

            validation = validate(post)
            if not validation.is_valid:
                logger.warning("Validation failed for %s: %s", draft_id, validation.errors)
                return AssemblyOutcome(post=post, validation=validation)

            if assemble_only:
                status = self._assembled_status(draft.status, preserve_status, allow_regress)
                draft = self._update(
                    draft_id,
                    metadata=post.metadata,
                    selected_source_ids=source_ids,
                    status=status,
                )
                logger.info("Assembled draft %s (status %s)", draft_id, status)
                return AssemblyOutcome(post=post, validation=validation, draft=draft)

            if self.publisher is None:
                raise ConfigurationError(["WIX_API_KEY", "WIX_SITE_ID", "WIX_AUTHOR_MEMBER_ID"])
            result = self.publisher.publish(post, draft.external_post_id)

            final_metadata = post.metadata
            if result.media_url:
                final_metadata = final_metadata.model_copy(
                    update={"featured_image_url": result.media_url}
                )
            draft = self._update(
                draft_id,
                status=DraftStatus.PUBLISHED,
                metadata=final_metadata,
                selected_source_ids=source_ids,
                external_post_id=result.external_id,
                published_at=datetime.now(tz=UTC),
            )
            logger.info("Published draft %s as %s (%s)", draft_id, result.external_id, result.action)
            return AssemblyOutcome(
                post=post, validation=validation, draft=draft, publish_result=result
            )

    @staticmethod
    def _assembled_status(
        current: DraftStatus, preserve_status: bool, allow_regress: bool
    ) -> DraftStatus:
        if preserve_status:
            return current
        if current == DraftStatus.PUBLISHED and not allow_regress:
            return current
        return DraftStatus.ASSEMBLED

    # ── Queries ──────────────────────────────────────────────────

    def get(self, draft_id: str) -> Draft:
        with _stage("get", draft_id):
            return self._require(draft_id)

    def list(self, status: DraftStatus | None = None) -> _list[Draft]:
        if status is None:
            return self.store.list()
        return self.store.list_by_status(status)

    def delete(self, draft_id: str) -> bool:
        with _stage("delete", draft_id):
            return self.store.delete(draft_id)
