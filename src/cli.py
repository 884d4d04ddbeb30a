"""CLI interface for blogpipe."""

import logging
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from blogpipe.blog import (
    DraftStatus,
    DraftStore,
    OutlineGenerator,
    ResearchAggregator,
    SectionWriter,
    Tone,
    WriterOptions,
    format_as_html,
    format_as_markdown,
)
from blogpipe.blog.publishers import create_publisher
from blogpipe.config import BlogpipeConfig, check_admin_secret, load_config, merge_cli_overrides
from blogpipe.integrations.search import CustomSearchClient, PlacesClient, VertexSearchClient
from blogpipe.pipeline.blog import AssemblyOutcome, BlogPipeline
from blogpipe.shared.errors import BlogpipeError
from blogpipe.shared.images import FeaturedImageService, ImageGenerator
from blogpipe.shared.llm import TextGenerator

app = typer.Typer(
    name="blogpipe",
    help="Research, write, assemble and publish physiotherapy blog posts.",
)

console = Console()

logger = logging.getLogger(__name__)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from blogpipe import __version__

        console.print(f"blogpipe {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a blogpipe TOML config file."),
    ] = None,
    data_dir: Annotated[
        Optional[Path],
        typer.Option("--data-dir", help="Directory holding the draft store."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """blogpipe - topic to published clinic blog post."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    config = load_config(config_path)
    ctx.obj = merge_cli_overrides(
        config, data_dir=str(data_dir) if data_dir is not None else None
    )


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_pipeline(config: BlogpipeConfig) -> BlogPipeline:
    """Wire a pipeline from configuration; unconfigured services stay None."""
    search = config.search
    primary = (
        VertexSearchClient(search.gcp_project_id, search.gcp_location, search.vertex_data_store_id)
        if search.vertex_configured
        else None
    )
    secondary = CustomSearchClient(search.cse_api_key, search.cse_cx) if search.cse_configured else None
    places = PlacesClient(search.places_api_key, search.place_id) if search.places_configured else None
    aggregator = ResearchAggregator(primary, secondary, places, max_results=search.max_results)

    outline_generator = writer = None
    if config.llm.api_key:
        complete = TextGenerator(config.llm.api_key, model=config.llm.model, timeout=config.llm.timeout)
        outline_generator = OutlineGenerator(complete)
        writer = SectionWriter(complete)

    image_service = None
    if config.image.api_key:
        image_service = FeaturedImageService(
            ImageGenerator(config.image.api_key, model=config.image.model),
            config.data_dir / "images",
            public_base_url=config.image.public_base_url,
        )

    publisher = None
    if not config.validate_for("publish"):
        publisher = create_publisher(
            api_key=config.wix.api_key,
            site_id=config.wix.site_id,
            author_member_id=config.wix.author_member_id,
            account_id=config.wix.account_id,
        )

    return BlogPipeline(
        DraftStore(config.data_dir),
        aggregator,
        outline_generator=outline_generator,
        writer=writer,
        image_service=image_service,
        publisher=publisher,
    )


def _pipeline(ctx: typer.Context, *stages: str) -> BlogPipeline:
    config: BlogpipeConfig = ctx.obj
    try:
        config.require(*stages)
    except BlogpipeError as exc:
        _fail(exc, "config")
    return build_pipeline(config)


def _fail(exc: Exception, stage: str | None = None) -> NoReturn:
    stage = getattr(exc, "stage", None) or stage
    label = f"{stage} failed" if stage else "Error"
    console.print(f"[red]{label}:[/red] {exc}")
    raise typer.Exit(1)


def _check_admin(ctx: typer.Context, secret: str | None) -> None:
    if not check_admin_secret(secret, ctx.obj):
        console.print("[red]Error:[/red] Invalid admin password.")
        raise typer.Exit(1)


def _report_validation(outcome: AssemblyOutcome) -> None:
    if outcome.validation.is_valid:
        return
    console.print("[red]Validation failed:[/red]")
    for error in outcome.validation.errors:
        console.print(f"  - {error}")
    raise typer.Exit(1)


AdminSecret = Annotated[
    Optional[str],
    typer.Option("--admin-password", envvar="BLOGPIPE_ADMIN_PASSWORD", help="Admin password, if one is configured."),
]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def research(
    ctx: typer.Context,
    topic: Annotated[str, typer.Argument(help="Article topic.")],
    location: Annotated[Optional[str], typer.Option("--location", help="Target location, e.g. a town.")] = None,
    sport: Annotated[Optional[str], typer.Option("--sport", help="Sport the article is aimed at.")] = None,
    draft_id: Annotated[Optional[str], typer.Option("--draft", help="Refresh an existing draft.")] = None,
    sections: Annotated[Optional[int], typer.Option("--sections", min=1, help="Outline length.")] = None,
    more: Annotated[bool, typer.Option("--more", help="Merge new sources into existing research.")] = False,
    include_faq: Annotated[bool, typer.Option("--faq/--no-faq")] = True,
    include_checklist: Annotated[bool, typer.Option("--checklist/--no-checklist")] = True,
    include_cta: Annotated[bool, typer.Option("--cta/--no-cta")] = True,
) -> None:
    """Research a topic into a new draft (or an existing one with --draft)."""
    pipeline = _pipeline(ctx)
    section_count = sections or ctx.obj.writer.section_count
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(f"Researching {topic}...", total=None)
            outcome = pipeline.research(
                topic,
                draft_id=draft_id,
                location=location,
                sport=sport,
                section_count=section_count,
                research_more=more,
                include_checklist=include_checklist,
                include_faq=include_faq,
                include_internal_cta=include_cta,
            )
    except (BlogpipeError, ValueError) as exc:
        _fail(exc, "research")

    console.print(f"[green]Draft:[/green] {outcome.draft.id} ({outcome.draft.status})")
    _print_sources(outcome.research.sources, outcome.draft.selected_source_ids)
    if outcome.outline:
        console.print()
        console.print("[bold]Outline:[/bold]")
        for i, title in enumerate(outcome.outline):
            console.print(f"  {i}. {title}")


@app.command()
def outline(
    ctx: typer.Context,
    draft_id: Annotated[str, typer.Argument(help="Draft id.")],
    sections: Annotated[Optional[int], typer.Option("--sections", min=1, help="Outline length.")] = None,
) -> None:
    """Propose section titles for a researched draft."""
    pipeline = _pipeline(ctx, "write")
    try:
        titles = pipeline.outline(draft_id, sections or ctx.obj.writer.section_count)
    except (BlogpipeError, ValueError) as exc:
        _fail(exc, "outline")
    for i, title in enumerate(titles):
        console.print(f"  {i}. {title}")


@app.command()
def write(
    ctx: typer.Context,
    draft_id: Annotated[str, typer.Argument(help="Draft id.")],
    index: Annotated[int, typer.Argument(min=0, help="Zero-based section position.")],
    title: Annotated[str, typer.Argument(help="Section title.")],
    tone: Annotated[Optional[Tone], typer.Option("--tone", help="Writing tone.")] = None,
    audience: Annotated[Optional[str], typer.Option("--audience", help="Target audience.")] = None,
    words: Annotated[Optional[int], typer.Option("--words", min=1, help="Target words for the section.")] = None,
    no_headers: Annotated[bool, typer.Option("--no-headers", help="No sub-headings inside the section.")] = False,
    content_file: Annotated[
        Optional[Path],
        typer.Option("--content-file", exists=True, dir_okay=False, help="Use this text instead of generating."),
    ] = None,
) -> None:
    """Write one section of a draft."""
    config = merge_cli_overrides(ctx.obj, tone=tone, audience=audience, words=words)
    ctx.obj = config
    pipeline = _pipeline(ctx) if content_file else _pipeline(ctx, "write")
    options = WriterOptions(
        tone=config.writer.tone,
        target_audience=config.writer.target_audience,
        word_count_per_section=config.writer.word_count_per_section,
        include_headers=not no_headers,
    )
    content = content_file.read_text(encoding="utf-8") if content_file else None
    try:
        section = pipeline.write_section(draft_id, index, title, options, content=content)
    except (BlogpipeError, ValueError) as exc:
        _fail(exc, "write_section")
    console.print(
        f"[green]Section {section.section_number}:[/green] {section.title} ({section.word_count} words)"
    )


@app.command()
def select(
    ctx: typer.Context,
    draft_id: Annotated[str, typer.Argument(help="Draft id.")],
    ids: Annotated[Optional[list[str]], typer.Argument(help="Source ids to keep.")] = None,
    clear: Annotated[bool, typer.Option("--clear", help="Clear the selection.")] = False,
) -> None:
    """Show research sources, or choose which ones the article may cite."""
    pipeline = _pipeline(ctx)
    try:
        if ids or clear:
            draft = pipeline.select_sources(draft_id, [] if clear else list(ids or []))
        else:
            draft = pipeline.get(draft_id)
    except (BlogpipeError, ValueError) as exc:
        _fail(exc, "select_sources")
    sources = draft.research_data.sources if draft.research_data else []
    _print_sources(sources, draft.selected_source_ids)


@app.command()
def image(
    ctx: typer.Context,
    draft_id: Annotated[str, typer.Argument(help="Draft id.")],
) -> None:
    """Generate a featured image for a draft."""
    pipeline = _pipeline(ctx)
    try:
        url = pipeline.generate_image(draft_id)
    except (BlogpipeError, ValueError) as exc:
        _fail(exc, "generate_image")
    if url is None:
        console.print("[yellow]No image generated.[/yellow]")
        return
    console.print(f"[green]Featured image:[/green] {url}")


@app.command()
def assemble(
    ctx: typer.Context,
    draft_id: Annotated[str, typer.Argument(help="Draft id.")],
    preserve_status: Annotated[bool, typer.Option("--preserve-status", help="Leave the draft status unchanged.")] = False,
    allow_regress: Annotated[bool, typer.Option("--allow-regress", help="Let a published draft go back to assembled.")] = False,
    refresh: Annotated[bool, typer.Option("--refresh-metadata", help="Regenerate title, slug and SEO fields.")] = False,
    topic: Annotated[Optional[str], typer.Option("--topic", help="Change the topic first.")] = None,
    location: Annotated[Optional[str], typer.Option("--location", help="Change the location first; empty clears.")] = None,
    sport: Annotated[Optional[str], typer.Option("--sport", help="Change the sport first; empty clears.")] = None,
) -> None:
    """Assemble a draft into a post without publishing."""
    pipeline = _pipeline(ctx)
    try:
        outcome = pipeline.assemble(
            draft_id,
            topic=topic,
            location=location,
            sport=sport,
            refresh_metadata=refresh,
            assemble_only=True,
            preserve_status=preserve_status,
            allow_regress=allow_regress,
        )
    except (BlogpipeError, ValueError) as exc:
        _fail(exc, "assemble")
    _report_validation(outcome)
    post = outcome.post
    console.print(f"[green]Assembled:[/green] {post.title}")
    console.print(f"  Slug: {post.slug}")
    console.print(f"  SEO title: {post.seo_title}")
    console.print(f"  Read time: {post.metadata.read_time} min")
    console.print(f"  Status: {outcome.draft.status if outcome.draft else '-'}")


@app.command()
def publish(
    ctx: typer.Context,
    draft_id: Annotated[str, typer.Argument(help="Draft id.")],
    admin_password: AdminSecret = None,
) -> None:
    """Assemble a draft and publish it to Wix."""
    _check_admin(ctx, admin_password)
    pipeline = _pipeline(ctx, "publish")
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Publishing to Wix...", total=None)
            outcome = pipeline.assemble(draft_id)
    except (BlogpipeError, ValueError) as exc:
        _fail(exc, "publish")
    _report_validation(outcome)
    result = outcome.publish_result
    if result is None:
        return
    console.print(f"[bold green]Post {result.action}:[/bold green] {result.external_id}")
    if result.url:
        console.print(f"  URL: {result.url}")


@app.command()
def show(
    ctx: typer.Context,
    draft_id: Annotated[str, typer.Argument(help="Draft id.")],
) -> None:
    """Show a draft's state."""
    pipeline = _pipeline(ctx)
    try:
        draft = pipeline.get(draft_id)
    except (BlogpipeError, ValueError) as exc:
        _fail(exc, "get")
    console.print(f"[bold]{draft.topic}[/bold] ({draft.id})")
    console.print(f"  Status: {draft.status}")
    if draft.location:
        console.print(f"  Location: {draft.location}")
    if draft.sport:
        console.print(f"  Sport: {draft.sport}")
    sources = len(draft.research_data.sources) if draft.research_data else 0
    console.print(f"  Sources: {sources} ({len(draft.selected_source_ids)} selected)")
    for i, section in enumerate(draft.sections):
        label = f"{section.title} ({section.word_count} words)" if section else "[dim]empty[/dim]"
        console.print(f"  {i}. {label}")
    if draft.metadata.featured_image_url:
        console.print(f"  Image: {draft.metadata.featured_image_url}")
    if draft.external_post_id:
        console.print(f"  Wix post: {draft.external_post_id}")


@app.command(name="list")
def list_cmd(
    ctx: typer.Context,
    status: Annotated[Optional[DraftStatus], typer.Option("--status", help="Only drafts in this status.")] = None,
) -> None:
    """List drafts."""
    drafts = _pipeline(ctx).list(status)
    if not drafts:
        console.print("[yellow]No drafts found.[/yellow]")
        return
    table = Table()
    table.add_column("ID")
    table.add_column("Topic")
    table.add_column("Status")
    table.add_column("Sections", justify="right")
    table.add_column("Updated")
    for draft in drafts:
        table.add_row(
            draft.id,
            draft.topic,
            str(draft.status),
            str(len(draft.written_sections())),
            draft.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def delete(
    ctx: typer.Context,
    draft_id: Annotated[str, typer.Argument(help="Draft id.")],
    admin_password: AdminSecret = None,
) -> None:
    """Delete a draft."""
    _check_admin(ctx, admin_password)
    try:
        removed = _pipeline(ctx).delete(draft_id)
    except (BlogpipeError, ValueError) as exc:
        _fail(exc, "delete")
    if not removed:
        console.print(f"[red]Error:[/red] Draft not found: {draft_id}")
        raise typer.Exit(1)
    console.print(f"[green]Deleted[/green] {draft_id}")


@app.command()
def export(
    ctx: typer.Context,
    draft_id: Annotated[str, typer.Argument(help="Draft id.")],
    output_format: Annotated[str, typer.Option("--format", "-f", help="md or html.")] = "md",
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write to this file.")] = None,
) -> None:
    """Export an assembled draft as Markdown or HTML."""
    if output_format not in ("md", "html"):
        console.print(f"[red]Error:[/red] Unsupported format: {output_format}")
        console.print("Use 'md' or 'html'.")
        raise typer.Exit(1)
    pipeline = _pipeline(ctx)
    try:
        outcome = pipeline.assemble(draft_id, assemble_only=True, preserve_status=True)
    except (BlogpipeError, ValueError) as exc:
        _fail(exc, "export")
    _report_validation(outcome)
    text = format_as_html(outcome.post) if output_format == "html" else format_as_markdown(outcome.post)
    if output is None:
        console.print(text, markup=False, highlight=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    console.print(f"Written to: {output}")


def _print_sources(sources: list, selected: list[str]) -> None:
    if not sources:
        console.print("[yellow]No research sources.[/yellow]")
        return
    table = Table(title="Sources")
    table.add_column("", width=1)
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Source")
    table.add_column("Score", justify="right")
    for source in sources:
        mark = "*" if source.key in selected else ""
        table.add_row(mark, source.key, source.title, source.label, f"{source.relevance_score:.2f}")
    console.print(table)


if __name__ == "__main__":
    app()
