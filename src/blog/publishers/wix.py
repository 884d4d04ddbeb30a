"""Wix Blog publisher: assembled post → Wix rich content → live post."""

from __future__ import annotations

import json
import logging
import mimetypes
import re
import time
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path

from blogpipe.blog.models import AssembledPost, PublishAction, PublishResult
from blogpipe.blog.publishers.base import CMSClient
from blogpipe.blog.richtext import (
    HeadingNode,
    LinkNode,
    RichDocument,
    TextNode,
    inline_text,
    parse_markup,
)
from blogpipe.shared.errors import PreconditionError, PublishError
from blogpipe.shared.text import hostname

logger = logging.getLogger(__name__)

MAX_TAGS = 10
IMAGE_DOWNLOAD_TIMEOUT = 30
GCS_PUBLIC_BASE = "https://storage.googleapis.com/"
GCS_CONSOLE_BASE = "https://storage.cloud.google.com/"

STATUS_HINTS: dict[int, str] = {
    401: "Check WIX_API_KEY",
    403: "Verify Wix API permissions",
    404: "Ensure Wix Blog app is installed",
}

_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]*)\]\(([^)]*)\)")
_MARKUP_CHARS_RE = re.compile(r"[*_`>#]")
_LIST_DASH_RE = re.compile(r"^\s*-\s+")
_WHITESPACE_RE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def sanitize_text(text: str) -> str:
    """Flatten markdown links to ``text (url)``, strip markup characters
    and leading list dashes, collapse whitespace.
    """
    text = _MARKDOWN_LINK_RE.sub(r"\1 (\2)", text)
    text = _MARKUP_CHARS_RE.sub("", text)
    text = _LIST_DASH_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_image_url(url: str | None) -> str | None:
    """Rewrite Cloud Storage console and ``gs://`` URLs to public HTTPS URLs."""
    if not url:
        return None
    url = url.strip()
    if url.startswith(GCS_CONSOLE_BASE):
        url = GCS_PUBLIC_BASE + url[len(GCS_CONSOLE_BASE):]
    if url.startswith("gs://"):
        bucket, sep, path = url[len("gs://"):].partition("/")
        if bucket and sep:
            url = f"{GCS_PUBLIC_BASE}{bucket}/{path}"
    return url


def extract_post_url(post: dict | None) -> str | None:
    if not post:
        return None
    if post.get("url"):
        return post["url"]
    link = post.get("link")
    if isinstance(link, dict) and link.get("href"):
        return link["href"]
    return None


def normalize_error(exc: urllib.error.URLError) -> PublishError:
    """Translate a transport or HTTP failure into a PublishError with a hint."""
    if isinstance(exc, urllib.error.HTTPError):
        body = ""
        try:
            body = exc.read().decode("utf-8", errors="replace")
        except OSError:
            pass
        message = exc.reason or str(exc)
        try:
            parsed = json.loads(body) if body else {}
            if isinstance(parsed, dict):
                message = parsed.get("message") or parsed.get("detail") or message
        except json.JSONDecodeError:
            pass
        hint = STATUS_HINTS.get(exc.code)
        composed = f"Wix API {exc.code}: {message}"
        if hint:
            composed += f" - {hint}"
        return PublishError(composed, status=exc.code, hint=hint, body=body)
    return PublishError(f"Wix API error: {exc.reason}")


class NodeIdFactory:
    """Generates unique node ids for one content tree.

    A fresh factory is created per publish call, so ids never depend
    on process-wide state.
    """

    def __init__(self) -> None:
        self._stamp = int(time.time() * 1000)
        self._counter = 0

    def __call__(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}-{self._stamp}-{self._counter}"


# ---------------------------------------------------------------------------
# Rich content
# ---------------------------------------------------------------------------


class WixContentBuilder:
    """Build Wix rich-content nodes."""

    def __init__(self, ids: NodeIdFactory) -> None:
        self.ids = ids

    def text(self, text: str, *, link: str | None = None, sanitize: bool = True) -> dict:
        decorations: list[dict] = []
        if link:
            decorations.append({
                "type": "LINK",
                "linkData": {"link": {"url": link, "target": "BLANK"}},
            })
        return {
            "id": self.ids("text"),
            "type": "TEXT",
            "nodes": [],
            "textData": {
                "text": sanitize_text(text) if sanitize else text,
                "decorations": decorations,
            },
        }

    def heading(self, text: str, level: int) -> dict:
        return {
            "id": self.ids("heading"),
            "type": "HEADING",
            "headingData": {"level": level, "textStyle": {"textAlignment": "AUTO"}},
            "nodes": [self.text(text)],
        }

    def paragraph(self, children: list[dict]) -> dict:
        return {
            "id": self.ids("paragraph"),
            "type": "PARAGRAPH",
            "paragraphData": {
                "textStyle": {"textAlignment": "AUTO"},
                "indentation": None,
                "level": None,
            },
            "nodes": children,
        }

    def list_item(self, children: list[dict]) -> dict:
        return {
            "id": self.ids("list-item"),
            "type": "LIST_ITEM",
            "nodes": [self.paragraph(children)],
        }

    def bulleted_list(self, items: list[dict]) -> dict:
        return {"id": self.ids("bulleted-list"), "type": "BULLETED_LIST", "nodes": items}

    def document(self, document: RichDocument) -> list[dict]:
        nodes: list[dict] = []
        for block in document.nodes:
            if isinstance(block, HeadingNode):
                nodes.append(self.heading(inline_text(block.nodes), block.level or 3))
                continue
            children: list[dict] = []
            for inline in block.nodes:
                if isinstance(inline, TextNode):
                    children.append(self.text(inline.data, sanitize=False))
                elif isinstance(inline, LinkNode):
                    children.append(self.text(inline_text(list(inline.nodes)), link=inline.href))
            if children:
                nodes.append(self.paragraph(children))
        return nodes


def build_rich_content(post: AssembledPost, ids: NodeIdFactory) -> dict:
    """Sections, then FAQ, checklist and sources."""
    build = WixContentBuilder(ids)
    nodes: list[dict] = []
    post_title = post.title.strip().lower()

    for index, section in enumerate(post.sections):
        if not (index == 0 and post_title and section.title.strip().lower() == post_title):
            nodes.append(build.heading(section.title, 2))
        content = section.content
        if isinstance(content, str):
            content = parse_markup(content)
        if isinstance(content, RichDocument):
            nodes.extend(build.document(content))

    if post.faqs:
        nodes.append(build.heading("Frequently Asked Questions", 2))
        for faq in post.faqs:
            nodes.append(build.heading(faq.question, 3))
            nodes.append(build.paragraph([build.text(faq.answer)]))

    if post.checklist:
        nodes.append(build.heading("Recovery Checklist", 2))
        for item in post.checklist:
            nodes.append(build.paragraph([build.text(item)]))

    items: list[dict] = []
    for link in post.outbound_links:
        children: list[dict] = []
        descriptor = link.source or hostname(link.url)
        if descriptor:
            children.append(build.text(f"{descriptor}: ", sanitize=False))
        if link.url:
            children.append(build.text(link.title.strip() or link.url, link=link.url))
        elif link.title:
            children.append(build.text(link.title))
        if children:
            items.append(build.list_item(children))
    if items:
        nodes.append(build.heading("Sources & Further Reading", 2))
        nodes.append(build.bulleted_list(items))

    return {"nodes": nodes, "metadata": {"version": 1}, "documentStyle": {}}


def build_post_payload(post: AssembledPost, author_member_id: str, ids: NodeIdFactory) -> dict:
    payload: dict = {
        "title": post.title,
        "slug": post.slug,
        "authorId": author_member_id,
        "memberId": author_member_id,
        "excerpt": post.excerpt,
        "tags": post.seo_keywords[:MAX_TAGS],
        "category": post.metadata.category,
        "featured": post.metadata.featured,
        "published": False,
        "richContent": build_rich_content(post, ids),
        "seoData": {"title": post.seo_title, "description": post.seo_description},
    }
    image_url = normalize_image_url(post.featured_image_url)
    if image_url:
        payload["coverMedia"] = {"image": {"url": image_url}}
    return payload


# ---------------------------------------------------------------------------
# Publisher
# ---------------------------------------------------------------------------


class WixPublisher:
    """Publish assembled posts to a Wix Blog through a CMSClient."""

    def __init__(self, client: CMSClient, author_member_id: str) -> None:
        self.client = client
        self.author_member_id = author_member_id

    def _read_image(self, url: str) -> tuple[bytes, str, str]:
        """Return (data, filename, content_type) for a local path, file URI or URL."""
        parsed = urllib.parse.urlparse(url)
        if parsed.scheme in ("http", "https"):
            with urllib.request.urlopen(url, timeout=IMAGE_DOWNLOAD_TIMEOUT) as resp:
                data = resp.read()
                content_type = resp.headers.get_content_type() or "image/png"
            filename = Path(parsed.path).name or "featured-image.png"
            return data, filename, content_type

        path = Path(urllib.request.url2pathname(parsed.path)) if parsed.scheme == "file" else Path(url)
        content_type = mimetypes.guess_type(path.name)[0] or "image/png"
        return path.read_bytes(), path.name, content_type

    def rehost_image(self, url: str) -> str:
        """Copy the featured image into the CMS media manager.

        Raises:
            PublishError: The image could not be read or uploaded.
        """
        source = normalize_image_url(url) or url
        try:
            data, filename, content_type = self._read_image(source)
            hosted = self.client.upload_media(data, filename, content_type)
        except urllib.error.HTTPError as exc:
            logger.error("Featured image upload failed: HTTP %s", exc.code)
            raise normalize_error(exc) from exc
        except (urllib.error.URLError, OSError):
            logger.error("Featured image could not be read from %s", source, exc_info=True)
            hosted = None
        if not hosted:
            raise PublishError(
                "Failed to upload featured image to Wix Media Manager. Publish aborted."
            )
        logger.info("Featured image stored in Wix Media Manager: %s", hosted)
        return hosted

    def _fetch_url(self, external_id: str) -> str | None:
        try:
            return extract_post_url(self.client.get_post(external_id))
        except (OSError, PublishError):
            logger.warning("Failed to fetch post URL for %s", external_id, exc_info=True)
            return None

    def publish(
        self,
        post: AssembledPost,
        existing_external_id: str | None = None,
    ) -> PublishResult:
        """Create-and-publish, or update in place when *existing_external_id* is set.

        Raises:
            PreconditionError: The post has no featured image.
            PublishError: Any CMS failure, with status and remediation hint.
        """
        if not post.featured_image_url:
            raise PreconditionError(
                "Featured image is required before publishing. "
                "Generate or upload one before continuing."
            )

        try:
            hosted = self.rehost_image(post.featured_image_url)
            post = post.model_copy(update={"featured_image_url": hosted})
            payload = build_post_payload(post, self.author_member_id, NodeIdFactory())

            if existing_external_id:
                return self._update(payload, existing_external_id, hosted)
            return self._create(payload, hosted)
        except urllib.error.URLError as exc:
            raise normalize_error(exc) from exc
        except OSError as exc:
            # timeouts and dropped connections surface outside URLError
            raise PublishError(f"Wix API error: {exc!r}") from exc

    def _create(self, payload: dict, media_url: str) -> PublishResult:
        draft_handle = self.client.create_draft(payload)
        logger.info("Created Wix draft %s, publishing", draft_handle)
        response = self.client.publish_draft(draft_handle)
        published = response.get("post") or {}
        post_id = published.get("id") or response.get("postId")
        if not post_id:
            raise PublishError("Wix API did not return a published post ID")

        url = extract_post_url(published) or self._fetch_url(post_id)
        return PublishResult(
            action=PublishAction.CREATED,
            external_id=post_id,
            draft_handle=draft_handle,
            url=url,
            media_url=media_url,
        )

    def _update(self, payload: dict, external_id: str, media_url: str) -> PublishResult:
        response = self.client.update_post(external_id, payload)
        updated = response.get("post") or {}
        post_id = updated.get("id") or response.get("postId") or external_id
        logger.info("Updated Wix post %s", post_id)

        url = extract_post_url(updated) or self._fetch_url(post_id)
        return PublishResult(
            action=PublishAction.UPDATED,
            external_id=post_id,
            url=url,
            media_url=media_url,
        )
