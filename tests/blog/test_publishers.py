"""Tests for the Wix publisher: rich content, payloads, create/update flows."""

from __future__ import annotations

import http.client
import io
import urllib.error
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from blogpipe.blog.assembler import assemble
from blogpipe.blog.models import AssembledPost, Metadata, PublishAction, ResearchData, Section, Source
from blogpipe.blog.publishers import create_publisher
from blogpipe.blog.publishers.base import CMSClient
from blogpipe.blog.publishers.wix import (
    NodeIdFactory,
    WixPublisher,
    build_post_payload,
    build_rich_content,
    extract_post_url,
    normalize_error,
    normalize_image_url,
    sanitize_text,
)
from blogpipe.blog.writer import build_section
from blogpipe.integrations.wix import WixAPIClient
from blogpipe.shared.errors import PreconditionError, PublishError

HOSTED = "https://static.wixstatic.com/media/abc.png"


def _post(image_url: str | None = None, title: str = "Ankle Sprain Recovery Treatment Guide") -> AssembledPost:
    research = ResearchData(
        topic="Ankle Sprain Recovery",
        keywords=["ankle", "sprain"],
        sources=[Source(title="NHS - Sprains", source="nhs.uk", url="https://www.nhs.uk/conditions/sprains/")],
    )
    sections = [
        build_section(title, "Opening paragraph about **sprains**.", 1),
        build_section(
            "Early Care",
            "[H3]First 48 Hours[/H3]\nRest for 2-4 days. See [NHS advice](https://www.nhs.uk/conditions/sprains/).",
            2,
        ),
    ]
    metadata = Metadata.for_topic("Ankle Sprain Recovery").model_copy(
        update={"featured_image_url": image_url, "seo_keywords": [f"kw{i}" for i in range(15)]}
    )
    return assemble("Ankle Sprain Recovery", sections, metadata, research)


def _image(tmp_path: Path) -> str:
    path = tmp_path / "featured.png"
    path.write_bytes(b"\x89PNG fake")
    return str(path)


def _client() -> MagicMock:
    client = MagicMock(spec=CMSClient)
    client.upload_media.return_value = HOSTED
    client.create_draft.return_value = "draft-1"
    client.publish_draft.return_value = {"post": {"id": "post-1", "url": "https://clinic.example/post/ankle"}}
    client.update_post.return_value = {"post": {"id": "post-1", "url": "https://clinic.example/post/ankle"}}
    return client


def _http_error(code: int, body: bytes = b"") -> urllib.error.HTTPError:
    return urllib.error.HTTPError("https://www.wixapis.com/x", code, "Error", {}, io.BytesIO(body))


def _all_nodes(nodes: list[dict]) -> list[dict]:
    out: list[dict] = []
    for node in nodes:
        out.append(node)
        out.extend(_all_nodes(node.get("nodes", [])))
    return out


class TestHelpers:
    def test_sanitize_text(self):
        assert sanitize_text("**Bold** and _em_ `code`") == "Bold and em code"
        assert sanitize_text("See [NHS](https://nhs.uk) now") == "See NHS (https://nhs.uk) now"
        assert sanitize_text("- item one") == "item one"
        assert sanitize_text("Rest for 2-4 weeks") == "Rest for 2-4 weeks"
        assert sanitize_text("  a \n\n b  ") == "a b"

    def test_normalize_image_url(self):
        assert normalize_image_url(None) is None
        assert normalize_image_url("https://storage.cloud.google.com/bucket/img.png") == (
            "https://storage.googleapis.com/bucket/img.png"
        )
        assert normalize_image_url("gs://bucket/dir/img.png") == (
            "https://storage.googleapis.com/bucket/dir/img.png"
        )
        assert normalize_image_url("https://cdn.example/x.png") == "https://cdn.example/x.png"

    def test_extract_post_url(self):
        assert extract_post_url({"url": "https://a"}) == "https://a"
        assert extract_post_url({"link": {"href": "https://b"}}) == "https://b"
        assert extract_post_url({}) is None
        assert extract_post_url(None) is None

    def test_node_ids_unique_per_factory(self):
        ids = NodeIdFactory()
        first, second = ids("text"), ids("text")
        assert first != second
        assert first.startswith("text-")
        assert ids("heading").startswith("heading-")


class TestNormalizeError:
    def test_http_error_with_hint(self):
        err = normalize_error(_http_error(401, b'{"message": "invalid token"}'))
        assert str(err) == "Wix API 401: invalid token - Check WIX_API_KEY"
        assert err.status == 401
        assert err.hint == "Check WIX_API_KEY"
        assert "invalid token" in err.body

    def test_http_error_without_hint(self):
        err = normalize_error(_http_error(500, b"oops"))
        assert str(err) == "Wix API 500: Error"
        assert err.hint is None

    def test_transport_error(self):
        err = normalize_error(urllib.error.URLError("connection refused"))
        assert str(err) == "Wix API error: connection refused"
        assert err.status is None


class TestBuildRichContent:
    def test_structure(self):
        content = build_rich_content(_post(), NodeIdFactory())
        top = content["nodes"]
        headings = [
            n["nodes"][0]["textData"]["text"] for n in top if n["type"] == "HEADING"
        ]
        # The first section repeats the post title, so its heading is skipped.
        assert headings[0] == "Early Care"
        assert "First 48 Hours" in headings
        assert "Frequently Asked Questions" in headings
        assert "Recovery Checklist" in headings
        assert headings[-1] == "Sources & Further Reading"
        assert top[-1]["type"] == "BULLETED_LIST"

    def test_ids_unique(self):
        nodes = _all_nodes(build_rich_content(_post(), NodeIdFactory())["nodes"])
        ids = [n["id"] for n in nodes]
        assert len(ids) == len(set(ids))

    def test_links_decorated(self):
        nodes = _all_nodes(build_rich_content(_post(), NodeIdFactory())["nodes"])
        linked = [
            n for n in nodes
            if n["type"] == "TEXT" and n["textData"]["decorations"]
        ]
        assert any(
            n["textData"]["decorations"][0]["linkData"]["link"]["url"]
            == "https://www.nhs.uk/conditions/sprains/"
            for n in linked
        )

    def test_body_text_keeps_hyphens(self):
        nodes = _all_nodes(build_rich_content(_post(), NodeIdFactory())["nodes"])
        texts = [n["textData"]["text"] for n in nodes if n["type"] == "TEXT"]
        assert any("2-4 days" in t for t in texts)


class TestBuildPostPayload:
    def test_payload(self):
        payload = build_post_payload(_post(HOSTED), "member-1", NodeIdFactory())
        assert payload["authorId"] == "member-1"
        assert payload["memberId"] == "member-1"
        assert len(payload["tags"]) == 10
        assert payload["coverMedia"] == {"image": {"url": HOSTED}}
        assert payload["seoData"]["title"] == payload["seoData"]["title"].strip()
        assert payload["published"] is False

    def test_no_cover_without_image(self):
        assert "coverMedia" not in build_post_payload(_post(), "m", NodeIdFactory())


class TestWixPublisher:
    def test_requires_featured_image(self):
        client = _client()
        with pytest.raises(PreconditionError, match="Featured image is required"):
            WixPublisher(client, "member-1").publish(_post())
        client.upload_media.assert_not_called()
        client.create_draft.assert_not_called()

    def test_create_and_publish(self, tmp_path: Path):
        client = _client()
        result = WixPublisher(client, "member-1").publish(_post(_image(tmp_path)))

        assert result.action == PublishAction.CREATED
        assert result.external_id == "post-1"
        assert result.draft_handle == "draft-1"
        assert result.url == "https://clinic.example/post/ankle"
        assert result.media_url == HOSTED
        data, filename, content_type = client.upload_media.call_args.args
        assert data == b"\x89PNG fake"
        assert filename == "featured.png"
        assert content_type == "image/png"
        payload = client.create_draft.call_args.args[0]
        assert payload["coverMedia"]["image"]["url"] == HOSTED
        client.publish_draft.assert_called_once_with("draft-1")

    def test_update_existing(self, tmp_path: Path):
        client = _client()
        result = WixPublisher(client, "member-1").publish(_post(_image(tmp_path)), "post-1")

        assert result.action == PublishAction.UPDATED
        assert result.external_id == "post-1"
        client.create_draft.assert_not_called()
        assert client.update_post.call_args.args[0] == "post-1"

    def test_publish_twice_updates_same_post(self, tmp_path: Path):
        client = _client()
        publisher = WixPublisher(client, "member-1")
        post = _post(_image(tmp_path))
        first = publisher.publish(post)
        second = publisher.publish(post, first.external_id)
        assert first.action == PublishAction.CREATED
        assert second.action == PublishAction.UPDATED
        assert second.external_id == first.external_id
        assert client.create_draft.call_count == 1

    def test_update_response_without_id_keeps_existing(self, tmp_path: Path):
        client = _client()
        client.update_post.return_value = {}
        client.get_post.return_value = {"link": {"href": "https://clinic.example/p"}}
        result = WixPublisher(client, "m").publish(_post(_image(tmp_path)), "post-9")
        assert result.external_id == "post-9"
        assert result.url == "https://clinic.example/p"

    def test_url_lookup_failure_ignored(self, tmp_path: Path):
        client = _client()
        client.publish_draft.return_value = {"postId": "post-2"}
        client.get_post.side_effect = urllib.error.URLError("timeout")
        result = WixPublisher(client, "m").publish(_post(_image(tmp_path)))
        assert result.external_id == "post-2"
        assert result.url is None

    def test_missing_post_id(self, tmp_path: Path):
        client = _client()
        client.publish_draft.return_value = {}
        with pytest.raises(PublishError, match="did not return a published post ID"):
            WixPublisher(client, "m").publish(_post(_image(tmp_path)))

    def test_upload_failure_aborts(self, tmp_path: Path):
        client = _client()
        client.upload_media.return_value = None
        with pytest.raises(PublishError, match="Publish aborted"):
            WixPublisher(client, "m").publish(_post(_image(tmp_path)))
        client.create_draft.assert_not_called()

    def test_unreadable_image_aborts(self, tmp_path: Path):
        client = _client()
        with pytest.raises(PublishError, match="Publish aborted"):
            WixPublisher(client, "m").publish(_post(str(tmp_path / "missing.png")))
        client.upload_media.assert_not_called()

    def test_http_error_normalized(self, tmp_path: Path):
        client = _client()
        client.create_draft.side_effect = _http_error(404, b'{"message": "app missing"}')
        with pytest.raises(PublishError) as exc_info:
            WixPublisher(client, "m").publish(_post(_image(tmp_path)))
        assert exc_info.value.status == 404
        assert exc_info.value.hint == "Ensure Wix Blog app is installed"

    def test_upload_http_error_carries_hint(self, tmp_path: Path):
        client = _client()
        client.upload_media.side_effect = _http_error(401, b'{"message": "bad token"}')
        with pytest.raises(PublishError) as exc_info:
            WixPublisher(client, "m").publish(_post(_image(tmp_path)))
        assert exc_info.value.status == 401
        assert exc_info.value.hint == "Check WIX_API_KEY"
        assert "bad token" in str(exc_info.value)
        client.create_draft.assert_not_called()

    def test_timeout_becomes_publish_error(self, tmp_path: Path):
        client = _client()
        client.create_draft.side_effect = TimeoutError("The read operation timed out")
        with pytest.raises(PublishError, match="timed out") as exc_info:
            WixPublisher(client, "m").publish(_post(_image(tmp_path)))
        assert exc_info.value.status is None
        assert isinstance(exc_info.value.__cause__, TimeoutError)

    def test_dropped_connection_becomes_publish_error(self, tmp_path: Path):
        client = _client()
        client.update_post.side_effect = http.client.RemoteDisconnected("closed")
        with pytest.raises(PublishError):
            WixPublisher(client, "m").publish(_post(_image(tmp_path)), "post-1")

    def test_url_lookup_timeout_ignored(self, tmp_path: Path):
        client = _client()
        client.publish_draft.return_value = {"postId": "post-3"}
        client.get_post.side_effect = TimeoutError()
        result = WixPublisher(client, "m").publish(_post(_image(tmp_path)))
        assert result.external_id == "post-3"
        assert result.url is None


class TestCreatePublisher:
    def test_builds_rest_client(self):
        publisher = create_publisher(api_key="k", site_id="s", author_member_id="m", account_id="a")
        assert isinstance(publisher, WixPublisher)
        assert isinstance(publisher.client, WixAPIClient)
        assert publisher.client.config.account_id == "a"
        assert publisher.author_member_id == "m"

    def test_uses_given_client(self):
        client = _client()
        assert create_publisher(api_key="", site_id="", author_member_id="m", client=client).client is client
