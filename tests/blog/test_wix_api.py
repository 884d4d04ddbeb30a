"""Tests for the Wix REST client."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from blogpipe.integrations.wix import WixAPIClient, WixConfig
from blogpipe.shared.errors import PublishError

_CONFIG = WixConfig(api_key="IST.key", site_id="site-1", account_id="acct-1", author_member_id="member-1")


def _response(payload: dict | None) -> MagicMock:
    resp = MagicMock()
    resp.read.return_value = json.dumps(payload).encode() if payload is not None else b""
    resp.__enter__ = MagicMock(return_value=resp)
    resp.__exit__ = MagicMock(return_value=False)
    return resp


class TestWixConfig:
    def test_is_configured(self):
        assert _CONFIG.is_configured is True

    def test_not_configured_without_author(self):
        assert WixConfig(api_key="k", site_id="s").is_configured is False

    def test_default(self):
        assert WixConfig().is_configured is False


class TestRequests:
    @patch("blogpipe.integrations.wix.urllib.request.urlopen")
    def test_create_draft(self, mock_urlopen):
        mock_urlopen.return_value = _response({"draftPost": {"id": "draft-1"}})
        client = WixAPIClient(_CONFIG)

        assert client.create_draft({"title": "T"}) == "draft-1"

        req = mock_urlopen.call_args.args[0]
        assert req.full_url == "https://www.wixapis.com/blog/v3/draft-posts"
        assert req.get_method() == "POST"
        assert req.get_header("Authorization") == "IST.key"
        assert req.get_header("Wix-site-id") == "site-1"
        assert json.loads(req.data) == {"draftPost": {"title": "T"}}
        assert mock_urlopen.call_args.kwargs["timeout"] == 15

    @patch("blogpipe.integrations.wix.urllib.request.urlopen")
    def test_create_draft_without_id(self, mock_urlopen):
        mock_urlopen.return_value = _response({"draftPost": {}})
        with pytest.raises(PublishError, match="draft ID"):
            WixAPIClient(_CONFIG).create_draft({})

    @patch("blogpipe.integrations.wix.urllib.request.urlopen")
    def test_publish_draft(self, mock_urlopen):
        mock_urlopen.return_value = _response({"post": {"id": "post-1"}})
        result = WixAPIClient(_CONFIG).publish_draft("draft-1")
        assert result == {"post": {"id": "post-1"}}
        req = mock_urlopen.call_args.args[0]
        assert req.full_url.endswith("/blog/v3/draft-posts/draft-1/publish")
        assert req.data is None

    @patch("blogpipe.integrations.wix.urllib.request.urlopen")
    def test_update_post_patches(self, mock_urlopen):
        mock_urlopen.return_value = _response({"post": {"id": "post-1"}})
        WixAPIClient(_CONFIG).update_post("post-1", {"title": "New"})
        req = mock_urlopen.call_args.args[0]
        assert req.get_method() == "PATCH"
        assert req.full_url.endswith("/blog/v3/posts/post-1")
        assert json.loads(req.data) == {"post": {"title": "New"}}

    @patch("blogpipe.integrations.wix.urllib.request.urlopen")
    def test_get_post_empty_body(self, mock_urlopen):
        mock_urlopen.return_value = _response(None)
        assert WixAPIClient(_CONFIG).get_post("post-1") is None


class TestUploadMedia:
    @patch("blogpipe.integrations.wix.urllib.request.urlopen")
    def test_multipart_upload(self, mock_urlopen):
        mock_urlopen.return_value = _response({"file": {"url": "https://static.wixstatic.com/x.png"}})
        url = WixAPIClient(_CONFIG).upload_media(b"PNGDATA", "hero.png", "image/png")

        assert url == "https://static.wixstatic.com/x.png"
        req = mock_urlopen.call_args.args[0]
        assert "purpose=site-files" in req.full_url
        assert req.get_header("Authorization") == "Bearer IST.key"
        assert req.get_header("Wix-account-id") == "acct-1"
        assert req.get_header("Content-type").startswith("multipart/form-data; boundary=")
        assert b'filename="hero.png"' in req.data
        assert b"PNGDATA" in req.data
        assert mock_urlopen.call_args.kwargs["timeout"] == 30

    @patch("blogpipe.integrations.wix.urllib.request.urlopen")
    def test_bearer_prefix_not_doubled(self, mock_urlopen):
        mock_urlopen.return_value = _response({"file": {}})
        client = WixAPIClient(WixConfig(api_key="Bearer abc", site_id="s"))
        assert client.upload_media(b"x", "a.png", "image/png") is None
        req = mock_urlopen.call_args.args[0]
        assert req.get_header("Authorization") == "Bearer abc"
        assert req.get_header("Wix-account-id") is None
