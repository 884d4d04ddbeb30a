"""Wix CMS integration: config and REST client.

Covers the Blog v3 draft/post endpoints and the Media Manager upload
endpoint.  Non-2xx responses surface as ``urllib.error.HTTPError``;
translating them into user-facing errors is the publisher's job.
"""

from __future__ import annotations

import json
import logging
import urllib.request
import uuid

from blogpipe.blog.publishers.base import CMSClient
from blogpipe.shared.errors import PublishError
from pydantic import BaseModel

logger = logging.getLogger(__name__)

WIX_API_BASE = "https://www.wixapis.com"
DEFAULT_TIMEOUT = 15
UPLOAD_TIMEOUT = 30


class WixConfig(BaseModel):
    """Configuration for Wix publishing."""

    api_key: str = ""
    site_id: str = ""
    account_id: str = ""
    author_member_id: str = ""
    base_url: str = WIX_API_BASE

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.site_id and self.author_member_id)


class WixAPIClient(CMSClient):
    """Client for the Wix Blog and Media REST APIs via urllib."""

    def __init__(self, config: WixConfig) -> None:
        self.config = config
        self.base_url = config.base_url.rstrip("/")

    def _headers(self, *, bearer: bool = False) -> dict[str, str]:
        key = self.config.api_key
        if bearer and not key.startswith("Bearer "):
            key = f"Bearer {key}"
        headers = {"Authorization": key, "wix-site-id": self.config.site_id}
        if bearer and self.config.account_id:
            headers["wix-account-id"] = self.config.account_id
        return headers

    def _request(self, method: str, path: str, data: dict | None = None) -> dict:
        """Make an authenticated JSON request to the Wix API."""
        url = f"{self.base_url}{path}"
        body = json.dumps(data).encode("utf-8") if data is not None else None
        headers = self._headers()
        headers["Content-Type"] = "application/json"
        req = urllib.request.Request(url, data=body, method=method, headers=headers)

        logger.debug("Wix %s %s", method, path)
        with urllib.request.urlopen(req, timeout=DEFAULT_TIMEOUT) as resp:
            raw = resp.read().decode("utf-8")
        return json.loads(raw) if raw.strip() else {}

    def _request_multipart(
        self, path: str, data: bytes, filename: str, content_type: str, field: str = "file"
    ) -> dict:
        """Upload bytes via multipart form POST."""
        url = f"{self.base_url}{path}"
        boundary = f"----BlogpipeUploadBoundary{uuid.uuid4().hex}"

        disposition = (
            f'Content-Disposition: form-data; name="{field}";'
            f' filename="{filename}"\r\n'
        )
        body = b"".join([
            f"--{boundary}\r\n".encode(),
            disposition.encode(),
            f"Content-Type: {content_type}\r\n\r\n".encode(),
            data,
            f"\r\n--{boundary}--\r\n".encode(),
        ])

        headers = self._headers(bearer=True)
        headers["Content-Type"] = f"multipart/form-data; boundary={boundary}"
        req = urllib.request.Request(url, data=body, method="POST", headers=headers)

        with urllib.request.urlopen(req, timeout=UPLOAD_TIMEOUT) as resp:
            return json.loads(resp.read().decode("utf-8"))

    # ── Blog posts ───────────────────────────────────────────────

    def create_draft(self, payload: dict) -> str:
        """Create a draft post and return its draft id."""
        result = self._request("POST", "/blog/v3/draft-posts", {"draftPost": payload})
        draft_id = (result.get("draftPost") or {}).get("id")
        if not draft_id:
            raise PublishError("Wix API did not return a draft ID")
        return draft_id

    def publish_draft(self, draft_id: str) -> dict:
        """Publish a draft; returns the raw response (``post`` / ``postId``)."""
        return self._request("POST", f"/blog/v3/draft-posts/{draft_id}/publish")

    def update_post(self, post_id: str, payload: dict) -> dict:
        """Update a published post in place."""
        return self._request("PATCH", f"/blog/v3/posts/{post_id}", {"post": payload})

    def get_post(self, post_id: str) -> dict | None:
        result = self._request("GET", f"/blog/v3/posts/{post_id}")
        return result.get("post")

    # ── Media ────────────────────────────────────────────────────

    def upload_media(self, data: bytes, filename: str, content_type: str) -> str | None:
        """Upload a file to the site's Media Manager and return its URL."""
        result = self._request_multipart(
            "/media-platform/v1/files/upload?purpose=site-files",
            data,
            filename,
            content_type,
        )
        url = (result.get("file") or {}).get("url")
        if not url:
            logger.warning("No file URL in Wix media upload response")
        return url
