"""Base class for CMS clients used by the publisher."""

from __future__ import annotations

from abc import ABC, abstractmethod


class CMSClient(ABC):
    """Minimal surface of a blog CMS: drafts, posts and media."""

    @abstractmethod
    def create_draft(self, payload: dict) -> str:
        """Create a draft post and return its draft handle."""

    @abstractmethod
    def publish_draft(self, draft_handle: str) -> dict:
        """Publish a draft and return the raw response."""

    @abstractmethod
    def update_post(self, external_id: str, payload: dict) -> dict:
        """Update an existing post in place and return the raw response."""

    @abstractmethod
    def get_post(self, external_id: str) -> dict | None:
        """Fetch a post, or None if it has no body."""

    @abstractmethod
    def upload_media(self, data: bytes, filename: str, content_type: str) -> str | None:
        """Upload a file to the CMS media manager and return its hosted URL."""
