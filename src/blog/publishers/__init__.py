"""Blog publisher factory."""

from __future__ import annotations

from blogpipe.blog.publishers.base import CMSClient
from blogpipe.blog.publishers.wix import WixPublisher


def create_publisher(
    *,
    api_key: str,
    site_id: str,
    author_member_id: str,
    account_id: str = "",
    client: CMSClient | None = None,
) -> WixPublisher:
    """Create a Wix publisher, building the REST client unless one is given."""
    if client is None:
        from blogpipe.integrations.wix import WixAPIClient, WixConfig

        client = WixAPIClient(WixConfig(
            api_key=api_key,
            site_id=site_id,
            account_id=account_id,
            author_member_id=author_member_id,
        ))
    return WixPublisher(client, author_member_id)


__all__ = ["CMSClient", "WixPublisher", "create_publisher"]
