"""Google search integrations for topic research.

Three read-only clients, all over urllib:

- Vertex AI Search (Discovery Engine) against the clinic's indexed data
  store, authenticated with application default credentials
- Google Custom Search JSON API
- Google Places details for the clinic's location

Clients raise on transport and HTTP failures; the research aggregator
decides how to degrade.
"""

from __future__ import annotations

import json
import logging
import urllib.parse
import urllib.request

import google.auth
from google.auth.transport.requests import Request
from pydantic import BaseModel

logger = logging.getLogger(__name__)

DISCOVERY_ENGINE_URL = "https://discoveryengine.googleapis.com/v1"
CUSTOM_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
PLACES_DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
PLACES_FIELDS = "name,formatted_address,business_status,reviews,rating"

# The Custom Search API caps a single page at 10 results.
CSE_MAX_PAGE = 10


class SearchHit(BaseModel):
    """A single search result as returned by a backend."""

    title: str = ""
    snippet: str = ""
    source: str = ""
    url: str | None = None


def _get_json(url: str, *, timeout: int) -> dict:
    with urllib.request.urlopen(url, timeout=timeout) as resp:
        return json.loads(resp.read().decode("utf-8"))


class VertexSearchClient:
    """Search a Vertex AI Search data store via the Discovery Engine REST API."""

    def __init__(
        self,
        project_id: str,
        location: str,
        data_store_id: str,
        *,
        timeout: int = 30,
    ) -> None:
        self.endpoint = (
            f"{DISCOVERY_ENGINE_URL}/projects/{project_id}/locations/{location}"
            f"/dataStores/{data_store_id}/servingConfigs/default_search:search"
        )
        self.timeout = timeout
        self._credentials: google.auth.credentials.Credentials | None = None

    def _access_token(self) -> str:
        if self._credentials is None:
            self._credentials, _ = google.auth.default(scopes=[CLOUD_PLATFORM_SCOPE])
        if not self._credentials.valid:
            self._credentials.refresh(Request())
        return self._credentials.token

    def search(self, query: str, max_results: int) -> list[SearchHit]:
        body = json.dumps({
            "query": query,
            "pageSize": max_results,
            "queryExpansionSpec": {"condition": "AUTO"},
            "spellCorrectionSpec": {"mode": "AUTO"},
        }).encode("utf-8")
        req = urllib.request.Request(
            self.endpoint,
            data=body,
            method="POST",
            headers={
                "Authorization": f"Bearer {self._access_token()}",
                "Content-Type": "application/json",
            },
        )
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            data = json.loads(resp.read().decode("utf-8"))

        hits: list[SearchHit] = []
        for result in data.get("results") or []:
            doc = result.get("document") or {}
            struct = doc.get("structData") or {}
            url = struct.get("url")
            hits.append(SearchHit(
                title=struct.get("title") or struct.get("h1") or doc.get("id") or "Untitled",
                snippet=struct.get("textSnippet") or doc.get("snippet") or "",
                source=(urllib.parse.urlparse(url).hostname or "") if url else "Vertex Search",
                url=url,
            ))
        logger.info("Vertex Search returned %d results", len(hits))
        return hits


class CustomSearchClient:
    """Google Custom Search JSON API client."""

    def __init__(self, api_key: str, cx: str, *, timeout: int = 30) -> None:
        self.api_key = api_key
        self.cx = cx
        self.timeout = timeout

    def search(self, query: str, max_results: int) -> list[SearchHit]:
        params = urllib.parse.urlencode({
            "q": query,
            "cx": self.cx,
            "key": self.api_key,
            "num": min(max_results, CSE_MAX_PAGE),
            "safe": "active",
        })
        data = _get_json(f"{CUSTOM_SEARCH_URL}?{params}", timeout=self.timeout)
        hits = [
            SearchHit(
                title=item.get("title", ""),
                snippet=item.get("snippet", ""),
                source=item.get("displayLink", ""),
                url=item.get("link"),
            )
            for item in data.get("items") or []
        ]
        logger.info("Custom Search returned %d results", len(hits))
        return hits


class PlacesClient:
    """Fetch the clinic's place details from the Google Places API."""

    def __init__(self, api_key: str, place_id: str, *, timeout: int = 30) -> None:
        self.api_key = api_key
        self.place_id = place_id
        self.timeout = timeout

    def details(self) -> dict | None:
        params = urllib.parse.urlencode({
            "place_id": self.place_id,
            "key": self.api_key,
            "fields": PLACES_FIELDS,
        })
        data = _get_json(f"{PLACES_DETAILS_URL}?{params}", timeout=self.timeout)
        return data.get("result")

    __call__ = details
