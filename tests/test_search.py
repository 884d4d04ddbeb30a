"""Tests for the Google search integrations."""

from __future__ import annotations

import json
import urllib.parse
from unittest.mock import MagicMock, patch

from blogpipe.integrations.search import (
    CustomSearchClient,
    PlacesClient,
    SearchHit,
    VertexSearchClient,
)


def _response(payload: dict) -> MagicMock:
    resp = MagicMock()
    resp.read.return_value = json.dumps(payload).encode()
    resp.__enter__ = MagicMock(return_value=resp)
    resp.__exit__ = MagicMock(return_value=False)
    return resp


def _query(url: str) -> dict[str, list[str]]:
    return urllib.parse.parse_qs(urllib.parse.urlparse(url).query)


class TestCustomSearchClient:
    @patch("blogpipe.integrations.search.urllib.request.urlopen")
    def test_maps_items(self, mock_urlopen):
        mock_urlopen.return_value = _response({
            "items": [
                {"title": "Sprains - NHS", "snippet": "Rest.", "displayLink": "www.nhs.uk",
                 "link": "https://www.nhs.uk/conditions/sprains/"},
            ]
        })
        hits = CustomSearchClient("key", "cx-1").search("ankle sprain", 25)

        assert hits == [SearchHit(
            title="Sprains - NHS", snippet="Rest.", source="www.nhs.uk",
            url="https://www.nhs.uk/conditions/sprains/",
        )]
        params = _query(mock_urlopen.call_args.args[0])
        assert params["num"] == ["10"]
        assert params["safe"] == ["active"]
        assert params["cx"] == ["cx-1"]

    @patch("blogpipe.integrations.search.urllib.request.urlopen")
    def test_no_items(self, mock_urlopen):
        mock_urlopen.return_value = _response({})
        assert CustomSearchClient("key", "cx").search("q", 5) == []


class TestVertexSearchClient:
    @patch("blogpipe.integrations.search.urllib.request.urlopen")
    @patch("blogpipe.integrations.search.google.auth.default")
    def test_search(self, mock_default, mock_urlopen):
        credentials = MagicMock(valid=False, token="tok-1")
        mock_default.return_value = (credentials, "proj")
        mock_urlopen.return_value = _response({
            "results": [
                {"document": {"id": "doc-1", "structData": {
                    "title": "Ankle rehab at the clinic",
                    "textSnippet": "Our programme...",
                    "url": "https://clinic.example/ankle",
                }}},
                {"document": {"id": "doc-2", "snippet": "No url"}},
            ]
        })

        client = VertexSearchClient("proj", "global", "store-1")
        hits = client.search("ankle sprain", 5)

        credentials.refresh.assert_called_once()
        req = mock_urlopen.call_args.args[0]
        assert req.full_url.endswith(
            "/projects/proj/locations/global/dataStores/store-1/servingConfigs/default_search:search"
        )
        assert req.get_header("Authorization") == "Bearer tok-1"
        assert json.loads(req.data)["pageSize"] == 5
        assert hits[0].source == "clinic.example"
        assert hits[0].title == "Ankle rehab at the clinic"
        assert hits[1].title == "doc-2"
        assert hits[1].source == "Vertex Search"
        assert hits[1].snippet == "No url"


class TestPlacesClient:
    @patch("blogpipe.integrations.search.urllib.request.urlopen")
    def test_details(self, mock_urlopen):
        mock_urlopen.return_value = _response({"result": {"name": "JT Physiotherapy", "rating": 4.9}})
        client = PlacesClient("key", "place-1")
        assert client() == {"name": "JT Physiotherapy", "rating": 4.9}
        assert _query(mock_urlopen.call_args.args[0])["place_id"] == ["place-1"]
