"""Pytest configuration and test helpers."""

from __future__ import annotations

import json
import re
import sys
from pathlib import Path
from typing import Any

import httpx
import pytest


# Ensure the application packages are importable when running tests without an
# editable install. ``shelf`` and ``shelfexport`` sit at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shelf.services.fetcher import QUERY_PATH  # noqa: E402
from shelf.services.listing import LISTING_PATH  # noqa: E402

API_BASE_URL = "https://api.example.com"

_STRING_ARG = r'("(?:[^"\\]|\\.)*")'


def _argument(query: str, name: str) -> str:
    match = re.search(rf"{name}: {_STRING_ARG}", query)
    return json.loads(match.group(1)) if match else ""


def _connection(nodes: list[dict[str, Any]], **extra: Any) -> dict[str, Any]:
    return {
        "pageInfo": {"hasNextPage": False, "endCursor": ""},
        "edges": [{"node": node} for node in nodes],
        **extra,
    }


def library_node(item_id: str, title: str, *authors: str) -> dict[str, Any]:
    """A full library book node as returned by the format queries."""

    return {
        "asin": item_id,
        "relationshipType": "PURCHASE",
        "relationshipSubType": ["KINDLE"],
        "relationshipCreationDate": 1712300000000,
        "product": {
            "asin": item_id,
            "title": {"displayString": title},
            "byLine": {"contributors": [{"name": name} for name in authors]},
        },
    }


def product_payload(
    item_id: str,
    *,
    pages: str | None = None,
    binding: str | None = None,
    listening_length: str | None = None,
    series_title: str | None = None,
    series_position: Any = None,
) -> dict[str, Any]:
    """A ``getProducts`` entry carrying the overview attributes we read."""

    attributes: list[dict[str, Any]] = []
    if pages:
        attributes.append(
            {
                "label": {"id": "book_details-fiona_pages", "displayContent": None},
                "granularizedValue": {"displayContent": {"fragments": [{"text": pages}]}},
            }
        )
    if binding:
        attributes.append(
            {
                "label": {
                    "id": "book_details-binding",
                    "displayContent": {"fragments": [{"text": binding}]},
                },
                "granularizedValue": None,
            }
        )
    if listening_length:
        attributes.append(
            {
                "label": {"id": "audiobook_details-listening_length", "displayContent": None},
                "granularizedValue": {
                    "displayContent": {"fragments": [{"text": listening_length}]}
                },
            }
        )
    series = None
    if series_title:
        series = {"singleBookView": {"series": {"title": series_title, "position": series_position}}}
    return {
        "asin": item_id,
        "overview": {"sectionGroups": [{"sections": [{"attributes": attributes}]}]},
        "bookSeries": series,
    }


class FakeLibraryApi:
    """In-memory stand-in for the listing endpoint and the GraphQL endpoint.

    Every query family answers with a single page. Families named in
    ``failing`` answer with HTTP 500.
    """

    node = staticmethod(library_node)
    product = staticmethod(product_payload)

    def __init__(self) -> None:
        self.listing: list[dict[str, Any]] = []
        self.formats: dict[str, list[dict[str, Any]]] = {}
        self.genres: list[dict[str, Any]] = []
        self.genre_members: dict[tuple[str, str], list[str]] = {}
        self.series_by_genre: dict[str, list[str]] = {}
        self.series_by_author: dict[str, list[str]] = {}
        self.series: dict[str, tuple[str, list[str]]] = {}
        self.products: dict[str, dict[str, Any]] = {}
        self.failing: set[str] = set()
        self.calls: list[str] = []

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler), base_url=API_BASE_URL
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == LISTING_PATH:
            return self._respond("listing", {"itemsList": self.listing})
        assert request.url.path == QUERY_PATH
        query = json.loads(request.content)["query"]
        if "getProducts" in query:
            return self._respond("details", self._details(query))
        if "genreAggregation" in query:
            return self._respond("genre_aggregation", self._genre_aggregation())
        if "seriesAggregation" in query:
            return self._respond("series_aggregation", self._series_aggregation(query))
        if "genre(genreId:" in query:
            return self._respond("genre_members", self._genre_members(query))
        if "series(seriesId:" in query:
            return self._respond("series_members", self._series_members(query))
        return self._respond("formats", self._formats(query))

    def _respond(self, family: str, payload: dict[str, Any]) -> httpx.Response:
        self.calls.append(family)
        if family in self.failing:
            return httpx.Response(500, json={"message": "Internal failure"})
        return httpx.Response(200, json=payload)

    def _formats(self, query: str) -> dict[str, Any]:
        nodes = self.formats.get(_argument(query, "query"), [])
        if "relationshipType" not in query:
            nodes = [{"asin": node["asin"]} for node in nodes]
        return {"data": {"getCustomerLibrary": {"books": _connection(nodes)}}}

    def _genre_aggregation(self) -> dict[str, Any]:
        return {"data": {"getCustomerLibrary": {"genreAggregation": _connection(self.genres)}}}

    def _genre_members(self, query: str) -> dict[str, Any]:
        genre_id = _argument(query, "genreId")
        sub_genre_id = _argument(query, "query")
        name = next(
            (genre["name"] for genre in self.genres if genre["id"] == genre_id), None
        )
        ids = self.genre_members.get((genre_id, sub_genre_id), [])
        genre = {
            "id": genre_id,
            "name": name,
            "books": _connection([{"asin": item_id} for item_id in ids]),
        }
        return {"data": {"getCustomerLibrary": {"genre": genre}}}

    def _series_aggregation(self, query: str) -> dict[str, Any]:
        keyword = _argument(query, "keyword")
        genre_id = _argument(query, "query")
        if keyword:
            series_ids = self.series_by_author.get(keyword, [])
        else:
            series_ids = self.series_by_genre.get(genre_id, [])
        aggregation = _connection(
            [{"asin": series_id} for series_id in series_ids],
            totalCount={"number": len(series_ids)},
        )
        return {"data": {"getCustomerLibrary": {"seriesAggregation": aggregation}}}

    def _series_members(self, query: str) -> dict[str, Any]:
        series_id = _argument(query, "seriesId")
        title, ids = self.series.get(series_id, ("", []))
        series = {
            "product": {"asin": series_id, "title": {"displayString": title}},
            "books": _connection([{"asin": item_id} for item_id in ids]),
        }
        return {"data": {"getCustomerLibrary": {"series": series}}}

    def _details(self, query: str) -> dict[str, Any]:
        ids = [json.loads(raw) for raw in re.findall(rf"asin: {_STRING_ARG}", query)]
        return {
            "data": {
                "getProducts": [self.products[item_id] for item_id in ids if item_id in self.products]
            }
        }


@pytest.fixture
def library_api() -> FakeLibraryApi:
    return FakeLibraryApi()
