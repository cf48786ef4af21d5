"""Primary library listing and the two-sort-order merge."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Literal

import httpx

from ..errors import DataShapeError
from ..models import UNKNOWN, PageInfo, Record
from ..names import normalize_authors
from ..utils import readable_date
from .fetcher import PageFetcher

logger = logging.getLogger(__name__)

LISTING_PATH = "/kindle-library/search"

SortOrder = Literal["acquisition_asc", "acquisition_desc"]


def listing_page_info(payload: dict[str, Any]) -> PageInfo | None:
    """Derive cursor state from the flat ``paginationToken``."""

    if not isinstance(payload.get("itemsList"), list):
        return None
    token = payload.get("paginationToken") or ""
    return PageInfo(has_next=bool(token), end_cursor=str(token))


def listing_item_to_record(item: dict[str, Any]) -> Record | None:
    """Convert a bulk listing entry into a record; entries without an id are skipped."""

    item_id = item.get("asin")
    if not item_id:
        return None
    raw_authors = item.get("authors")
    if isinstance(raw_authors, list):
        raw_authors = raw_authors[0] if raw_authors else None
    fields: dict[str, Any] = {
        "title": item.get("title") or UNKNOWN,
        "authors": normalize_authors(raw_authors),
        "acquisition_type": str(item.get("originType") or UNKNOWN).lower(),
        "acquisition_subtype": str(item.get("resourceType") or UNKNOWN).lower(),
    }
    if item.get("acquiredTime") is not None:
        fields["acquired_date"] = readable_date(item.get("acquiredTime"))
    return Record(id=str(item_id), **fields)


def merge_listings(
    ascending: Iterable[Record], descending: Iterable[Record]
) -> list[Record]:
    """Union two listing passes by id; the ascending copy wins on conflict."""

    merged: dict[str, Record] = {}
    for record in ascending:
        merged.setdefault(record.id, record)
    for record in descending:
        merged.setdefault(record.id, record)
    return list(merged.values())


class LibraryListing:
    """Pages through the bulk listing endpoint."""

    def __init__(self, fetcher: PageFetcher, http_client: httpx.AsyncClient) -> None:
        self._fetcher = fetcher
        self._client = http_client

    async def fetch_pass(
        self, sort_order: SortOrder, *, preview: bool = False
    ) -> list[Record]:
        """Return every record one sort order yields, in listing order."""

        sizes = self._fetcher.config.page_sizes
        page_size = sizes.listing_preview if preview else sizes.listing
        records: list[Record] = []
        progress = self._fetcher.progress
        reporter = self._fetcher.reporter

        def build_request(cursor: str) -> httpx.Request:
            params: dict[str, Any] = {
                "query": "",
                "libraryType": "BOOKS",
                "sortType": sort_order,
                "querySize": page_size,
            }
            if cursor:
                params["paginationToken"] = cursor
            return self._client.build_request("GET", LISTING_PATH, params=params)

        def collect(page: dict[str, Any]) -> None:
            for item in page.get("itemsList") or []:
                record = listing_item_to_record(item) if isinstance(item, dict) else None
                if record is None:
                    reporter.report(
                        DataShapeError("Listing entry has no id"),
                        phase="listing",
                        item=item,
                    )
                    continue
                records.append(record)
            progress.items_discovered(len(records))

        await self._fetcher.fetch_all(
            build_request,
            listing_page_info,
            phase=f"listing:{sort_order}",
            preview=preview,
            base_delay=self._fetcher.config.listing_retry_delay,
            on_page=collect,
        )
        return records

    async def fetch_all_records(self, *, preview: bool = False) -> list[Record]:
        """Return the whole listing, using both sort orders past the window cap."""

        ascending = await self.fetch_pass("acquisition_asc", preview=preview)
        window_cap = self._fetcher.config.window_cap
        if preview or len(ascending) < window_cap:
            return ascending

        logger.info(
            "Ascending listing reached the %s item window, fetching descending pass",
            window_cap,
        )
        descending = await self.fetch_pass("acquisition_desc")
        merged = merge_listings(ascending, descending)
        self._fetcher.progress.items_discovered(len(merged))
        return merged
