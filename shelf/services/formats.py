"""Format enrichment: one listing query per known format category."""

from __future__ import annotations

import logging

from ..errors import DataShapeError
from ..queries import library_books_query
from ..store import RecordStore
from ..utils import dig, edges, node_record_fields
from .fetcher import PageFetcher, graphql_page_info

logger = logging.getLogger(__name__)

PHASE = "format"

# Opaque category ids the library query accepts as a filter.
FORMAT_CATEGORIES: dict[str, str] = {
    "Paperback": "9504bfd1def00d211775cbed8234df6b",
    "Kindle eBook": "549b56ec07dceb02eb010bbde91e654f",
    "Hardcover": "6c354d115d06b99ae435776ce1eb971e",
    "Audible Audiobook": "db972bb474323d2d9fbb7bc828c5814a",
    "Board Book": "4f5d5a055115ae14c88c7bbc051d7d5b",
}

_page_info = graphql_page_info("getCustomerLibrary", "books")


class FormatEnricher:
    """Annotates records with their format, or builds them in preview runs."""

    def __init__(self, fetcher: PageFetcher, store: RecordStore) -> None:
        self._fetcher = fetcher
        self._store = store

    async def enrich(self, *, create: bool = False) -> int:
        """Walk every format category; with ``create`` also add unseen records.

        Returns the number of records touched.
        """

        sizes = self._fetcher.config.page_sizes
        page_size = sizes.formats_preview if create else sizes.formats
        updated = 0

        for format_name, category in FORMAT_CATEGORIES.items():
            pages = await self._fetcher.fetch_all(
                lambda cursor, category=category: library_books_query(
                    page_size, category, cursor, ids_only=not create
                ),
                _page_info,
                phase=f"{PHASE}:{format_name}",
                preview=create,
            )
            for page in pages:
                for edge in edges(page, "getCustomerLibrary", "books"):
                    node = edge.get("node")
                    item_id = dig(node, "asin")
                    if not item_id:
                        self._fetcher.reporter.report(
                            DataShapeError("No node or node asin"),
                            phase=PHASE,
                            node=node,
                        )
                        continue
                    if create:
                        if item_id in self._store:
                            self._store.merge_if_present(item_id, format=format_name)
                            continue
                        self._store.create_or_merge(
                            item_id, format=format_name, **node_record_fields(node)
                        )
                        updated += 1
                        self._fetcher.progress.items_discovered(len(self._store))
                    elif self._store.merge_if_present(item_id, format=format_name):
                        updated += 1
                self._fetcher.progress.phase_updated(PHASE, updated)

        logger.info("Format pass touched %s records", updated)
        return updated
