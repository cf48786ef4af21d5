"""Series enrichment in two bounded rounds.

The series aggregation query caps how many distinct series it returns across
all of its pages, so round one filters it per genre. Round two searches by the
first author of each record still without a series to catch what the cap hid.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..models import GenreNode
from ..queries import books_in_series_query, series_aggregation_query
from ..store import RecordStore
from ..utils import dig, edge_ids
from .fetcher import PageFetcher, graphql_page_info
from .scheduler import run_all

logger = logging.getLogger(__name__)

PHASE = "series"

_aggregation_page_info = graphql_page_info("getCustomerLibrary", "seriesAggregation")
_series_books_page_info = graphql_page_info("getCustomerLibrary", "series", "books")


class SeriesEnricher:
    """Assigns the series display title to every member record."""

    def __init__(self, fetcher: PageFetcher, store: RecordStore) -> None:
        self._fetcher = fetcher
        self._store = store
        self._updated = 0

    async def enrich(self, genres: Iterable[GenreNode]) -> int:
        """Run both rounds for a full export."""

        genre_ids = [genre.id for genre in genres]
        genre_pages = await self._aggregate(
            [("", genre_id) for genre_id in genre_ids]
        )
        covered = self._series_ids(genre_pages)
        logger.info("Round one found %s series over %s genres", len(covered), len(genre_ids))
        await self.assign(covered)

        authors = sorted(
            {
                record.first_author
                for record in self._store
                if not record.series_name and record.authors
            }
        )
        author_pages = await self._aggregate([(author, "") for author in authors])
        missing = self._series_ids(
            page for page in author_pages if _total_count(page) > 0
        ) - covered
        logger.info("Round two found %s more series over %s authors", len(missing), len(authors))
        await self.assign(missing)
        return self._updated

    async def enrich_preview(self) -> int:
        """Author-only round used for preview exports."""

        authors = sorted({record.first_author for record in self._store if record.authors})
        author_pages = await self._aggregate([(author, "") for author in authors])
        series_ids = self._series_ids(
            page for page in author_pages if _total_count(page) > 0
        )
        await self.assign(series_ids)
        return self._updated

    async def assign(self, series_ids: Iterable[str]) -> int:
        """Resolve each series to its members and tag the known records."""

        page_size = self._fetcher.config.page_sizes.items_in_series

        def make_task(series_id: str):
            async def _task() -> list[dict[str, Any]]:
                return await self._fetcher.fetch_all(
                    lambda cursor: books_in_series_query(
                        series_id, cursor, page_size=page_size
                    ),
                    _series_books_page_info,
                    phase=f"{PHASE}:{series_id}",
                )

            return _task

        tasks = [make_task(series_id) for series_id in sorted(series_ids)]
        results = await run_all(
            tasks, self._fetcher.config.concurrency_limit, reporter=self._fetcher.reporter
        )
        for pages in results:
            for page in pages:
                series = dig(page, "data", "getCustomerLibrary", "series")
                name = dig(series, "product", "title", "displayString")
                if not name:
                    continue
                for item_id in edge_ids(page, "getCustomerLibrary", "series", "books"):
                    if self._store.merge_if_present(item_id, series_name=name):
                        self._updated += 1
                self._fetcher.progress.phase_updated(PHASE, self._updated)
        return self._updated

    async def _aggregate(
        self, filters: Iterable[tuple[str, str]]
    ) -> list[dict[str, Any]]:
        page_size = self._fetcher.config.page_sizes.series_aggregation

        def make_task(keyword: str, genre_id: str):
            async def _task() -> list[dict[str, Any]]:
                return await self._fetcher.fetch_all(
                    lambda cursor: series_aggregation_query(
                        keyword, genre_id, cursor, page_size=page_size
                    ),
                    _aggregation_page_info,
                    phase=f"{PHASE}:aggregation",
                )

            return _task

        tasks = [make_task(keyword, genre_id) for keyword, genre_id in filters]
        results = await run_all(
            tasks, self._fetcher.config.concurrency_limit, reporter=self._fetcher.reporter
        )
        return [page for pages in results for page in pages]

    @staticmethod
    def _series_ids(pages: Iterable[dict[str, Any]]) -> set[str]:
        series_ids: set[str] = set()
        for page in pages:
            series_ids.update(edge_ids(page, "getCustomerLibrary", "seriesAggregation"))
        return series_ids


def _total_count(page: dict[str, Any]) -> int:
    number = dig(page, "data", "getCustomerLibrary", "seriesAggregation", "totalCount", "number")
    try:
        return int(number or 0)
    except (TypeError, ValueError):
        return 0
