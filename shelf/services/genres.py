"""Genre and subgenre enrichment."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from ..models import GenreNode
from ..queries import books_in_genre_query, genre_aggregation_query
from ..store import RecordStore
from ..utils import dig, edge_ids, edges
from .fetcher import PageFetcher, graphql_page_info
from .scheduler import run_all

logger = logging.getLogger(__name__)

PHASE = "genre"

_aggregation_page_info = graphql_page_info("getCustomerLibrary", "genreAggregation")
_genre_books_page_info = graphql_page_info("getCustomerLibrary", "genre", "books")


class GenreEnricher:
    """Appends genre and subgenre names to matching records."""

    def __init__(self, fetcher: PageFetcher, store: RecordStore) -> None:
        self._fetcher = fetcher
        self._store = store
        self._updated = 0

    async def list_genres(self) -> list[GenreNode]:
        """Enumerate every genre in the library with its subgenres."""

        page_size = self._fetcher.config.page_sizes.genre_aggregation
        pages = await self._fetcher.fetch_all(
            lambda cursor: genre_aggregation_query(cursor, page_size=page_size),
            _aggregation_page_info,
            phase=f"{PHASE}:aggregation",
        )
        genres: list[GenreNode] = []
        for page in pages:
            for edge in edges(page, "getCustomerLibrary", "genreAggregation"):
                try:
                    genres.append(GenreNode.model_validate(edge.get("node")))
                except ValidationError as exc:
                    self._fetcher.reporter.report(exc, phase=PHASE, edge=edge)
        return genres

    async def enrich(self) -> list[GenreNode]:
        """Run the genre pass then the subgenre pass; returns the genres found.

        Subgenres do not cover all of a genre's books, so they are queried
        separately from the genre itself.
        """

        genres = await self.list_genres()
        logger.info("Found %s genres", len(genres))
        limit = self._fetcher.config.concurrency_limit

        genre_tasks = [
            lambda genre=genre: self._fetch_members(genre.id) for genre in genres
        ]
        for pages in await run_all(genre_tasks, limit, reporter=self._fetcher.reporter):
            for page in pages:
                name = dig(page, "data", "getCustomerLibrary", "genre", "name")
                if name:
                    self._assign(page, "genres", name)

        subgenre_tasks = [
            lambda genre=genre, sub=sub: self._fetch_subgenre(genre, sub.id, sub.name)
            for genre in genres
            for sub in genre.sub_genres
        ]
        for sub_name, pages in await run_all(
            subgenre_tasks, limit, reporter=self._fetcher.reporter
        ):
            for page in pages:
                self._assign(page, "sub_genres", sub_name)

        return genres

    async def _fetch_members(
        self, genre_id: str, sub_genre_id: str = ""
    ) -> list[dict[str, Any]]:
        page_size = self._fetcher.config.page_sizes.items_in_genre
        return await self._fetcher.fetch_all(
            lambda cursor: books_in_genre_query(
                genre_id, cursor, sub_genre_id, page_size=page_size
            ),
            _genre_books_page_info,
            phase=f"{PHASE}:{genre_id}:{sub_genre_id}" if sub_genre_id else f"{PHASE}:{genre_id}",
        )

    async def _fetch_subgenre(
        self, genre: GenreNode, sub_genre_id: str, sub_genre_name: str
    ) -> tuple[str, list[dict[str, Any]]]:
        return sub_genre_name, await self._fetch_members(genre.id, sub_genre_id)

    def _assign(self, page: dict[str, Any], field: str, name: str) -> None:
        for item_id in edge_ids(page, "getCustomerLibrary", "genre", "books"):
            record = self._store.get(item_id)
            if record is None:
                continue
            if field == "genres" and not record.genres:
                self._updated += 1
            self._store.merge_if_present(item_id, **{field: name})
        if field == "genres":
            self._fetcher.progress.phase_updated(PHASE, self._updated)
