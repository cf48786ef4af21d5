"""Per-product detail enrichment in fixed-size id batches."""

from __future__ import annotations

import logging
from typing import Any

from ..models import ProductDetails
from ..queries import PRODUCT_DETAILS_OPERATION, product_details_query
from ..store import RecordStore
from ..utils import dig
from .fetcher import PageFetcher, single_page
from .scheduler import run_all

logger = logging.getLogger(__name__)

PHASE = "details"

PAGES_LABEL = "book_details-fiona_pages"
BINDING_LABEL = "book_details-binding"
LISTENING_LENGTH_LABEL = "audiobook_details-listening_length"


def _first_fragment(content: Any) -> str | None:
    fragments = dig(content, "fragments")
    if isinstance(fragments, list) and fragments:
        text = dig(fragments[0], "text")
        return str(text) if text else None
    return None


def parse_product_details(payload: dict[str, Any]) -> list[ProductDetails]:
    """Extract details for every product in a ``getProducts`` response."""

    products = dig(payload, "data", "getProducts") or []
    parsed: list[ProductDetails] = []
    for product in products:
        if not isinstance(product, dict) or not product.get("asin"):
            continue
        values: dict[str, str | None] = {
            "page_count": None,
            "listening_length": None,
            "detailed_format": None,
        }
        for group in dig(product, "overview", "sectionGroups") or []:
            for section in dig(group, "sections") or []:
                for attribute in dig(section, "attributes") or []:
                    label_id = dig(attribute, "label", "id")
                    if label_id == PAGES_LABEL and values["page_count"] is None:
                        values["page_count"] = _first_fragment(
                            dig(attribute, "granularizedValue", "displayContent")
                        )
                    elif label_id == BINDING_LABEL and values["detailed_format"] is None:
                        values["detailed_format"] = _first_fragment(
                            dig(attribute, "label", "displayContent")
                        )
                    elif (
                        label_id == LISTENING_LENGTH_LABEL
                        and values["listening_length"] is None
                    ):
                        values["listening_length"] = _first_fragment(
                            dig(attribute, "granularizedValue", "displayContent")
                        )

        series = dig(product, "bookSeries", "singleBookView", "series") or {}
        parsed.append(
            ProductDetails(
                id=str(product["asin"]),
                series_title=series.get("title") or None,
                series_position=series.get("position") or None,
                **values,
            )
        )
    return parsed


class DetailEnricher:
    """Fetches product details for every known record."""

    def __init__(self, fetcher: PageFetcher, store: RecordStore) -> None:
        self._fetcher = fetcher
        self._store = store

    async def enrich(self) -> int:
        batch_size = self._fetcher.config.detail_batch_size
        ids = self._store.ids()
        batches = [ids[start : start + batch_size] for start in range(0, len(ids), batch_size)]

        def make_task(batch: list[str]):
            async def _task() -> list[dict[str, Any]]:
                return await self._fetcher.fetch_all(
                    lambda _cursor: product_details_query(batch),
                    single_page,
                    phase=PHASE,
                    operation_name=PRODUCT_DETAILS_OPERATION,
                )

            return _task

        results = await run_all(
            [make_task(batch) for batch in batches],
            self._fetcher.config.concurrency_limit,
            reporter=self._fetcher.reporter,
        )

        updated = 0
        for pages in results:
            for page in pages:
                for details in parse_product_details(page):
                    fields: dict[str, Any] = {
                        "page_count": details.parsed_page_count,
                        "listening_length": details.listening_length,
                        "series_title": details.series_title,
                        "series_position": details.series_position,
                    }
                    # Only matters for bindings like "Mass Market Paperback".
                    if details.detailed_format:
                        fields["format"] = details.detailed_format
                    if self._store.merge_if_present(details.id, **fields):
                        updated += 1
            self._fetcher.progress.phase_updated(PHASE, updated)

        logger.info("Fetched details for %s of %s records in %s batches", updated, len(ids), len(batches))
        return updated
