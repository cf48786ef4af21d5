"""High level orchestration for library exports."""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, TypeVar

import httpx

from ..config import RunConfig, Settings
from ..models import ExportResult
from ..report import assign_sort_keys, render_basic_report, render_report
from ..store import RecordStore
from .details import DetailEnricher
from .fetcher import CredentialProvider, PageFetcher
from .formats import FormatEnricher
from .genres import GenreEnricher
from .listing import LibraryListing
from .reporting import ErrorReporter, ProgressReporter, ProgressTracker
from .series import SeriesEnricher

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LibraryExporter:
    """Builds the enriched catalog for one run and renders the report."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    def _fetcher(
        self,
        config: RunConfig,
        credentials: CredentialProvider,
        progress: ProgressReporter,
        reporter: ErrorReporter,
    ) -> PageFetcher:
        return PageFetcher(
            self._client,
            config,
            credentials=credentials,
            reporter=reporter,
            progress=progress,
            session_cookies=self._settings.session_cookies,
        )

    def _reporter(self, config: RunConfig) -> ErrorReporter:
        return ErrorReporter(
            customer_name=config.customer_name,
            customer_email=config.customer_email,
            anonymous_id=config.anonymous_id,
        )

    async def run(
        self,
        config: RunConfig,
        credentials: CredentialProvider,
        progress: ProgressReporter | None = None,
    ) -> ExportResult:
        """Run every phase for ``config.mode`` and return the rendered report."""

        progress = progress or ProgressTracker()
        reporter = self._reporter(config)
        fetcher = self._fetcher(config, credentials, progress, reporter)
        store = RecordStore()
        logger.info(
            "Starting %s export with concurrency %s", config.mode, config.concurrency_limit
        )

        if config.preview:
            await self._phase(
                "formats", reporter, FormatEnricher(fetcher, store).enrich(create=True)
            )
        else:
            listing = LibraryListing(fetcher, self._client)
            records = await self._phase("listing", reporter, listing.fetch_all_records())
            for record in records or []:
                store.add(record)
            progress.items_discovered(len(store))
            await self._phase("formats", reporter, FormatEnricher(fetcher, store).enrich())

        genres = await self._phase("genres", reporter, GenreEnricher(fetcher, store).enrich())

        series = SeriesEnricher(fetcher, store)
        if config.preview:
            await self._phase("series", reporter, series.enrich_preview())
        else:
            await self._phase("series", reporter, series.enrich(genres or []))

        await self._phase("details", reporter, DetailEnricher(fetcher, store).enrich())

        records = store.records()
        assign_sort_keys(records)
        report = render_report(
            records,
            mode=config.mode,
            product_url_base=config.product_url_base,
            customer_name=config.customer_name,
            license_url=self._settings.license_url,
            review_url=self._settings.review_url,
            feedback_email=self._settings.feedback_email,
        )
        progress.done()
        logger.info(
            "Export finished with %s records and %s reported errors",
            len(records),
            reporter.count,
        )
        return ExportResult(report=report, record_count=len(records), mode=config.mode)

    async def run_basic(
        self,
        config: RunConfig,
        credentials: CredentialProvider,
        progress: ProgressReporter | None = None,
    ) -> ExportResult:
        """Quick export from the bulk listing alone."""

        progress = progress or ProgressTracker()
        reporter = self._reporter(config)
        fetcher = self._fetcher(config, credentials, progress, reporter)
        listing = LibraryListing(fetcher, self._client)
        records = await self._phase(
            "listing", reporter, listing.fetch_all_records(preview=config.preview)
        )
        records = records or []
        report = render_basic_report(
            records,
            mode=config.mode,
            product_url_base=config.product_url_base,
            customer_name=config.customer_name,
            license_url=self._settings.license_url,
            review_url=self._settings.review_url,
            feedback_email=self._settings.feedback_email,
        )
        progress.done()
        return ExportResult(report=report, record_count=len(records), mode=config.mode)

    @staticmethod
    async def _phase(
        name: str, reporter: ErrorReporter, work: Awaitable[T]
    ) -> T | None:
        started = time.perf_counter()
        try:
            return await work
        except Exception as exc:  # pragma: no cover - phase safety net
            logger.exception("Export phase %s failed", name)
            reporter.report(exc, phase=name)
            return None
        finally:
            logger.info(
                "Phase %s took %.2f seconds", name, time.perf_counter() - started
            )


def static_credentials(token: str | None) -> Callable[[], str | None]:
    """Credential provider returning a fixed token."""

    def _provide() -> str | None:
        return token

    return _provide
