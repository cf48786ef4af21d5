"""Cursor-paginated fetching against the library API with retry and backoff."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Union

import httpx

from ..config import RunConfig
from ..errors import (
    DataShapeError,
    FetchError,
    MalformedResponseError,
    PaginationError,
    ProtocolError,
    TransportError,
)
from ..models import PageInfo
from .reporting import ErrorReporter, ProgressReporter

logger = logging.getLogger(__name__)

QUERY_PATH = "/kindle-reader-api"
CSRF_HEADER = "Anti-Csrftoken-A2z"
NON_RETRYABLE_CLASSIFICATIONS = frozenset({"InvalidSyntax"})

Query = Union[str, httpx.Request]
QueryBuilder = Callable[[str], Query]
PageInfoExtractor = Callable[[dict[str, Any]], Union[PageInfo, None]]
CredentialProvider = Callable[[], Union[str, None, Awaitable[Union[str, None]]]]


class PageFetcher:
    """Runs one query family to exhaustion and returns every page received.

    ``fetch_all`` never raises: failures are reported and the pages gathered so
    far are returned.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        config: RunConfig,
        *,
        credentials: CredentialProvider,
        reporter: ErrorReporter,
        progress: ProgressReporter,
        session_cookies: str | None = None,
    ) -> None:
        self._client = http_client
        self._config = config
        self._credentials = credentials
        self._reporter = reporter
        self._progress = progress
        self._session_cookies = session_cookies

    @property
    def config(self) -> RunConfig:
        return self._config

    @property
    def reporter(self) -> ErrorReporter:
        return self._reporter

    @property
    def progress(self) -> ProgressReporter:
        return self._progress

    async def fetch_all(
        self,
        build_query: QueryBuilder,
        extract_page_info: PageInfoExtractor,
        *,
        phase: str,
        preview: bool = False,
        operation_name: str | None = None,
        base_delay: float | None = None,
        on_page: Callable[[dict[str, Any]], None] | None = None,
    ) -> list[dict[str, Any]]:
        """Page through ``build_query`` until no next page remains."""

        max_attempts = self._config.max_attempts
        delay = self._config.retry_base_delay if base_delay is None else base_delay
        pages: list[dict[str, Any]] = []
        cursor = ""
        has_next = True
        attempt = 0

        while has_next:
            query: Query | None = None
            try:
                query = build_query(cursor)
                page = await self._request(query, operation_name)
            except FetchError as exc:
                self._reporter.report(
                    exc,
                    phase=phase,
                    attempt=attempt,
                    query=_describe(query),
                )
                if not exc.retryable:
                    logger.warning("Unretryable %s error, aborting %s", exc.__class__.__name__, phase)
                    break
                attempt += 1
                if attempt >= max_attempts:
                    logger.warning(
                        "Giving up on %s after %s attempts with %s pages",
                        phase,
                        attempt,
                        len(pages),
                    )
                    return pages
                await asyncio.sleep(delay * 2**attempt)
                continue

            page_info = extract_page_info(page)
            if page_info is None:
                exc = FetchError("Response is missing page info")
                self._reporter.report(
                    exc, phase=phase, attempt=attempt, query=_describe(query)
                )
                attempt += 1
                if attempt >= max_attempts:
                    return pages
                await asyncio.sleep(delay * 2**attempt)
                continue

            attempt = 0
            pages.append(page)
            self._progress.page_fetched()
            if on_page is not None:
                on_page(page)
            if preview:
                break

            has_next = page_info.has_next
            if has_next and page_info.end_cursor == cursor:
                self._reporter.report(
                    PaginationError(
                        "endCursor has not changed between requests, "
                        "potentially causing an infinite loop"
                    ),
                    phase=phase,
                    cursor=cursor,
                    query=_describe(query),
                )
                break
            cursor = page_info.end_cursor

        return pages

    async def _request(
        self, query: Query, operation_name: str | None
    ) -> dict[str, Any]:
        token = self._credentials()
        if asyncio.iscoroutine(token) or isinstance(token, asyncio.Future):
            token = await token
        if not token:
            raise DataShapeError("CSRF token is missing")

        headers = {CSRF_HEADER: str(token)}
        if self._session_cookies:
            headers["Cookie"] = self._session_cookies

        try:
            if isinstance(query, httpx.Request):
                query.headers.update(headers)
                response = await self._client.send(query)
            else:
                body: dict[str, str] = {"query": query}
                if operation_name:
                    body["operationName"] = operation_name
                response = await self._client.post(QUERY_PATH, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(
                f"{exc.__class__.__name__} talking to library API: {exc}"
            ) from exc

        return self._parse(response)

    @staticmethod
    def _parse(response: httpx.Response) -> dict[str, Any]:
        content_type = response.headers.get("content-type", "")
        if "text/html" in content_type:
            raise MalformedResponseError(
                "Unexpected HTML response",
                details={"status": response.status_code, "body": response.text[:500]},
            )
        try:
            payload = response.json()
        except ValueError:
            payload = None

        # An errors envelope wins over the HTTP status.
        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            messages = ", ".join(
                str(error.get("message")) if isinstance(error, dict) else str(error)
                for error in errors
            )
            fatal = any(
                isinstance(error, dict)
                and (error.get("extensions") or {}).get("classification")
                in NON_RETRYABLE_CLASSIFICATIONS
                for error in errors
            )
            raise ProtocolError(
                f"GraphQL Error: {messages}",
                retryable=not fatal,
                details={"errors": errors, "status": response.status_code},
            )

        if not response.is_success:
            raise TransportError(
                f"HTTP error! status: {response.status_code}, {response.reason_phrase}",
                details={"body": response.text[:500]},
            )
        if payload is None:
            raise MalformedResponseError(
                "Response body is not JSON",
                details={"body": response.text[:500]},
            )
        if not isinstance(payload, dict):
            raise MalformedResponseError("Response body is not a JSON object")
        return payload


def graphql_page_info(*path: str) -> PageInfoExtractor:
    """Return an extractor reading ``pageInfo`` under ``data.<path>``."""

    def _extract(payload: dict[str, Any]) -> PageInfo | None:
        node: Any = payload.get("data")
        for key in path:
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        if not isinstance(node, dict):
            return None
        info = node.get("pageInfo")
        if not isinstance(info, dict):
            return None
        return PageInfo(
            has_next=bool(info.get("hasNextPage")),
            end_cursor=info.get("endCursor") or "",
        )

    return _extract


def single_page(_: dict[str, Any]) -> PageInfo:
    """Page info for queries that are not paginated."""

    return PageInfo(has_next=False)


def _describe(query: Query | None) -> str | None:
    if query is None:
        return None
    if isinstance(query, httpx.Request):
        return f"{query.method} {query.url}"
    return query
