"""Sorting and rendering of the delimited library report."""

from __future__ import annotations

import locale
import logging
import unicodedata
from typing import Iterable, Sequence

from .models import UNKNOWN, Record
from .names import author_sort_key, first_name, format_authors
from .utils import escape_quotes

logger = logging.getLogger(__name__)

LIST_DELIMITER = " | "

FULL_COLUMNS = (
    "ISBN / ASIN (Amazon ID)",
    "Link",
    "Acquired Date",
    "Acquisition Subtype",
    "Acquisition Type",
    "Format",
    "Title",
    "Pages",
    "Listening Length",
    "Genres",
    "Subgenres",
    "Series Position",
    "Series",
    "(First) Author",
    "All Authors",
)

BASIC_COLUMNS = (
    "ISBN / ASIN (Amazon ID)",
    "Link",
    "Type",
    "Origin",
    "Title",
    "Author(s)",
)


def assign_sort_keys(records: Iterable[Record]) -> None:
    """Derive ``sort_key`` from each record's first author."""

    for record in records:
        record.sort_key = author_sort_key(record.first_author) if record.authors else UNKNOWN


def use_system_collation() -> None:
    """Collate with the user's locale; keep "C" when it cannot be loaded."""

    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        logger.warning("System locale unavailable, sorting with accent folding only")


def _fold(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(char for char in decomposed if not unicodedata.combining(char)).casefold()


def _collate(value: str) -> str:
    folded = _fold(value)
    try:
        return locale.strxfrm(folded)
    except (ValueError, OSError):
        return folded


def _position(value: str | None) -> float:
    if not value:
        return 0.0
    try:
        return float(value)
    except ValueError:
        return 0.0


def sort_records(records: Iterable[Record]) -> list[Record]:
    """Order by author sort key, series title, series position, then title."""

    return sorted(
        records,
        key=lambda record: (
            _collate(record.sort_key or UNKNOWN),
            _collate(record.series_title or ""),
            _position(record.series_position),
            _collate(record.title or ""),
        ),
    )


def _cell(value: object) -> str:
    if value is None:
        return '""'
    return f'"{escape_quotes(str(value))}"'


def _row(cells: Sequence[str]) -> str:
    return ",".join(cells) + "\n"


def message_block(
    mode: str,
    *,
    padding: int,
    customer_name: str = "",
    license_url: str = "",
    review_url: str = "",
    feedback_email: str | None = None,
) -> str:
    """Informational lines padded so they line up under the title column."""

    lead = '"",' * padding
    lines: list[str] = []
    if mode == "preview":
        lines.append("Buy a license to export your full book collection:")
        lines.append(license_url)
    else:
        greeting = first_name(customer_name)
        if feedback_email:
            lines.append(
                f"Hi {greeting}, you can send suggestions to {feedback_email}"
                if greeting
                else f"You can send suggestions to {feedback_email}"
            )
        lines.append("If this looks good, could you leave a review? The link is right below:")
        lines.append(review_url)
    body = "".join(f"{lead}{_cell(line)}\n" for line in lines if line)
    return f"\n{body}\n"


def record_row(record: Record, product_url_base: str) -> str:
    return _row(
        [
            f'="{record.id}"',
            _cell(f"{product_url_base}{record.id}"),
            _cell(record.acquired_date),
            _cell(record.acquisition_subtype),
            _cell(record.acquisition_type),
            _cell(record.format),
            _cell(record.title),
            _cell(record.page_count),
            _cell(record.listening_length),
            _cell(LIST_DELIMITER.join(record.genres)),
            _cell(LIST_DELIMITER.join(record.sub_genres)),
            _cell(record.series_position),
            _cell(record.series_title),
            _cell(record.sort_key),
            _cell(format_authors(record.authors)),
        ]
    )


def render_report(
    records: Iterable[Record],
    *,
    mode: str,
    product_url_base: str,
    customer_name: str = "",
    license_url: str = "",
    review_url: str = "",
    feedback_email: str | None = None,
) -> str:
    """Render the full report; records are sorted here."""

    records = list(records)
    assign_sort_keys(record for record in records if record.sort_key is None)
    block = message_block(
        mode,
        padding=6,
        customer_name=customer_name,
        license_url=license_url,
        review_url=review_url,
        feedback_email=feedback_email,
    )
    parts = [block, _row([_cell(column) for column in FULL_COLUMNS])]
    parts.extend(record_row(record, product_url_base) for record in sort_records(records))
    parts.append(block)
    return "".join(parts)


def render_basic_report(
    records: Iterable[Record],
    *,
    mode: str,
    product_url_base: str,
    customer_name: str = "",
    license_url: str = "",
    review_url: str = "",
    feedback_email: str | None = None,
) -> str:
    """Render the quick export built from the bulk listing alone, in listing order."""

    block = message_block(
        mode,
        padding=4,
        customer_name=customer_name,
        license_url=license_url,
        review_url=review_url,
        feedback_email=feedback_email,
    )
    parts = [block, _row([_cell(column) for column in BASIC_COLUMNS])]
    for record in records:
        parts.append(
            _row(
                [
                    f'="{record.id}"',
                    _cell(f"{product_url_base}{record.id}"),
                    _cell(record.acquisition_subtype),
                    _cell(record.acquisition_type),
                    _cell(record.title),
                    _cell(format_authors(record.authors)),
                ]
            )
        )
    parts.append(block)
    return "".join(parts)
