"""Helpers for cleaning author names and deriving sort keys."""

from __future__ import annotations

import logging
import re
from typing import Sequence

from .models import UNKNOWN

logger = logging.getLogger(__name__)

# Tokens marking the end of a surname: degrees, honorifics and generational
# suffixes.
NAME_SUFFIXES = frozenset(
    {
        "MD", "M.D.", "PhD", "Ph.D.", "DPhil", "D.Phil.", "EdD", "Ed.D.",
        "D.Ed.", "JD", "J.D.", "MSc", "M.Sc.", "MS", "M.S.", "MA", "M.A.",
        "MSW", "M.S.W.", "MBA", "M.B.A.", "BSc", "B.Sc.", "BS", "B.S.",
        "BA", "B.A.", "LLB", "L.L.B.", "LLM", "L.L.M.", "DVM", "D.V.M.",
        "DDS", "D.D.S.", "OD", "O.D.", "DO", "D.O.", "PharmD", "Pharm.D.",
        "DNP", "D.N.P.", "DC", "D.C.", "DMD", "D.M.D.", "PsyD", "Psy.D.",
        "DrPH", "Dr.P.H.", "MPH", "M.P.H.", "RN", "R.N.", "PA", "P.A.",
        "NP", "N.P.", "RPh", "R.Ph.", "PT", "P.T.", "OT", "O.T.", "Esq",
        "Esq.", "L.M.F.T.", "LMFT", "II", "III", "IV", "V", "Sr", "Sr.",
        "Jr", "Jr.",
    }
)

AUTHOR_DELIMITER = ", "

HONORIFICS = frozenset({"mr", "mrs", "ms", "miss", "dr", "prof", "sir"})

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_authors(raw: object) -> list[str]:
    """Split a raw ``"Last, First:Other Name:"`` author string into clean names.

    Exact duplicate segments are dropped before formatting.

    >>> normalize_authors("A, B:C:A, B:C:")
    ['B A', 'C']
    """

    if not isinstance(raw, str) or not raw:
        logger.warning("Unknown author value %r", raw)
        return [UNKNOWN]

    segments = raw.replace(", ", ",").split(":")
    unique: list[str] = []
    for segment in segments:
        if segment and segment not in unique:
            unique.append(segment)

    authors: list[str] = []
    for segment in unique:
        parts = segment.split(",")
        if len(parts) == 2:
            last, first = parts
            authors.append(f"{first.strip()} {last.strip()}")
        elif len(parts) == 1:
            authors.append(parts[0].strip())
        else:
            authors.append(segment)
    return authors or [UNKNOWN]


def format_authors(authors: Sequence[str]) -> str:
    """Join author names for display, ``"Unknown"`` when there are none."""

    return AUTHOR_DELIMITER.join(authors) or UNKNOWN


def clean_contributor(name: str) -> str:
    """Trim a contributor name and collapse inner whitespace."""

    return _WHITESPACE_RE.sub(" ", name.strip())


def author_sort_key(name: str) -> str:
    """Rearrange a display name into ``"Surname Suffix, Given Names"``.

    Names such as "Fustel de Coulanges, Numa Denis" are not handled.
    """

    parts = name.split(" ")
    if len(parts) == 1:
        return parts[0]

    title_index = next(
        (index for index, part in enumerate(parts) if part in NAME_SUFFIXES),
        -1,
    )
    surname_start = len(parts) - 1 if title_index == -1 else title_index - 1
    # A suffix in first position leaves no token before it.
    surname_start = max(surname_start, 0)
    given = " ".join(parts[:surname_start]).strip()
    surname = " ".join(parts[surname_start:]).strip()
    return f"{surname}, {given}"


def first_name(full_name: str | None) -> str:
    """Return the name used to greet a customer."""

    names = (full_name or "").split()
    if not names:
        return ""
    if len(names) > 1 and names[0].lower().rstrip(".") in HONORIFICS:
        return f"{names[0]} {names[1]}"
    return names[0]
