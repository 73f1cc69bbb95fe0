"""Series (program line) classification for performance rows.

Weekly spreadsheets group performances under section header rows
("CLASSICAL SERIES", "POPS SERIES TOTAL", ...). The extractor tracks the
current section while walking rows; ``resolve_series`` turns that tag plus
title heuristics into the final series label.

Fallback order:
1. Section tag from the spreadsheet, unless it is missing or generic ("Other")
2. Title heuristics (CS/CS<n> prefix, "piazza", "film:")
3. The generic section tag, if there was one
4. ``UNASSIGNED_SERIES``
"""

from __future__ import annotations

import logging
import re

from boxoffice_core.types import UNASSIGNED_SERIES

logger = logging.getLogger(__name__)

GENERIC_SERIES = "Other"

# Ordered: first match wins
SECTION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^CLASSICAL", re.IGNORECASE), "Classical"),
    (re.compile(r"^SYMPHONIC PIAZZA", re.IGNORECASE), "Piazza"),
    (re.compile(r"^POPS", re.IGNORECASE), "Pops"),
    (re.compile(r"^FAMILY", re.IGNORECASE), "Family"),
    (re.compile(r"^FILM", re.IGNORECASE), "Film"),
    (re.compile(r"^ON STAGE", re.IGNORECASE), "Special"),
    (re.compile(r"^MATTHIAS", re.IGNORECASE), "Special"),
    (re.compile(r"^JUKEBOX", re.IGNORECASE), "Special"),
    (re.compile(r"^OTHER", re.IGNORECASE), "Other"),
)

_KNOWN_PREFIX_RE = re.compile(
    r"^(CLASSICAL|POPS|FAMILY|FILM|ON STAGE|MATTHIAS|JUKEBOX|OTHER|SYMPHONIC PIAZZA)\b"
)
_SECTION_SUFFIXES = (
    "SERIES",
    "SERIES TOTAL",
    "CONCERTS",
    "CONCERTS TOTAL",
    "CONCERT TOTAL",
)
_SECTION_EXACT = {"CLASSICAL", "CLASSICAL TRADITIONAL", "POPS", "FAMILY", "FILM"}

_CLASSICAL_CODE_RE = re.compile(r"^CS\d*\b", re.IGNORECASE)
_TOTAL_WORD_RE = re.compile(r"\bTOTALS?\b")


def detect_section_series(
    text: str,
    markers: tuple[tuple[re.Pattern[str], str], ...] = SECTION_PATTERNS,
) -> str | None:
    """Return the series a section label names, or None.

    Examples:
        >>> detect_section_series("POPS SERIES")
        'Pops'
        >>> detect_section_series("Test Concert") is None
        True

    """
    for pattern, series in markers:
        if pattern.search(text.strip()):
            return series
    return None


def is_section_header(text: str) -> bool:
    """True for section header and section total rows."""
    upper = text.upper().strip()
    if not upper:
        return False
    if upper.endswith(_SECTION_SUFFIXES) or upper in _SECTION_EXACT:
        return True
    if "GRAND TOTAL" in upper or "PIAZZA TOTAL" in upper or "ALL CONCERTS" in upper:
        return True
    if _KNOWN_PREFIX_RE.match(upper):
        return "TOTAL" in upper or "SERIES" in upper or "CONCERTS" in upper or " " not in upper
    return False


def is_skip_row(text: str) -> bool:
    """True for blank, placeholder ("OPEN"), recording week and total rows.

    TOTAL counts only as a whole word, so "Totally Tubular" is a performance.
    """
    upper = text.upper().strip()
    return (
        upper == ""
        or upper == "OPEN"
        or "OPEN -" in upper
        or "RECORDING WEEK" in upper
        or _TOTAL_WORD_RE.search(upper) is not None
        or "ALL CONCERTS" in upper
    )


def series_from_title(title: str, first_cell: str = "") -> str | None:
    """Guess the series from a performance title.

    Examples:
        >>> series_from_title("CS3 Beethoven's Ninth")
        'Classical'
        >>> series_from_title("Silent Film: Nosferatu")
        'Film'

    """
    lowered = title.lower()
    if _CLASSICAL_CODE_RE.match(title) or _CLASSICAL_CODE_RE.match(first_cell):
        return "Classical"
    if "piazza" in lowered:
        return "Piazza"
    if "film:" in lowered:  # also covers "silent film:"
        return "Film"
    return None


def resolve_series(series_raw: str | None, title: str, first_cell: str = "") -> str:
    """Final series label for one record.

    Args:
        series_raw: Section tag in effect for the row (None if no section seen).
        title: Performance title.
        first_cell: Text of the row's first column (holds CS codes in some exports).

    Returns:
        A series label, ``"Other"`` for generic sections, or UNASSIGNED_SERIES.

    """
    if series_raw and series_raw not in (GENERIC_SERIES, UNASSIGNED_SERIES):
        return series_raw

    guessed = series_from_title(title, first_cell)
    if guessed:
        return guessed
    if series_raw == GENERIC_SERIES:
        return GENERIC_SERIES

    logger.debug("No series for %r; marking %s", title, UNASSIGNED_SERIES)
    return UNASSIGNED_SERIES
