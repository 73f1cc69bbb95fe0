"""Shared utilities for cleaning report cells and text runs.

This module provides the small, dependency-free parsing helpers used by the
tokenizer, layout detector and extractors.

Key utilities:
- Text normalization: strip invisible characters, remove accents, label keys
- Number parsing: robust handling of currency strings and spreadsheet errors
- Token classification: money amount vs integer count vs percentage

Examples:
    >>> from boxoffice_core.etl.cleaning_utils import to_float, is_money_token
    >>> to_float("$1,234.56")
    1234.56
    >>> to_float("#N/A") is None
    True
    >>> is_money_token("12,480.00")
    True
"""

from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

import numpy as np
import pandas as pd

# Unicode characters that should be stripped from text
NBSP = " "  # Non-breaking space
NNBSP = " "  # Narrow non-breaking space
ZW = "".join(chr(c) for c in (0x200B, 0x200C, 0x200D, 0xFEFF))  # Zero-width characters

# Spreadsheet error values and placeholders that mean "no number here"
NULL_MARKERS = {"", "-", "--", "#N/A", "#REF!", "#VALUE!", "#DIV/0!", "N/A", "NA"}

# Regex to strip currency symbols while preserving number separators
_CURRENCY_RE = re.compile(r"[^\d,.\-\(\)\s]")
_TEMPORAL_TEXT_RE = re.compile(r"\d:\d{2}|\d/\d")
_TEMPORAL_TYPES = (date, time, timedelta, np.datetime64, np.timedelta64)

MONEY_RE = re.compile(r"^-?\$?\d{1,3}(?:,\d{3})*\.\d{2}$|^-?\$?\d+\.\d{2}$")
COUNT_RE = re.compile(r"^\d{1,3}(?:,\d{3})+$|^\d+$")
PERCENT_RE = re.compile(r"^-?\d+(?:\.\d+)?%$")


def strip_invisibles(x: Any) -> Optional[str]:
    """Remove invisible and problematic whitespace characters from text.

    Args:
        x: Value to clean (string, number, or None).

    Returns:
        Cleaned string or None if input is None/NaN.

    Examples:
        >>> strip_invisibles("  Hello World  ")
        'Hello World'
    """
    if x is None or (isinstance(x, float) and pd.isna(x)):
        return None
    s = str(x)
    s = s.replace("\r", "").replace("\t", " ").replace(NBSP, " ").replace(NNBSP, " ")
    s = re.sub(r"[%s]" % re.escape(ZW), "", s)  # zero-width
    s = re.sub(r"\s+", " ", s).strip()
    return s


def is_missing(x: Any) -> bool:
    """True for None, NaN/NaT and pandas NA."""
    if x is None:
        return True
    try:
        return bool(pd.isna(x))
    except (TypeError, ValueError):
        return False


def cell_text(x: Any) -> str:
    """Text form of a spreadsheet cell, "" for empty cells.

    Integral floats lose their ".0" so that labels and codes compare cleanly.

    Examples:
        >>> cell_text(300.0)
        '300'
        >>> cell_text(None)
        ''
    """
    if is_missing(x):
        return ""
    if isinstance(x, (datetime, pd.Timestamp)):
        return x.date().isoformat()
    if isinstance(x, date):
        return x.isoformat()
    if isinstance(x, (float, np.floating)) and float(x).is_integer():
        return str(int(x))
    return strip_invisibles(x) or ""


def to_float(x: Any) -> Optional[float]:
    """Robustly parse numbers in the formats found in report exports.

    Handles:
    - Native numbers, including numpy scalars
    - US format with currency: '$1,234.56'
    - Negative in parentheses: '(1,234.56)'
    - Spreadsheet errors and dashes ('#N/A', '#REF!', '-') -> None
    - Dates, times and durations -> None (never digits glued together)

    Args:
        x: Value to parse (string, number, or None).

    Returns:
        Parsed float value or None if parsing fails.

    Examples:
        >>> to_float("1,234.56")
        1234.56
        >>> to_float("(1,234.56)")
        -1234.56
        >>> to_float("-") is None
        True
    """
    if is_missing(x) or isinstance(x, (bool, *_TEMPORAL_TYPES)):
        return None
    if isinstance(x, (int, float, np.integer, np.floating)):
        v = float(x)
        return None if (math.isnan(v) or math.isinf(v)) else v
    s = strip_invisibles(x) or ""
    if s.upper() in NULL_MARKERS or _TEMPORAL_TEXT_RE.search(s):
        return None

    neg = False
    if s.startswith("(") and s.endswith(")"):
        neg, s = True, s[1:-1].strip()

    s = _CURRENCY_RE.sub("", s)
    s = re.sub(r"\s+", "", s)
    if not s or s in {"-", ".", ","}:
        return None

    def _finalize(num_str: str, negative: bool) -> Optional[float]:
        try:
            v = float(num_str)
            return -v if negative else v
        except ValueError:
            return None

    # Pattern: 1,234.56 or 1,234 (US grouping)
    if re.fullmatch(r"-?\d{1,3}(?:,\d{3})+(?:\.\d+)?", s):
        return _finalize(s.replace(",", ""), neg)

    if re.fullmatch(r"-?\d+(?:\.\d+)?", s):
        return _finalize(s, neg)

    # Fallback: a lone comma is a decimal separator
    if s.count(",") == 1 and "." not in s:
        return _finalize(s.replace(",", "."), neg)

    return None


def to_int(x: Any) -> Optional[int]:
    """Convert value to integer via float parsing and rounding.

    Examples:
        >>> to_int("1,234.6")
        1235
        >>> to_int("") is None
        True
    """
    f = to_float(x)
    if f is None:
        return None
    return int(round(f))


def parse_percent(x: Any) -> Optional[float]:
    """Parse '87.5%' -> 87.5."""
    s = strip_invisibles(x)
    if not s:
        return None
    return to_float(s.rstrip("%"))


def is_money_token(s: str) -> bool:
    """True for a currency amount with exactly two decimals ('1,250.00')."""
    return bool(MONEY_RE.match(s.strip()))


def is_count_token(s: str) -> bool:
    """True for an integer count, with or without thousands commas."""
    return bool(COUNT_RE.match(s.strip()))


def is_percent_token(s: str) -> bool:
    return bool(PERCENT_RE.match(s.strip()))


def remove_accents(s: str) -> str:
    """Remove accents and diacritics from string.

    Examples:
        >>> remove_accents("Café")
        'Cafe'
    """
    return "".join(c for c in unicodedata.normalize("NFD", s) if unicodedata.category(c) != "Mn")


def normalize_label(s: Any) -> str:
    """Normalize a header cell for label matching.

    Process:
    1. Strip invisible characters
    2. Remove accents
    3. Collapse whitespace
    4. Convert to uppercase

    Examples:
        >>> normalize_label(" # sold ")
        '# SOLD'
        >>> normalize_label("Date(s)")
        'DATE(S)'
    """
    base = strip_invisibles(s) or ""
    base = remove_accents(base)
    return re.sub(r"\s+", " ", base).strip().upper()
