"""Shared utilities for the sales report import pipeline.

This module provides reusable functions for document discovery and for reading
dates and fiscal-year hints out of file paths. It includes:

- Document discovery: walking a file or directory for report documents
- Filename dates: snapshot dates encoded in report file names and paths
- Small helpers: batching, durations, slugs

Examples:
    >>> from pathlib import Path
    >>> snapshot_date_from_path(Path("FY25/2024.11.04 Weekly Sales Report.xlsx"))
    datetime.date(2024, 11, 4)
    >>> fiscal_year_hint_from_path(Path("FY25/2024.11.04 Weekly Sales Report.xlsx"))
    'FY25'

"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable, Iterator, Sequence
from datetime import date, datetime
from pathlib import Path
from typing import TypeVar

T = TypeVar("T")

# Regex patterns for reading dates and fiscal years from file paths and names

# ISO date anywhere in the name: ..._2024-11-04.pdf
ISO_DATE_RE = re.compile(r"(?P<y>\d{4})-(?P<m>\d{2})-(?P<d>\d{2})")

# Dotted prefix used by the weekly spreadsheet exports: 2024.11.04 ...xlsx
DOTTED_PREFIX_RE = re.compile(r"^(?P<y>\d{4})\.(?P<m>\d{2})\.(?P<d>\d{2})")

# Bucket-style month folders: .../2024/11/report.pdf
YEAR_MONTH_PATH_RE = re.compile(r"(?:^|/)(?P<y>\d{4})/(?P<m>\d{2})/")

# Fiscal year token in a directory or file name: FY25, fy 24
FY_TOKEN_RE = re.compile(r"(?<![A-Za-z])FY\s?(?P<yy>\d{2})(?!\d)", re.IGNORECASE)

# Documents known to be bad exports; skipped with a log line.
# 2024.10.28 is a transitional FY25 export with a broken layout.
SKIP_DOCUMENT_PREFIXES: tuple[str, ...] = ("2024.10.28",)


def parse_date(s: str) -> date:
    """Parse a date string in YYYY-MM-DD format.

    Args:
        s: Date string in ISO format (YYYY-MM-DD).

    Returns:
        Parsed date object.

    Raises:
        ValueError: If the date string is not in YYYY-MM-DD format.

    Examples:
        >>> parse_date("2023-01-15")
        datetime.date(2023, 1, 15)

    """
    return datetime.strptime(s, "%Y-%m-%d").date()


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as a human-readable string.

    Examples:
        >>> format_duration(90.5)
        '1m 30.5s'
        >>> format_duration(45.2)
        '45.2s'

    """
    mins, secs = divmod(seconds, 60.0)
    if mins >= 1:
        return f"{int(mins)}m {secs:04.1f}s"
    else:
        return f"{secs:.1f}s"


def iter_batches(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive slices of at most ``size`` items.

    Examples:
        >>> list(iter_batches([1, 2, 3, 4, 5], 2))
        [[1, 2], [3, 4], [5]]

    """
    if size < 1:
        raise ValueError("batch size must be >= 1")
    for i in range(0, len(items), size):
        yield list(items[i : i + size])


def _safe_date(y: str, m: str, d: str) -> date | None:
    try:
        return date(int(y), int(m), int(d))
    except ValueError:
        return None


def snapshot_date_from_path(path: Path) -> date | None:
    """Extract the snapshot (report) date encoded in a document path.

    Tries, in order:
    1. An ISO date anywhere in the file name (``YYYY-MM-DD``)
    2. A dotted prefix on the file name (``YYYY.MM.DD``)
    3. A ``YYYY/MM/`` folder pair in the path (day 1 of that month)

    Args:
        path: Document path.

    Returns:
        The date, or None if the path carries no usable date.

    Examples:
        >>> snapshot_date_from_path(Path("summary_2024-11-04.pdf"))
        datetime.date(2024, 11, 4)
        >>> snapshot_date_from_path(Path("bucket/2024/11/summary.pdf"))
        datetime.date(2024, 11, 1)

    """
    name = path.name
    m = ISO_DATE_RE.search(name)
    if m:
        found = _safe_date(m["y"], m["m"], m["d"])
        if found:
            return found

    m = DOTTED_PREFIX_RE.match(name)
    if m:
        found = _safe_date(m["y"], m["m"], m["d"])
        if found:
            return found

    m = YEAR_MONTH_PATH_RE.search(path.as_posix())
    if m:
        return _safe_date(m["y"], m["m"], "1")

    return None


def fiscal_year_hint_from_path(path: Path) -> str | None:
    """Return an ``FYxx`` label found in the file name or any parent folder.

    The file name wins over folder names; the nearest folder wins over
    farther ones.
    """
    for part in [path.name, *(p.name for p in path.parents)]:
        m = FY_TOKEN_RE.search(part)
        if m:
            return f"FY{m['yy']}"
    return None


def is_skipped_document(path: Path, prefixes: Iterable[str] = SKIP_DOCUMENT_PREFIXES) -> bool:
    """True if the file name starts with a known-bad export prefix."""
    return any(path.name.startswith(p) for p in prefixes)


def iter_documents(root: Path, suffixes: Iterable[str]) -> list[Path]:
    """List documents under ``root`` (a file or a directory, recursive).

    Hidden files and spreadsheet lock files (``~$...``) are ignored. The
    result is sorted by path so that runs are reproducible.

    Raises:
        FileNotFoundError: If ``root`` does not exist.

    """
    wanted = {s.lower() for s in suffixes}
    if not root.exists():
        raise FileNotFoundError(root)
    if root.is_file():
        return [root] if root.suffix.lower() in wanted else []

    found = [
        p
        for p in root.rglob("*")
        if p.is_file()
        and p.suffix.lower() in wanted
        and not p.name.startswith((".", "~$"))
    ]
    return sorted(found)


def slugify(value: str) -> str:
    """Convert a string to a URL-friendly slug.

    Examples:
        >>> slugify("Weekly Sales FY25")
        'weekly-sales-fy25'

    """
    value = unicodedata.normalize("NFKD", value)
    value = "".join(ch for ch in value if not unicodedata.combining(ch))
    value = re.sub(r"[^\w\s-]", "", value, flags=re.U)
    value = re.sub(r"[-\s]+", "-", value, flags=re.U).strip("-_").lower()
    return value or "unknown"
