"""Staging (Silver) layer: SalesRecord -> PerformanceSnapshot.

This module owns every calendar rule in the pipeline and the construction of
the canonical snapshot:

- Performance dates from spreadsheet serials, datetimes, ISO and US strings,
  and free text ("Nov. 1-3", "Sept 30") resolved against the fiscal year
- Fiscal years (July 1 - June 30, labelled by the ending year: FY25 starts
  2024-07-01), fiscal weeks and ISO weeks
- Deterministic performance codes for spreadsheet rows
- The ticket-total invariant: total = single + subscription whenever both
  channel counts are known

Examples:
    >>> from datetime import date
    >>> fiscal_year_for(date(2024, 11, 1))
    'FY25'
    >>> fiscal_week(date(2024, 11, 1))
    18
    >>> performance_code("25 Test Concert", date(2024, 11, 1))
    'TEST-CONCERT-2024-11-01'

"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

from boxoffice_core.etl.cleaning_utils import is_missing, strip_invisibles
from boxoffice_core.etl.staging.series import resolve_series
from boxoffice_core.exceptions import ConfigError, DateUnresolvable, RecordMalformed
from boxoffice_core.types import (
    DroppedRecord,
    PerformanceSnapshot,
    SalesRecord,
    SourceFormat,
    snapshot_id_for,
)

logger = logging.getLogger(__name__)

STAGE = "normalize"

FISCAL_YEAR_START_MONTH = 7
EXCEL_EPOCH = date(1899, 12, 30)
MAX_EXCEL_SERIAL = 2958465  # 9999-12-31
CODE_TITLE_MAX = 50

MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}  # fmt: skip

FY_LABEL_RE = re.compile(r"^FY\s?(\d{2})$", re.IGNORECASE)
_MONTH_DAY_RE = re.compile(r"([A-Za-z]+)\.?\s+(\d{1,2})")
_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_US_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2}|\d{4})\b")
_SERIAL_RE = re.compile(r"^\d{5}(?:\.\d+)?$")
_VENDOR_CODE_DATE_RE = re.compile(r"^(\d{2})(\d{2})(\d{2})[A-Z]{1,2}$")
_SEASON_PREFIX_RE = re.compile(r"^(?:23|24|25|26)\s+")


# ---------------------------------------------------------------------------
# Fiscal calendar
# ---------------------------------------------------------------------------


def fiscal_year_for(d: date) -> str:
    """FY label for a date; the fiscal year ends June 30."""
    end_year = d.year + 1 if d.month >= FISCAL_YEAR_START_MONTH else d.year
    return f"FY{end_year % 100:02d}"


def fiscal_year_start(fiscal_year: str) -> date:
    """July 1 that opens ``fiscal_year``.

    Raises:
        ConfigError: If the label is not of the form FYxx.

    Examples:
        >>> fiscal_year_start("FY25")
        datetime.date(2024, 7, 1)

    """
    m = FY_LABEL_RE.match(fiscal_year.strip())
    if not m:
        raise ConfigError(f"Invalid fiscal year label: {fiscal_year!r} (expected e.g. FY25)")
    return date(2000 + int(m.group(1)) - 1, FISCAL_YEAR_START_MONTH, 1)


def normalize_fiscal_year(label: str) -> str:
    """Canonical form of an FY label ("fy 25" -> "FY25")."""
    return fiscal_year_for(fiscal_year_start(label))


def fiscal_week(d: date) -> int:
    """1-based week of the fiscal year: floor(days since July 1 / 7) + 1."""
    start_year = d.year if d.month >= FISCAL_YEAR_START_MONTH else d.year - 1
    start = date(start_year, FISCAL_YEAR_START_MONTH, 1)
    return (d - start).days // 7 + 1


def iso_week(d: date) -> int:
    """ISO-8601 week number (weeks belong to the year of their Thursday)."""
    return d.isocalendar()[1]


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def _from_serial(value: float) -> date:
    if not 1 <= value <= MAX_EXCEL_SERIAL:
        raise DateUnresolvable(f"Spreadsheet serial out of range: {value!r}")
    return EXCEL_EPOCH + timedelta(days=int(value))


def _from_month_day(text: str, fiscal_year: str | None) -> date | None:
    for m in _MONTH_DAY_RE.finditer(text):
        month = MONTHS.get(m.group(1).lower())
        if month is None:
            continue
        if fiscal_year is None:
            raise DateUnresolvable(f"No fiscal year to place {text!r}")
        start_year = fiscal_year_start(fiscal_year).year
        year = start_year if month >= FISCAL_YEAR_START_MONTH else start_year + 1
        try:
            return date(year, month, int(m.group(2)))
        except ValueError as e:
            raise DateUnresolvable(f"Impossible date {text!r}: {e}") from e
    return None


def parse_performance_date(raw: Any, fiscal_year: str | None = None) -> date:
    """Resolve a performance date cell/token to a calendar date.

    Args:
        raw: Cell value or token text.
        fiscal_year: FY label used to place month/day text without a year.

    Returns:
        The performance date (first day for ranges such as "Nov. 1-3").

    Raises:
        DateUnresolvable: If the value cannot be turned into a date.

    Examples:
        >>> parse_performance_date("Nov. 1-3", "FY25")
        datetime.date(2024, 11, 1)
        >>> parse_performance_date(45597)
        datetime.date(2024, 11, 1)
        >>> parse_performance_date("10/10/2025 7:30 PM")
        datetime.date(2025, 10, 10)

    """
    if is_missing(raw):
        raise DateUnresolvable("Empty date")
    if isinstance(raw, (datetime, pd.Timestamp)):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return _from_serial(float(raw))
    if hasattr(raw, "item"):  # numpy scalar
        return parse_performance_date(raw.item(), fiscal_year)

    text = strip_invisibles(raw) or ""
    if not text:
        raise DateUnresolvable("Empty date")

    try:
        m = _ISO_RE.match(text)
        if m:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        m = _US_RE.match(text)
        if m:
            year = int(m.group(3))
            year = 2000 + year if year < 100 else year
            return date(year, int(m.group(1)), int(m.group(2)))
    except ValueError as e:
        raise DateUnresolvable(f"Impossible date {text!r}: {e}") from e

    if _SERIAL_RE.match(text):
        return _from_serial(float(text))

    found = _from_month_day(text, fiscal_year)
    if found is not None:
        return found
    raise DateUnresolvable(f"Unrecognized date {text!r}")


def date_from_vendor_code(code: str) -> date | None:
    """Vendor codes start with YYMMDD of the performance (251010E -> 2025-10-10)."""
    m = _VENDOR_CODE_DATE_RE.match(code)
    if not m:
        return None
    try:
        return date(2000 + int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


def sanitize_title(title: str) -> str:
    """Uppercase, hyphenated, punctuation-free form of a title.

    Examples:
        >>> sanitize_title("24 Beethoven & Brahms - SP")
        'BEETHOVEN-BRAHMS'

    """
    s = _SEASON_PREFIX_RE.sub("", title.strip())
    s = re.sub(r"[^\w\s-]", "", s)
    s = re.sub(r"\s+", "-", s)
    s = re.sub(r"-+", "-", s)
    s = s.upper()
    s = re.sub(r"-SP$", "", s)
    return s[:CODE_TITLE_MAX]


def performance_code(title: str, performance_date: date) -> str:
    """Deterministic code for a spreadsheet performance."""
    return f"{sanitize_title(title)}-{performance_date.isoformat()}"


# ---------------------------------------------------------------------------
# Record -> snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NormalizationContext:
    """Per-document facts needed to normalize its records.

    Attributes:
        snapshot_date: Report date the document describes.
        fiscal_year: FY label used to place yearless dates (spreadsheets).
        document: Document name.

    """

    snapshot_date: date
    fiscal_year: str | None = None
    document: str = ""


def _count(value: float | None, what: str) -> int | None:
    if value is None:
        return None
    if value != value:  # NaN
        raise RecordMalformed(f"{what} is NaN")
    return int(round(value))


def _money(value: float | None) -> float | None:
    return None if value is None else round(float(value), 2)


def normalize_record(record: SalesRecord, context: NormalizationContext) -> PerformanceSnapshot:
    """Build the canonical snapshot for one record.

    Raises:
        DateUnresolvable: If the performance date cannot be parsed.
        RecordMalformed: If a numeric field is not usable.

    """
    try:
        perf_date = parse_performance_date(record.date_raw, context.fiscal_year)
    except DateUnresolvable:
        fallback = date_from_vendor_code(record.vendor_code) if record.vendor_code else None
        if fallback is None:
            raise
        perf_date = fallback

    if record.source_format is SourceFormat.PDF_SALES_SUMMARY and record.vendor_code:
        code = record.vendor_code
    else:
        code = performance_code(record.title, perf_date)

    single_t = _count(record.single_tickets, "single_tickets")
    sub_t = _count(record.subscription_tickets, "subscription_tickets")
    total_t = _count(record.total_tickets, "total_tickets")
    if single_t is not None and sub_t is not None:
        derived = single_t + sub_t
        if total_t is not None and total_t != derived:
            logger.debug(
                "%s: reported total %d != single %d + subscription %d; using %d",
                code,
                total_t,
                single_t,
                sub_t,
                derived,
            )
        total_t = derived

    single_r = _money(record.single_revenue)
    sub_r = _money(record.subscription_revenue)
    total_r = _money(record.total_revenue)
    if total_r is None and single_r is not None and sub_r is not None:
        total_r = round(single_r + sub_r, 2)

    source = record.source_format.value
    snap = context.snapshot_date
    return PerformanceSnapshot(
        snapshot_id=snapshot_id_for(code, snap, source),
        performance_code=code,
        title=record.title,
        series=resolve_series(record.series_raw, record.title, record.first_cell),
        snapshot_date=snap,
        performance_date=perf_date,
        fiscal_year=fiscal_year_for(perf_date),
        fiscal_week=fiscal_week(perf_date),
        iso_week=iso_week(perf_date),
        snapshot_fiscal_week=fiscal_week(snap),
        snapshot_iso_week=iso_week(snap),
        single_tickets=single_t,
        single_revenue=single_r,
        subscription_tickets=sub_t,
        subscription_revenue=sub_r,
        total_tickets=total_t,
        total_revenue=total_r,
        source=source,
        source_document=record.source_document or context.document,
    )


def normalize_records(
    records: Iterable[SalesRecord], context: NormalizationContext
) -> tuple[list[PerformanceSnapshot], list[DroppedRecord]]:
    """Normalize a document's records, dropping (and logging) the bad ones."""
    snapshots: list[PerformanceSnapshot] = []
    dropped: list[DroppedRecord] = []
    for record in records:
        try:
            snapshots.append(normalize_record(record, context))
        except (DateUnresolvable, RecordMalformed) as e:
            reason = f"{record.title!r}: {type(e).__name__}: {e}"
            logger.info("Dropped %s: %s", record.location, reason)
            dropped.append(DroppedRecord(record.source_document, record.row_index, reason, STAGE))
    return snapshots, dropped
