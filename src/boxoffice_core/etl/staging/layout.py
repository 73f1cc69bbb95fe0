"""Layout detection for weekly sales spreadsheets.

Weekly exports changed shape across fiscal years: header rows moved, column
blocks were added and removed, and older files used different labels. This
module looks at the top of a TokenGrid once and produces a LayoutDescriptor
that the extractor then follows for every data row.

Detection steps:
1. Header row: first of rows 0-5 holding a date label (DATE, DATE(S), DATES);
   failing that, the first holding a BUDGET label.
2. Measure columns: repeated ACTUAL (revenue) and # SOLD (tickets) labels,
   plus the older ACTUAL REVENUE / ACTUAL TICKETS / SINGLE TICKETS /
   SUB TICKETS vocabulary.
3. Channel attribution: from channel labels two rows above the header
   (SINGLE / SUBSCRIPTION / TOTAL) when present, else by position.

Fields that cannot be attributed are marked UNAVAILABLE and listed in the
descriptor's ``issues``; the layout is degraded, not rejected.
"""

from __future__ import annotations

import logging
import re

from boxoffice_core.etl.cleaning_utils import normalize_label
from boxoffice_core.etl.staging.series import SECTION_PATTERNS
from boxoffice_core.exceptions import LayoutUnresolved
from boxoffice_core.types import (
    REQUIRED_FIELDS,
    UNAVAILABLE,
    FieldKind,
    LayoutDescriptor,
    TokenGrid,
)

logger = logging.getLogger(__name__)

HEADER_SCAN_ROWS = 6
DEFAULT_TITLE_COL = 1

DATE_LABELS = {"DATE", "DATE(S)", "DATES"}
BUDGET_LABELS = {"BUDGET"}
TITLE_LABELS = {"TITLE", "CONCERT", "PERFORMANCE", "PROGRAM"}

CHANNELS = ("single", "subscription", "total")

_TICKET_WORD_RE = re.compile(r"\bTICKETS?\b")
_REVENUE_WORD_RE = re.compile(r"\bREV(?:ENUE)?\b")

_FIELD_FOR = {
    ("revenue", "single"): FieldKind.SINGLE_REVENUE,
    ("tickets", "single"): FieldKind.SINGLE_TICKETS,
    ("revenue", "subscription"): FieldKind.SUBSCRIPTION_REVENUE,
    ("tickets", "subscription"): FieldKind.SUBSCRIPTION_TICKETS,
    ("revenue", "total"): FieldKind.TOTAL_REVENUE,
    ("tickets", "total"): FieldKind.TOTAL_TICKETS,
}


def channel_of(label: str) -> str | None:
    """Channel named by a header label, or None.

    Examples:
        >>> channel_of("SUBS")
        'subscription'
        >>> channel_of("SINGLE TICKETS")
        'single'
        >>> channel_of("BUDGET") is None
        True

    """
    if label.startswith("SINGLE"):
        return "single"
    if label.startswith("SUBSCRIPTION") or label in ("SUB", "SUBS") or label.startswith("SUB "):
        return "subscription"
    if label.startswith("TOTAL"):
        return "total"
    return None


def classify_measure(label: str) -> tuple[str, str | None] | None:
    """Classify a header label as a revenue or ticket column.

    Returns:
        (measure, explicit_channel) where measure is "revenue" or "tickets"
        and explicit_channel is set when the label names its own channel
        (older exports), else None.

    Examples:
        >>> classify_measure("# SOLD")
        ('tickets', None)
        >>> classify_measure("ACTUAL")
        ('revenue', None)
        >>> classify_measure("SUB TICKETS")
        ('tickets', 'subscription')

    """
    if not label:
        return None
    if label in ("# SOLD", "#SOLD", "SOLD"):
        return ("tickets", None)
    if label == "ACTUAL":
        return ("revenue", None)

    is_tickets = bool(_TICKET_WORD_RE.search(label))
    is_revenue = bool(_REVENUE_WORD_RE.search(label))
    if not (is_tickets or is_revenue):
        return None
    measure = "tickets" if is_tickets else "revenue"

    if label.startswith("ACTUAL"):
        return (measure, None)
    channel = channel_of(label)
    if channel is not None:
        return (measure, channel)
    return None


def find_header_row(grid: TokenGrid, scan_rows: int = HEADER_SCAN_ROWS) -> int:
    """Locate the header row among the first ``scan_rows`` rows.

    Raises:
        LayoutUnresolved: If no row holds a date or budget label.

    """
    limit = min(scan_rows, grid.n_rows)
    budget_row: int | None = None
    for r in range(limit):
        labels = {normalize_label(t) for t in grid.row_texts(r)}
        if labels & DATE_LABELS:
            return r
        if budget_row is None and labels & BUDGET_LABELS:
            budget_row = r
    if budget_row is not None:
        return budget_row
    raise LayoutUnresolved(f"No DATE/BUDGET header in the first {limit} rows")


def _channel_row(grid: TokenGrid, header_row: int) -> list[tuple[int, str]]:
    """(column, channel) labels from the row(s) above the header, left to right."""
    for r in (header_row - 2, header_row - 1):
        if r < 0:
            continue
        found = []
        for c, text in enumerate(grid.row_texts(r)):
            channel = channel_of(normalize_label(text))
            if channel:
                found.append((c, channel))
        if found:
            return found
    return []


def _channel_at(col: int, channel_labels: list[tuple[int, str]]) -> str | None:
    """Channel label at or left of ``col``."""
    current = None
    for c, channel in channel_labels:
        if c <= col:
            current = channel
        else:
            break
    return current


def _positional(cols: list[int]) -> dict[str, int]:
    if len(cols) >= 3:
        return dict(zip(CHANNELS, cols[:3]))
    if len(cols) == 2:
        return {"single": cols[0], "subscription": cols[1]}
    if len(cols) == 1:
        return {"total": cols[0]}
    return {}


def detect_layout(grid: TokenGrid) -> LayoutDescriptor:
    """Produce the LayoutDescriptor for one spreadsheet.

    Args:
        grid: Tokenized sheet.

    Returns:
        LayoutDescriptor with every required field mapped to a column or
        UNAVAILABLE.

    Raises:
        LayoutUnresolved: If the header row cannot be located.

    """
    header = find_header_row(grid)
    labels = [normalize_label(t) for t in grid.row_texts(header)]

    offsets: dict[FieldKind, object] = {}
    issues: list[str] = []

    date_col = next((c for c, lab in enumerate(labels) if lab in DATE_LABELS), None)
    offsets[FieldKind.DATE] = UNAVAILABLE if date_col is None else date_col
    if date_col is None:
        issues.append("date: no DATE label in header row")

    title_col = next((c for c, lab in enumerate(labels) if lab in TITLE_LABELS), None)
    offsets[FieldKind.TITLE] = DEFAULT_TITLE_COL if title_col is None else title_col

    budget_col = next((c for c, lab in enumerate(labels) if lab in BUDGET_LABELS), None)
    offsets[FieldKind.BUDGET] = UNAVAILABLE if budget_col is None else budget_col

    # Measure columns, split by whether the label names its own channel
    explicit: dict[tuple[str, str], int] = {}
    unlabeled: dict[str, list[int]] = {"revenue": [], "tickets": []}
    for c, lab in enumerate(labels):
        kind = classify_measure(lab)
        if kind is None:
            continue
        measure, channel = kind
        if channel is not None:
            explicit.setdefault((measure, channel), c)
        else:
            unlabeled[measure].append(c)

    channel_labels = _channel_row(grid, header)
    assigned: dict[tuple[str, str], int] = dict(explicit)
    for measure, cols in unlabeled.items():
        if channel_labels:
            for c in cols:
                channel = _channel_at(c, channel_labels)
                if channel is not None:
                    assigned.setdefault((measure, channel), c)
        else:
            for channel, c in _positional(cols).items():
                assigned.setdefault((measure, channel), c)

    for key, kind in _FIELD_FOR.items():
        if key in assigned:
            offsets[kind] = assigned[key]
        else:
            offsets[kind] = UNAVAILABLE
            issues.append(f"{kind.value}: no column attributed")

    for issue in issues:
        logger.warning("LayoutUnresolved (degraded) in sheet %r: %s", grid.sheet_name, issue)

    layout = LayoutDescriptor(
        header_row_index=header,
        column_offsets=offsets,  # type: ignore[arg-type]
        section_markers=SECTION_PATTERNS,
        issues=tuple(issues),
    )
    logger.debug(
        "Layout: header row %d, offsets %s",
        header,
        {k.value: layout.offset(k) for k in REQUIRED_FIELDS},
    )
    return layout
