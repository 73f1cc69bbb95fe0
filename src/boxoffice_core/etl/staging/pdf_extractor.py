"""Staging (Silver) layer: performance rows from vendor PDF sales summaries.

The "Performance Sales Summary" PDF has no usable column geometry once it is
flattened to text, so records are found by token shape. Every performance
starts with the vendor's performance code (six digits plus one or two
letters, e.g. ``251010E``) followed by a fixed run of values:

    code, date/time, budget %, fixed count, fixed revenue,
    non-fixed count, non-fixed revenue, single count, single revenue,
    subtotal, [reserved count, [reserved revenue]], total, available, capacity %

The optional reserved block is recognized by token class (count vs money),
not by position. Codes preceded by a "Total" token belong to summary lines
and are ignored. Spans holding a whole line are split into values first.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from datetime import date

from boxoffice_core.etl.cleaning_utils import (
    is_count_token,
    is_money_token,
    is_percent_token,
    parse_percent,
    to_float,
    to_int,
)
from boxoffice_core.exceptions import LayoutUnresolved, RecordMalformed
from boxoffice_core.types import (
    DroppedRecord,
    ExtractionResult,
    RawToken,
    SalesRecord,
    SourceFormat,
)

logger = logging.getLogger(__name__)

STAGE = "extract"

PERFORMANCE_CODE_RE = re.compile(r"^\d{6}[A-Z]{1,2}$")
RUN_BY_RE = re.compile(r"Run by .* on (\d{1,2})/(\d{1,2})/(\d{4})")
_TIME_RE = re.compile(r"^\d{1,2}:\d{2}(?::\d{2})?(?:\s*[AP]M)?$", re.IGNORECASE)
_MERIDIEM = {"AM", "PM"}
_DATE_RE = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}$")
# Code followed by the rest of its line in the same span
_LEADING_CODE_RE = re.compile(r"^(\d{6}[A-Z]{1,2})(?=\s|\d{1,2}/)\s*(.+)$")


def extract_report_date(tokens: Sequence[RawToken]) -> date | None:
    """Date from the "Run by <user> on M/D/YYYY ..." footer, if present."""
    for tok in tokens:
        m = RUN_BY_RE.search(tok.text)
        if m:
            month, day, year = (int(g) for g in m.groups())
            try:
                return date(year, month, day)
            except ValueError:
                logger.warning("Ignoring impossible run date in footer: %r", tok.text)
                return None
    return None


def is_performance_code(tokens: Sequence[RawToken], i: int) -> bool:
    """True if token ``i`` starts a performance line (not a Total line)."""
    if not PERFORMANCE_CODE_RE.match(tokens[i].text):
        return False
    return i == 0 or "total" not in tokens[i - 1].text.lower()


def _is_value_text(text: str) -> bool:
    return bool(
        _DATE_RE.match(text)
        or _TIME_RE.match(text)
        or text.upper() in _MERIDIEM
        or is_count_token(text)
        or is_money_token(text)
        or is_percent_token(text)
    )


def split_line_tokens(tokens: Sequence[RawToken]) -> list[RawToken]:
    """One token per value, even where a PDF draws a row as one text run.

    Some summaries put a whole performance line in a single span
    ("251010E 10/10/2025 7:30 PM 85.0% 120 ..."), sometimes with the date
    glued to the code ("251010E10/10/2025 ..."). Such spans, and spans made
    only of values ("4,800.00 30 1,050.00"), are split on whitespace. Other
    spans (titles, footers, "$ 1.00") are kept as they are.

    Examples:
        >>> [t.text for t in split_line_tokens([RawToken("251010E10/10/2025 7:30 PM")])]
        ['251010E', '10/10/2025', '7:30', 'PM']

    """
    out: list[RawToken] = []
    for tok in tokens:
        m = _LEADING_CODE_RE.match(tok.text)
        if m:
            pieces = [m.group(1), *m.group(2).split()]
        else:
            pieces = tok.text.split()
            if len(pieces) < 2 or not all(_is_value_text(p) for p in pieces):
                out.append(tok)
                continue
        out.extend(RawToken(text=p, page=tok.page) for p in pieces)
    return out


class _Cursor:
    """Sequential reader over the tokens following a performance code."""

    def __init__(self, tokens: Sequence[RawToken], start: int) -> None:
        self.tokens = tokens
        self.idx = start

    def peek(self, ahead: int = 0) -> str | None:
        j = self.idx + ahead
        return self.tokens[j].text if j < len(self.tokens) else None

    def take(self, what: str) -> str:
        text = self.peek()
        if text is None:
            raise RecordMalformed(f"token run ends before {what}")
        self.idx += 1
        return text

    def take_count(self, what: str) -> int:
        text = self.take(what)
        if not is_count_token(text):
            raise RecordMalformed(f"{what}: expected a count, got {text!r}")
        return to_int(text)  # type: ignore[return-value]

    def take_money(self, what: str) -> float:
        text = self.take(what)
        if not is_money_token(text):
            raise RecordMalformed(f"{what}: expected an amount, got {text!r}")
        return to_float(text)  # type: ignore[return-value]

    def take_percent(self, what: str) -> float:
        text = self.take(what)
        if not is_percent_token(text):
            raise RecordMalformed(f"{what}: expected a percentage, got {text!r}")
        return parse_percent(text)  # type: ignore[return-value]


def _is_count(text: str | None) -> bool:
    return text is not None and is_count_token(text) and not is_money_token(text)


def _is_money(text: str | None) -> bool:
    return text is not None and is_money_token(text)


def parse_performance_line(
    tokens: Sequence[RawToken], i: int, document: str
) -> tuple[SalesRecord, int]:
    """Parse the token run that starts at performance code ``i``.

    Returns:
        (record, index of the first token after the run).

    Raises:
        RecordMalformed: If a required value is missing or has the wrong shape.

    """
    code = tokens[i].text
    cur = _Cursor(tokens, i + 1)

    when = cur.take("date/time")
    nxt = cur.peek()
    if nxt is not None and (_TIME_RE.match(nxt) or nxt.upper() in _MERIDIEM):
        when = f"{when} {cur.take('time')}"
        if (cur.peek() or "").upper() in _MERIDIEM:
            when = f"{when} {cur.take('meridiem')}"

    budget_pct = cur.take_percent("budget %")
    fixed_count = cur.take_count("fixed count")
    fixed_rev = cur.take_money("fixed revenue")
    non_fixed_count = cur.take_count("non-fixed count")
    non_fixed_rev = cur.take_money("non-fixed revenue")
    single_count = cur.take_count("single count")
    single_rev = cur.take_money("single revenue")
    subtotal = cur.take_money("subtotal")

    reserved_count = 0
    reserved_rev = 0.0
    if _is_count(cur.peek()):
        reserved_count = cur.take_count("reserved count")
        # Two amounts in a row means reserved revenue then total
        if _is_money(cur.peek()) and _is_money(cur.peek(1)):
            reserved_rev = cur.take_money("reserved revenue")

    total = cur.take_money("total") if _is_money(cur.peek()) else subtotal
    available = cur.take_count("available seats") if _is_count(cur.peek()) else None
    capacity = (
        cur.take_percent("capacity %") if cur.peek() and is_percent_token(cur.peek()) else None
    )

    detail: dict[str, float] = {
        "budget_percent": budget_pct,
        "fixed_tickets": fixed_count,
        "fixed_revenue": fixed_rev,
        "non_fixed_tickets": non_fixed_count,
        "non_fixed_revenue": non_fixed_rev,
        "reserved_tickets": reserved_count,
        "reserved_revenue": reserved_rev,
        "subtotal_revenue": subtotal,
    }
    if available is not None:
        detail["available_seats"] = available
    if capacity is not None:
        detail["capacity_percent"] = capacity

    record = SalesRecord(
        title=code,
        series_raw=None,
        date_raw=when,
        single_tickets=single_count,
        single_revenue=single_rev,
        subscription_tickets=fixed_count + non_fixed_count,
        subscription_revenue=round(fixed_rev + non_fixed_rev, 2),
        total_revenue=total,
        source_format=SourceFormat.PDF_SALES_SUMMARY,
        source_document=document,
        row_index=i,
        vendor_code=code,
        channel_detail=detail,
    )
    return record, cur.idx


def extract_pdf_records(tokens: Sequence[RawToken], document: str) -> ExtractionResult:
    """Extract SalesRecords and the run date from a tokenized PDF summary.

    Args:
        tokens: Output of ``tokenize_pdf``.
        document: Document name, carried onto every record for provenance.

    Returns:
        ExtractionResult; ``report_date`` is set when the footer is present.

    Raises:
        LayoutUnresolved: If no performance line is found at all, so a
            summary the grammar cannot read never passes as an empty report.

    """
    result = ExtractionResult(report_date=extract_report_date(tokens))
    tokens = split_line_tokens(tokens)

    i = 0
    while i < len(tokens):
        if not is_performance_code(tokens, i):
            i += 1
            continue
        try:
            record, nxt = parse_performance_line(tokens, i, document)
        except RecordMalformed as e:
            reason = f"{tokens[i].text}: {e}"
            logger.info("Dropped %s token %d: %s", document, i, reason)
            result.dropped.append(DroppedRecord(document, i, reason, STAGE))
            i += 1
            continue
        result.records.append(record)
        i = nxt

    if not result.records and not result.dropped:
        raise LayoutUnresolved(f"{document}: no performance lines found")

    logger.debug(
        "%s: %d performances, run date %s, %d dropped",
        document,
        len(result.records),
        result.report_date,
        len(result.dropped),
    )
    return result
