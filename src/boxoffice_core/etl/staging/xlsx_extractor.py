"""Staging (Silver) layer: performance rows from weekly sales spreadsheets.

Walks the rows below the detected header, tracking which series section the
current row belongs to, and reads every field at the column offsets given by
the document's LayoutDescriptor.

Row handling:
- Undated section header rows ("POPS SERIES", "CLASSICAL") update the current series
- Blank, OPEN placeholder, RECORDING WEEK and TOTAL rows are skipped (logged)
- Dated rows are performances even when the title looks like a section label
- Undated rows with sales values are dropped as DateUnresolvable
- Rows with an unparseable number are dropped (never zero-filled)
- Rows with no ticket or revenue value at all are dropped
- A sheet without a date column is skipped as a whole, with one drop
"""

from __future__ import annotations

import logging

from boxoffice_core.etl.cleaning_utils import NULL_MARKERS, to_float
from boxoffice_core.etl.staging.series import (
    detect_section_series,
    is_section_header,
    is_skip_row,
)
from boxoffice_core.exceptions import RecordMalformed
from boxoffice_core.types import (
    DroppedRecord,
    ExtractionResult,
    FieldKind,
    LayoutDescriptor,
    SalesRecord,
    SourceFormat,
    TokenGrid,
)

logger = logging.getLogger(__name__)

STAGE = "extract"

_NUMERIC_FIELDS = {
    FieldKind.SINGLE_TICKETS: "single_tickets",
    FieldKind.SINGLE_REVENUE: "single_revenue",
    FieldKind.SUBSCRIPTION_TICKETS: "subscription_tickets",
    FieldKind.SUBSCRIPTION_REVENUE: "subscription_revenue",
    FieldKind.TOTAL_TICKETS: "total_tickets",
    FieldKind.TOTAL_REVENUE: "total_revenue",
}


def _read_number(grid: TokenGrid, row: int, col: int | None) -> float | None:
    """Numeric cell value; None for empty/placeholder cells.

    Raises:
        RecordMalformed: If the cell holds text that is not a number.

    """
    if col is None:
        return None
    tok = grid.cell(row, col)
    value = to_float(tok.value if tok.value is not None else tok.text)
    if value is None and tok.text and tok.text.upper() not in NULL_MARKERS:
        raise RecordMalformed(f"column {col}: not a number: {tok.text!r}")
    return value


def _has_sales_cells(grid: TokenGrid, row: int, layout: LayoutDescriptor) -> bool:
    """True if any ticket or revenue cell of the row is filled in."""
    return any(
        grid.cell(row, col).text
        for col in (layout.offset(kind) for kind in _NUMERIC_FIELDS)
        if col is not None
    )


def extract_sheet_records(
    grid: TokenGrid, layout: LayoutDescriptor, document: str
) -> ExtractionResult:
    """Extract SalesRecords from one spreadsheet.

    Every excluded row is either logged at INFO (section, placeholder and
    total rows) or returned as a DroppedRecord (rows carrying sales values
    that cannot be used).

    Args:
        grid: Tokenized sheet.
        layout: Descriptor produced by ``detect_layout`` for this sheet.
        document: Document name, carried onto every record for provenance.

    Returns:
        ExtractionResult with records in row order and the dropped rows. A
        sheet without a date column yields no records and one drop.

    """
    result = ExtractionResult()

    def drop(row: int, reason: str) -> None:
        logger.info("Dropped %s row %d: %s", document, row, reason)
        result.dropped.append(DroppedRecord(document, row, reason, STAGE))

    date_col = layout.offset(FieldKind.DATE)
    if date_col is None:
        logger.warning(
            "%s sheet %r: no date column; skipping the sheet", document, grid.sheet_name
        )
        drop(
            layout.header_row_index,
            f"LayoutUnresolved: sheet {grid.sheet_name!r} has no date column",
        )
        return result
    title_col = layout.offset(FieldKind.TITLE)
    budget_col = layout.offset(FieldKind.BUDGET)

    current_series: str | None = None

    for r in range(layout.data_start_row, grid.n_rows):
        if grid.is_blank_row(r):
            continue

        col0 = grid.cell(r, 0).text
        title = grid.cell(r, title_col).text if title_col is not None else ""
        date_tok = grid.cell(r, date_col)
        label = col0 or title

        # A dated row is a performance, whatever its title looks like
        if not date_tok.text:
            section = detect_section_series(label, layout.section_markers)
            if section and is_section_header(label):
                logger.info("%s row %d: section %r -> %s", document, r, label, section)
                current_series = section
                continue
            if is_section_header(col0) or is_section_header(title):
                logger.info("Skipping %s row %d (%r): section row", document, r, label)
                continue

        if is_skip_row(col0) and is_skip_row(title):
            logger.info("Skipping %s row %d (%r): placeholder or total row", document, r, label)
            continue

        if not title:
            title = col0
            if not title:
                continue

        if not date_tok.text:
            if _has_sales_cells(grid, r, layout):
                drop(r, f"{title!r}: DateUnresolvable: no performance date")
            else:
                logger.info("Skipping %s row %d (%r): no date and no sales", document, r, title)
            continue

        try:
            values = {
                attr: _read_number(grid, r, layout.offset(kind))
                for kind, attr in _NUMERIC_FIELDS.items()
            }
            budget = _read_number(grid, r, budget_col)
        except RecordMalformed as e:
            drop(r, f"{title!r}: {e}")
            continue

        record = SalesRecord(
            title=title,
            series_raw=current_series,
            date_raw=date_tok.value if date_tok.value is not None else date_tok.text,
            source_format=SourceFormat.XLSX_WEEKLY,
            source_document=document,
            row_index=r,
            first_cell=col0,
            budget=budget,
            **values,
        )
        if not record.has_sales_data():
            drop(r, f"{title!r}: no ticket or revenue values")
            continue
        result.records.append(record)

    logger.debug(
        "%s: %d records, %d dropped", document, len(result.records), len(result.dropped)
    )
    return result
