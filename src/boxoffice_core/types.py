"""Shared types for the sales report import pipeline.

The pipeline moves through four shapes, each owned by one stage:

- RawToken / TokenGrid: positional text from one document (tokenizer).
- LayoutDescriptor: where each field lives in one spreadsheet (layout detector).
- SalesRecord: raw field values for one performance row (extractor).
- PerformanceSnapshot: the canonical, dated, deduplicated fact (normalizer on).
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Any

from boxoffice_core.etl.cleaning_utils import cell_text


class SourceFormat(str, Enum):
    """Format tag assigned at the document boundary.

    The value doubles as the provenance ``source`` of every snapshot built
    from a document of that format.
    """

    XLSX_WEEKLY = "ytd_excel"
    PDF_SALES_SUMMARY = "pdf_summary"


class FieldKind(str, Enum):
    """Semantic spreadsheet columns resolved by the layout detector."""

    TITLE = "title"
    DATE = "date"
    BUDGET = "budget"
    SINGLE_REVENUE = "single_revenue"
    SINGLE_TICKETS = "single_tickets"
    SUBSCRIPTION_REVENUE = "subscription_revenue"
    SUBSCRIPTION_TICKETS = "subscription_tickets"
    TOTAL_REVENUE = "total_revenue"
    TOTAL_TICKETS = "total_tickets"


# Every layout must say something about these: an offset or UNAVAILABLE.
REQUIRED_FIELDS: tuple[FieldKind, ...] = (
    FieldKind.DATE,
    FieldKind.SINGLE_REVENUE,
    FieldKind.SINGLE_TICKETS,
    FieldKind.SUBSCRIPTION_REVENUE,
    FieldKind.SUBSCRIPTION_TICKETS,
    FieldKind.TOTAL_REVENUE,
    FieldKind.TOTAL_TICKETS,
)


class _Unavailable:
    """Marker for a field the layout detector deliberately left unresolved."""

    _instance: _Unavailable | None = None

    def __new__(cls) -> _Unavailable:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNAVAILABLE"

    def __reduce__(self) -> str:
        return "UNAVAILABLE"


UNAVAILABLE = _Unavailable()

UNASSIGNED_SERIES = "Unassigned"


@dataclass(frozen=True)
class RawToken:
    """One text run (PDF) or one cell (spreadsheet).

    Attributes:
        text: Cleaned text of the run/cell ("" for empty cells).
        page: 1-based page number for PDFs, 0 for spreadsheets.
        row_hint: Spreadsheet row index (0-based), None for PDFs.
        col_hint: Spreadsheet column index (0-based), None for PDFs.
        value: Original cell value (number, datetime, str) for spreadsheets.

    """

    text: str
    page: int = 0
    row_hint: int | None = None
    col_hint: int | None = None
    value: Any = field(default=None, compare=False)


class TokenGrid:
    """Rectangular-ish grid of spreadsheet tokens.

    Empty cells are kept as "" tokens so that column offsets stay valid;
    cells past the end of a short row read as empty tokens too.
    """

    def __init__(self, rows: list[list[RawToken]], sheet_name: str | None = None) -> None:
        self._rows = rows
        self.sheet_name = sheet_name

    @classmethod
    def from_values(
        cls, rows: Sequence[Sequence[Any]], sheet_name: str | None = None
    ) -> TokenGrid:
        """Build a grid from raw cell values (row-major)."""
        grid = [
            [
                RawToken(text=cell_text(v), row_hint=r, col_hint=c, value=v)
                for c, v in enumerate(row)
            ]
            for r, row in enumerate(rows)
        ]
        return cls(grid, sheet_name=sheet_name)

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def n_rows(self) -> int:
        return len(self._rows)

    def row(self, r: int) -> list[RawToken]:
        if r < 0 or r >= len(self._rows):
            return []
        return self._rows[r]

    def cell(self, r: int, c: int) -> RawToken:
        row = self.row(r)
        if c < 0 or c >= len(row):
            return RawToken(text="", row_hint=r, col_hint=c)
        return row[c]

    def row_texts(self, r: int) -> list[str]:
        return [t.text for t in self.row(r)]

    def is_blank_row(self, r: int) -> bool:
        return all(not t.text for t in self.row(r))


@dataclass(frozen=True)
class LayoutDescriptor:
    """Where each semantic field lives in one spreadsheet.

    Produced once per document by the layout detector and handed explicitly
    to the extractor. Required fields must map to a column index or to
    UNAVAILABLE; silent absence raises ValueError at construction.

    Attributes:
        header_row_index: 0-based row holding the field labels.
        column_offsets: FieldKind -> column index or UNAVAILABLE.
        section_markers: Ordered (pattern, series label) pairs for section rows.
        issues: Human-readable notes on fields that could not be resolved.

    """

    header_row_index: int
    column_offsets: Mapping[FieldKind, int | _Unavailable]
    section_markers: tuple[tuple[re.Pattern[str], str], ...] = ()
    issues: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        missing = [k.value for k in REQUIRED_FIELDS if k not in self.column_offsets]
        if missing:
            raise ValueError(f"Layout does not resolve required fields: {missing}")
        object.__setattr__(self, "column_offsets", MappingProxyType(dict(self.column_offsets)))

    @property
    def data_start_row(self) -> int:
        return self.header_row_index + 1

    def offset(self, kind: FieldKind) -> int | None:
        """Column index for ``kind``, or None when unavailable."""
        value = self.column_offsets.get(kind, UNAVAILABLE)
        return None if value is UNAVAILABLE else value  # type: ignore[return-value]

    def is_available(self, kind: FieldKind) -> bool:
        return self.offset(kind) is not None

    @property
    def degraded(self) -> bool:
        return any(not self.is_available(k) for k in REQUIRED_FIELDS)


@dataclass
class SalesRecord:
    """Raw field values for one performance row, before normalization."""

    title: str
    series_raw: str | None
    date_raw: Any
    single_tickets: float | None = None
    single_revenue: float | None = None
    subscription_tickets: float | None = None
    subscription_revenue: float | None = None
    total_tickets: float | None = None
    total_revenue: float | None = None
    source_format: SourceFormat = SourceFormat.XLSX_WEEKLY
    source_document: str = ""
    row_index: int | None = None
    first_cell: str = ""
    vendor_code: str | None = None
    budget: float | None = None
    channel_detail: dict[str, float] = field(default_factory=dict)

    def has_sales_data(self) -> bool:
        """True if any ticket or revenue field is known."""
        return any(
            v is not None
            for v in (
                self.single_tickets,
                self.single_revenue,
                self.subscription_tickets,
                self.subscription_revenue,
                self.total_tickets,
                self.total_revenue,
            )
        )

    @property
    def location(self) -> str:
        return f"{self.source_document}:{self.row_index}"


@dataclass(frozen=True)
class DroppedRecord:
    """A row/token run excluded from the series, kept for the audit trail."""

    document: str
    location: int | None
    reason: str
    stage: str


@dataclass
class ExtractionResult:
    """Records pulled from one document plus everything that was dropped.

    Attributes:
        records: Records with at least one ticket or revenue value.
        dropped: Rows/token runs excluded, with reasons.
        report_date: Date printed inside the document (PDF run date), if any.

    """

    records: list[SalesRecord] = field(default_factory=list)
    dropped: list[DroppedRecord] = field(default_factory=list)
    report_date: date | None = None


def snapshot_id_for(performance_code: str, snapshot_date: date, source: str) -> str:
    """Deterministic snapshot identity.

    Examples:
        >>> snapshot_id_for("TEST-CONCERT-2024-11-01", date(2024, 11, 4), "ytd_excel")
        'TEST-CONCERT-2024-11-01_2024-11-04_ytd_excel'

    """
    return f"{performance_code}_{snapshot_date.isoformat()}_{source}"


@dataclass(frozen=True)
class PerformanceSnapshot:
    """Cumulative sales of one performance as of one report date."""

    snapshot_id: str
    performance_code: str
    title: str
    series: str
    snapshot_date: date
    performance_date: date
    fiscal_year: str
    fiscal_week: int
    iso_week: int
    snapshot_fiscal_week: int
    snapshot_iso_week: int
    single_tickets: int | None
    single_revenue: float | None
    subscription_tickets: int | None
    subscription_revenue: float | None
    total_tickets: int | None
    total_revenue: float | None
    source: str
    source_document: str = ""
    correction_note: str | None = None

    def to_row(self) -> dict[str, Any]:
        """JSON-safe row for the warehouse snapshot table."""
        row = asdict(self)
        row["snapshot_date"] = self.snapshot_date.isoformat()
        row["performance_date"] = self.performance_date.isoformat()
        return row

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> PerformanceSnapshot:
        data = dict(row)
        for key in ("snapshot_date", "performance_date"):
            if isinstance(data.get(key), str):
                data[key] = date.fromisoformat(data[key])
        known = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in data.items() if k in known})
