"""Tests for spreadsheet layout detection and row extraction.

Grids are built in memory with TokenGrid.from_values so each test shows the
exact sheet shape it covers.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from boxoffice_core.etl.raw.tokenizer import tokenize_workbook
from boxoffice_core.etl.staging.layout import classify_measure, detect_layout, find_header_row
from boxoffice_core.etl.staging.xlsx_extractor import extract_sheet_records
from boxoffice_core.exceptions import DocumentUnreadable, LayoutUnresolved
from boxoffice_core.types import UNAVAILABLE, FieldKind, LayoutDescriptor, TokenGrid

from conftest import weekly_rows

CONCERT_ROW = ["", "Test Concert", "Nov. 1-3", 5000, 4500.0, 200, 3000, 2500.0, 100, 8000, 7000.0, 300]


class TestDetectLayout:
    """Header location and column attribution."""

    def test_channel_labels_above_header(self) -> None:
        """SINGLE/SUBSCRIPTION/TOTAL labels attribute each ACTUAL/# SOLD pair."""
        layout = detect_layout(TokenGrid.from_values(weekly_rows(CONCERT_ROW)))

        assert layout.header_row_index == 3
        assert layout.offset(FieldKind.DATE) == 2
        assert layout.offset(FieldKind.TITLE) == 1
        assert layout.offset(FieldKind.BUDGET) == 3
        assert layout.offset(FieldKind.SINGLE_REVENUE) == 4
        assert layout.offset(FieldKind.SINGLE_TICKETS) == 5
        assert layout.offset(FieldKind.SUBSCRIPTION_REVENUE) == 7
        assert layout.offset(FieldKind.SUBSCRIPTION_TICKETS) == 8
        assert layout.offset(FieldKind.TOTAL_REVENUE) == 10
        assert layout.offset(FieldKind.TOTAL_TICKETS) == 11
        assert not layout.degraded

    def test_positional_attribution_without_channel_row(self) -> None:
        """Three unlabeled pairs map to single, subscription, total in order."""
        rows = [
            ["CODE", "TITLE", "DATE", "ACTUAL", "# SOLD", "ACTUAL", "# SOLD", "ACTUAL", "# SOLD"],
            ["", "Gala", "2024-09-14", 100.0, 2, 50.0, 1, 150.0, 3],
        ]
        layout = detect_layout(TokenGrid.from_values(rows))

        assert layout.header_row_index == 0
        assert layout.offset(FieldKind.SINGLE_REVENUE) == 3
        assert layout.offset(FieldKind.SUBSCRIPTION_TICKETS) == 6
        assert layout.offset(FieldKind.TOTAL_TICKETS) == 8
        assert layout.offset(FieldKind.BUDGET) is None

    def test_two_pairs_leave_total_unavailable(self) -> None:
        """With only two pairs the total columns are explicitly UNAVAILABLE."""
        rows = [
            ["", "", "DATE(S)", "ACTUAL", "# SOLD", "ACTUAL", "# SOLD"],
            ["", "Gala", "Sept 14", 100.0, 2, 50.0, 1],
        ]
        layout = detect_layout(TokenGrid.from_values(rows))

        assert layout.column_offsets[FieldKind.TOTAL_REVENUE] is UNAVAILABLE
        assert layout.column_offsets[FieldKind.TOTAL_TICKETS] is UNAVAILABLE
        assert layout.offset(FieldKind.SINGLE_TICKETS) == 4
        assert layout.degraded
        assert any("total_tickets" in issue for issue in layout.issues)

    def test_older_explicit_vocabulary(self) -> None:
        """Labels naming their own channel are used as-is."""
        rows = [
            ["", "CONCERT", "DATES", "BUDGET", "SINGLE TICKETS", "SINGLE REVENUE",
             "SUB TICKETS", "SUB REVENUE", "TOTAL TICKETS", "TOTAL REVENUE"],
        ]  # fmt: skip
        layout = detect_layout(TokenGrid.from_values(rows))

        assert layout.offset(FieldKind.TITLE) == 1
        assert layout.offset(FieldKind.SINGLE_TICKETS) == 4
        assert layout.offset(FieldKind.SUBSCRIPTION_REVENUE) == 7
        assert layout.offset(FieldKind.TOTAL_REVENUE) == 9

    def test_budget_row_is_header_fallback(self) -> None:
        """Without a date label the first BUDGET row is the header."""
        rows = [["REPORT"], ["", "", "BUDGET", "ACTUAL", "# SOLD"]]
        assert find_header_row(TokenGrid.from_values(rows)) == 1
        layout = detect_layout(TokenGrid.from_values(rows))
        assert layout.offset(FieldKind.DATE) is None
        assert "date: no DATE label in header row" in layout.issues

    def test_no_header_raises(self) -> None:
        """A sheet with neither DATE nor BUDGET near the top is unresolvable."""
        rows = [["Notes"], ["nothing", "here"]]
        with pytest.raises(LayoutUnresolved):
            detect_layout(TokenGrid.from_values(rows))

    def test_header_below_scan_window_is_not_found(self) -> None:
        """Only the first six rows are searched."""
        rows = [["x"]] * 6 + [["", "", "DATE", "BUDGET"]]
        with pytest.raises(LayoutUnresolved):
            find_header_row(TokenGrid.from_values(rows))


def test_classify_measure_word_boundaries() -> None:
    """'PREVIOUS' is not a revenue label; '# SOLD' is tickets."""
    assert classify_measure("PREVIOUS WEEK") is None
    assert classify_measure("#SOLD") == ("tickets", None)
    assert classify_measure("ACTUAL REVENUE") == ("revenue", None)
    assert classify_measure("TOTAL REV") == ("revenue", "total")
    assert classify_measure("BUDGET") is None


def test_layout_descriptor_requires_every_field() -> None:
    """Silently omitting a required field is a construction error."""
    with pytest.raises(ValueError, match="total_tickets"):
        LayoutDescriptor(
            header_row_index=0,
            column_offsets={
                FieldKind.DATE: 2,
                FieldKind.SINGLE_REVENUE: 3,
                FieldKind.SINGLE_TICKETS: 4,
                FieldKind.SUBSCRIPTION_REVENUE: 5,
                FieldKind.SUBSCRIPTION_TICKETS: 6,
                FieldKind.TOTAL_REVENUE: UNAVAILABLE,
            },
        )


class TestExtractSheetRecords:
    """Row walking, section tracking and drops."""

    @pytest.fixture
    def grid(self) -> TokenGrid:
        """A sheet with two sections, placeholder rows and one bad number."""
        return TokenGrid.from_values(
            weekly_rows(
                ["POPS SERIES"],
                CONCERT_ROW,
                ["", "OPEN", "", "", "", "", "", "", "", "", "", ""],
                ["POPS SERIES TOTAL", "", "", "", "", "", "", "", "", "", 7000.0, 300],
                [""] * 12,
                ["CLASSICAL SERIES"],
                ["CS1", "Beethoven Five", "Oct. 5", 1, 900.0, 10, 1, 600.0, 5, 1, 1500.0, 15],
                ["CS2", "Mahler Two", "Oct. 12", 1, "n/a!", 10, 1, 600.0, 5, 1, 1500.0, 15],
                ["", "Unsold Recital", "Oct. 19", 1, "-", "", 1, "", "", 1, "", ""],
                ["", "Undated Gala", "", 1, 100.0, 1, 1, 100.0, 1, 1, 200.0, 2],
                ["GRAND TOTAL", "", "", "", "", "", "", "", "", "", 8500.0, 315],
            )
        )

    def test_records_follow_sections(self, grid: TokenGrid) -> None:
        """Each record carries the section it appears under."""
        result = extract_sheet_records(grid, detect_layout(grid), "2024.11.04 Sales.xlsx")

        assert [r.title for r in result.records] == ["Test Concert", "Beethoven Five"]
        concert, beethoven = result.records
        assert concert.series_raw == "Pops"
        assert concert.date_raw == "Nov. 1-3"
        assert concert.single_tickets == 200
        assert concert.subscription_revenue == 2500.0
        assert concert.total_tickets == 300
        assert concert.budget == 5000
        assert beethoven.series_raw == "Classical"
        assert beethoven.first_cell == "CS1"

    def test_bad_rows_are_dropped_with_reasons(self, grid: TokenGrid) -> None:
        """Unparseable numbers, rows without sales and undated sales are dropped."""
        result = extract_sheet_records(grid, detect_layout(grid), "2024.11.04 Sales.xlsx")

        reasons = [d.reason for d in result.dropped]
        assert len(reasons) == 3
        assert "Mahler Two" in reasons[0] and "n/a!" in reasons[0]
        assert "Unsold Recital" in reasons[1]
        assert "Undated Gala" in reasons[2] and "DateUnresolvable" in reasons[2]
        assert all(d.stage == "extract" for d in result.dropped)

    def test_titles_that_look_like_labels_are_performances(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Dated rows are kept even when the title contains TOTAL or a section name."""
        grid = TokenGrid.from_values(
            weekly_rows(
                ["POPS SERIES"],
                ["", "Totally Tubular 80s", "Nov. 8", 1, 800.0, 40, 1, 200.0, 10, 1, 1000.0, 50],
                ["", "Film Concerts", "Nov. 15", 1, 600.0, 30, 1, 100.0, 5, 1, 700.0, 35],
                ["", "Undated Gala", "", 1, 100.0, 1, 1, 100.0, 1, 1, 200.0, 2],
                ["POPS SERIES TOTAL", "", "", "", "", "", "", "", "", "", 1900.0, 87],
            )
        )
        with caplog.at_level(logging.INFO, logger="boxoffice_core.etl.staging.xlsx_extractor"):
            result = extract_sheet_records(grid, detect_layout(grid), "2024.11.18 Sales.xlsx")

        assert [r.title for r in result.records] == ["Totally Tubular 80s", "Film Concerts"]
        assert all(r.series_raw == "Pops" for r in result.records)
        assert [d.location for d in result.dropped] == [7]
        assert "DateUnresolvable" in result.dropped[0].reason

        messages = [r.getMessage() for r in caplog.records if r.levelno == logging.INFO]
        assert any("row 4" in m and "POPS SERIES" in m for m in messages)
        assert any("row 7" in m and "Undated Gala" in m for m in messages)
        assert any("row 8" in m and "POPS SERIES TOTAL" in m for m in messages)

    def test_sheet_without_date_column_is_skipped(self) -> None:
        """Without a date column no performance can be placed; the sheet is one drop."""
        rows = [["", "", "BUDGET", "ACTUAL", "# SOLD"], ["", "Gala", 1, 100.0, 2]]
        grid = TokenGrid.from_values(rows, sheet_name="Summary")

        result = extract_sheet_records(grid, detect_layout(grid), "old.xlsx")

        assert result.records == []
        assert len(result.dropped) == 1
        assert "no date column" in result.dropped[0].reason
        assert "Summary" in result.dropped[0].reason


class TestTokenizeWorkbook:
    """Reading .xlsx files into grids."""

    def test_round_trip_preserves_offsets(self, tmp_path: Path, write_workbook) -> None:
        """Empty cells stay in place so detected offsets match the sheet."""
        path = write_workbook(tmp_path / "2024.11.04 Sales.xlsx", weekly_rows(CONCERT_ROW))
        grid = tokenize_workbook(path)

        assert grid.n_rows == 5
        assert grid.cell(4, 1).text == "Test Concert"
        assert grid.cell(4, 11).text == "300"
        assert grid.is_blank_row(1)
        layout = detect_layout(grid)
        assert layout.offset(FieldKind.TOTAL_TICKETS) == 11

    def test_unreadable_file(self, tmp_path: Path) -> None:
        """A file that is not a workbook raises DocumentUnreadable."""
        bad = tmp_path / "broken.xlsx"
        bad.write_bytes(b"not a zip archive")
        with pytest.raises(DocumentUnreadable):
            tokenize_workbook(bad)
