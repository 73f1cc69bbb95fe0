"""Tests for cell/token cleaning helpers and path utilities."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from pathlib import Path

import numpy as np
import pytest

from boxoffice_core.etl.cleaning_utils import (
    cell_text,
    is_count_token,
    is_money_token,
    is_percent_token,
    normalize_label,
    parse_percent,
    strip_invisibles,
    to_float,
    to_int,
)
from boxoffice_core.etl.utils import (
    fiscal_year_hint_from_path,
    is_skipped_document,
    iter_batches,
    iter_documents,
    snapshot_date_from_path,
)


def test_to_float_handles_report_formats() -> None:
    """Currency, grouping, parentheses and numpy scalars parse to floats."""
    assert to_float("$1,234.56") == 1234.56
    assert to_float("(1,234.56)") == -1234.56
    assert to_float("300") == 300.0
    assert to_float(np.int64(42)) == 42.0
    assert to_float(12.5) == 12.5


@pytest.mark.parametrize("value", [None, "", "-", "#N/A", "#REF!", float("nan"), True])
def test_to_float_placeholders_are_none(value: object) -> None:
    """Spreadsheet errors, dashes and NaN are not numbers."""
    assert to_float(value) is None


def test_to_float_rejects_text() -> None:
    """Words never become numbers."""
    assert to_float("SOLD OUT") is None


@pytest.mark.parametrize(
    "value",
    [
        time(19, 30),
        datetime(2024, 11, 1, 19, 30),
        date(2024, 11, 1),
        timedelta(hours=2),
        "19:30:00",
        "7:30 PM",
        "11/1",
    ],
)
def test_to_float_rejects_dates_and_times(value: object) -> None:
    """A time or date in a numeric column is not read as its digits."""
    assert to_float(value) is None


def test_to_int_rounds() -> None:
    """Counts are rounded, not truncated."""
    assert to_int("1,234.6") == 1235
    assert to_int(None) is None


def test_cell_text_normalizes_cells() -> None:
    """Integral floats drop '.0'; datetimes become ISO dates; NaN is empty."""
    assert cell_text(300.0) == "300"
    assert cell_text(12.5) == "12.5"
    assert cell_text(float("nan")) == ""
    assert cell_text(datetime(2024, 11, 1, 19, 30)) == "2024-11-01"
    assert cell_text(date(2024, 11, 1)) == "2024-11-01"
    assert cell_text("  Test Concert ") == "Test Concert"


def test_strip_invisibles_removes_zero_width() -> None:
    """Zero-width characters vanish and whitespace collapses."""
    assert strip_invisibles("PO\u200bPS  SERIES") == "POPS SERIES"
    assert strip_invisibles(None) is None


def test_token_classifiers() -> None:
    """Money needs two decimals; counts are integers; percents end in %."""
    assert is_money_token("12,480.00")
    assert is_money_token("$95.50")
    assert not is_money_token("1250")
    assert is_count_token("1,250")
    assert is_count_token("48")
    assert not is_count_token("48.00")
    assert is_percent_token("87.5%")
    assert not is_percent_token("87.5")
    assert parse_percent("87.5%") == 87.5


def test_normalize_label() -> None:
    """Labels compare case- and spacing-insensitively."""
    assert normalize_label(" # sold ") == "# SOLD"
    assert normalize_label("Date(s)") == "DATE(S)"
    assert normalize_label("Répertoire") == "REPERTOIRE"


class TestPathDates:
    """Snapshot dates and fiscal-year hints read from document paths."""

    def test_dotted_prefix(self) -> None:
        """Weekly exports carry the date as a dotted prefix."""
        path = Path("FY25/2024.11.04 FY25 Weekly Sales Report.xlsx")
        assert snapshot_date_from_path(path) == date(2024, 11, 4)

    def test_iso_date_in_name(self) -> None:
        """PDF summaries carry an ISO date in the name."""
        assert snapshot_date_from_path(Path("sales_summary_2025-10-06.pdf")) == date(2025, 10, 6)

    def test_year_month_folder(self) -> None:
        """A YYYY/MM/ folder pair gives the first of the month."""
        assert snapshot_date_from_path(Path("pdf/2025/10/summary.pdf")) == date(2025, 10, 1)

    def test_no_date(self) -> None:
        """Names without a date give None."""
        assert snapshot_date_from_path(Path("summary.pdf")) is None

    def test_impossible_date_is_ignored(self) -> None:
        """A prefix that is not a real date does not count."""
        assert snapshot_date_from_path(Path("2024.13.45 Sales.xlsx")) is None

    def test_fiscal_year_hint_prefers_file_name(self) -> None:
        """The file name wins over its folder."""
        assert fiscal_year_hint_from_path(Path("FY24/2024.11.04 FY25 Sales.xlsx")) == "FY25"
        assert fiscal_year_hint_from_path(Path("fy 24/2023.11.06 Sales.xlsx")) == "FY24"
        assert fiscal_year_hint_from_path(Path("2023.11.06 Sales.xlsx")) is None


def test_skip_list() -> None:
    """The broken 2024.10.28 export is on the skip list."""
    assert is_skipped_document(Path("FY25/2024.10.28 FY25 Sales.xlsx"))
    assert not is_skipped_document(Path("FY25/2024.11.04 FY25 Sales.xlsx"))


def test_iter_batches() -> None:
    """Batches are consecutive and the last one may be short."""
    assert list(iter_batches([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
    assert list(iter_batches([], 3)) == []
    with pytest.raises(ValueError):
        list(iter_batches([1], 0))


def test_iter_documents(tmp_path: Path) -> None:
    """Directories are walked recursively; lock and hidden files are ignored."""
    (tmp_path / "FY25").mkdir()
    wanted = tmp_path / "FY25" / "2024.11.04 Sales.xlsx"
    wanted.write_bytes(b"x")
    (tmp_path / "FY25" / "~$2024.11.04 Sales.xlsx").write_bytes(b"x")
    (tmp_path / ".hidden.xlsx").write_bytes(b"x")
    (tmp_path / "notes.txt").write_text("x")

    assert iter_documents(tmp_path, (".xlsx",)) == [wanted]
    assert iter_documents(wanted, (".XLSX",)) == [wanted]
    with pytest.raises(FileNotFoundError):
        iter_documents(tmp_path / "missing", (".xlsx",))
