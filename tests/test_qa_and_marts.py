"""Tests for snapshot QA checks, the weekly totals mart and the parse cache."""

from __future__ import annotations

import json
from datetime import date, timedelta
from pathlib import Path

import pandas as pd
import pytest

from boxoffice_core.etl.cache import ParseCache
from boxoffice_core.etl.marts import build_weekly_totals
from boxoffice_core.exceptions import DataQualityError
from boxoffice_core.qa import run_snapshot_qa, snapshots_to_frame
from boxoffice_core.types import UNASSIGNED_SERIES


class TestSnapshotQA:
    """Each check flags exactly the rows that break its rule."""

    def test_clean_batch(self, make_snapshot) -> None:
        snaps = [make_snapshot(code="A-2024-11-01"), make_snapshot(code="B-2024-11-01")]
        result = run_snapshot_qa(snaps)

        assert not result.has_errors
        assert result.summary["total_rows"] == 2
        assert result.summary["performances"] == 2
        assert result.summary["min_snapshot_date"] == "2024-11-04"

    def test_findings(self, make_snapshot) -> None:
        """Duplicates, total violations, negatives and Unassigned rows are all reported."""
        snaps = [
            make_snapshot(code="A-2024-11-01"),
            make_snapshot(code="A-2024-11-01"),
            make_snapshot(code="B-2024-11-01", total_tickets=99),
            make_snapshot(code="C-2024-11-01", total_revenue=-5.0),
            make_snapshot(code="D-2024-11-01", series=UNASSIGNED_SERIES),
        ]
        result = run_snapshot_qa(snaps)

        assert result.has_errors
        assert result.summary["duplicate_ids_count"] == 2
        assert result.summary["duplicate_keys_count"] == 2
        assert result.summary["total_violations_count"] == 1
        assert result.summary["negative_values_count"] == 1
        assert result.summary["unassigned_series_count"] == 1
        assert list(result.total_violations["performance_code"]) == ["B-2024-11-01"]

    def test_unassigned_alone_is_not_an_error(self, make_snapshot) -> None:
        result = run_snapshot_qa([make_snapshot(series=UNASSIGNED_SERIES)])
        assert not result.has_errors
        assert result.unassigned_series is not None

    def test_missing_columns(self) -> None:
        with pytest.raises(DataQualityError, match="snapshot_id"):
            run_snapshot_qa(pd.DataFrame({"series": ["Pops"]}))


class TestWeeklyTotals:
    """Season-to-date totals per snapshot date."""

    @pytest.fixture
    def snapshots(self, make_snapshot) -> list:
        week1 = date(2024, 10, 28)
        week2 = week1 + timedelta(weeks=1)
        return [
            make_snapshot(code="A-2024-11-01", snapshot_date=week1, total_revenue=100.0),
            make_snapshot(code="B-2024-11-01", snapshot_date=week1, total_revenue=50.005,
                          series="Classical"),  # fmt: skip
            make_snapshot(code="A-2024-11-01", snapshot_date=week2, total_revenue=300.0),
        ]

    def test_grain_and_sums(self, snapshots: list) -> None:
        """One row per (fiscal_year, snapshot_date) with summed measures."""
        out = build_weekly_totals(snapshots)

        assert len(out) == 2
        assert not out.duplicated(["fiscal_year", "snapshot_date"]).any()
        first = out.iloc[0]
        assert first["fiscal_year"] == "FY25"
        assert first["performance_count"] == 2
        assert first["total_tickets"] == 60
        assert first["total_revenue"] == pytest.approx(150.0, abs=0.01)
        assert first["snapshot_fiscal_week"] == 18
        assert out.iloc[1]["total_revenue"] == 300.0

    def test_series_filter(self, snapshots: list) -> None:
        out = build_weekly_totals(snapshots, series="Classical")
        assert list(out["performance_count"]) == [1]

    def test_empty(self) -> None:
        out = build_weekly_totals(snapshots_to_frame([]))
        assert out.empty
        assert "total_revenue" in out.columns


class TestParseCache:
    """Content-addressed parse results."""

    @pytest.fixture
    def document(self, tmp_path: Path) -> Path:
        path = tmp_path / "2024.11.04 Sales.xlsx"
        path.write_bytes(b"workbook bytes")
        return path

    def test_put_get(self, tmp_path: Path, document: Path) -> None:
        cache = ParseCache(tmp_path / "_cache")
        key = cache.key_for(document, "FY25")
        assert cache.get(key) is None

        cache.put(key, {"snapshots": [1, 2]}, document=document.name)

        assert cache.get(key) == {"snapshots": [1, 2]}
        assert not list((tmp_path / "_cache").glob("*.tmp"))

    def test_key_depends_on_bytes_version_and_context(self, tmp_path: Path, document: Path) -> None:
        cache = ParseCache(tmp_path / "_cache")
        key = cache.key_for(document, "FY25")

        assert cache.key_for(document, "FY25") == key
        assert cache.key_for(document, "FY24") != key
        assert ParseCache(tmp_path / "_cache", version="v2").key_for(document, "FY25") != key
        document.write_bytes(b"edited workbook bytes")
        assert cache.key_for(document, "FY25") != key

    def test_other_parser_version_misses(self, tmp_path: Path) -> None:
        ParseCache(tmp_path, version="v1").put("k", {"a": 1})
        assert ParseCache(tmp_path, version="v2").get("k") is None

    def test_corrupt_entry_is_discarded(self, tmp_path: Path) -> None:
        cache = ParseCache(tmp_path)
        (tmp_path / "k.json").write_text("{not json")
        assert cache.get("k") is None
        assert not (tmp_path / "k.json").exists()

    def test_expired_entry(self, tmp_path: Path) -> None:
        cache = ParseCache(tmp_path, max_age=timedelta(days=1))
        cache.put("k", {"a": 1})
        entry = json.loads((tmp_path / "k.json").read_text())
        entry["created_at"] = "2000-01-01T00:00:00"
        (tmp_path / "k.json").write_text(json.dumps(entry))

        assert cache.get("k") is None

    def test_invalidate(self, tmp_path: Path) -> None:
        cache = ParseCache(tmp_path / "_cache")
        assert cache.invalidate_all() == 0
        cache.put("a", {})
        cache.put("b", {})
        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        assert cache.invalidate_all() == 1
