"""Shared fixtures: snapshot factory and spreadsheet writer."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from boxoffice_core.etl.staging.normalize import fiscal_week, fiscal_year_for, iso_week
from boxoffice_core.types import PerformanceSnapshot, snapshot_id_for

# Layout used by most weekly exports since FY24: channel labels two rows
# above the header, three BUDGET/ACTUAL/# SOLD blocks.
CHANNEL_ROW = ["", "", "", "SINGLE", "", "", "SUBSCRIPTION", "", "", "TOTAL", "", ""]
HEADER_ROW = [
    "",
    "",
    "DATE(S)",
    "BUDGET",
    "ACTUAL",
    "# SOLD",
    "BUDGET",
    "ACTUAL",
    "# SOLD",
    "BUDGET",
    "ACTUAL",
    "# SOLD",
]


def weekly_rows(*body: Sequence[Any]) -> list[list[Any]]:
    """Title rows + channel row + header row, followed by ``body``."""
    return [
        ["FY25 WEEKLY SALES REPORT"] + [""] * 11,
        [""] * 12,
        list(CHANNEL_ROW),
        list(HEADER_ROW),
        *[list(r) for r in body],
    ]


@pytest.fixture
def write_workbook() -> Callable[[Path, Sequence[Sequence[Any]]], Path]:
    """Write rows (no header inference) to an .xlsx file and return its path."""

    def _write(path: Path, rows: Sequence[Sequence[Any]]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        frame = pd.DataFrame([[None if v == "" else v for v in r] for r in rows])
        frame.to_excel(path, header=False, index=False)
        return path

    return _write


@pytest.fixture
def make_snapshot() -> Callable[..., PerformanceSnapshot]:
    """Factory for PerformanceSnapshots with consistent derived fields."""

    def _make(
        code: str = "TEST-CONCERT-2024-11-01",
        snapshot_date: date = date(2024, 11, 4),
        total_revenue: float | None = 1000.0,
        single_tickets: int | None = 20,
        subscription_tickets: int | None = 10,
        performance_date: date = date(2024, 11, 1),
        source: str = "ytd_excel",
        series: str = "Pops",
        **overrides: Any,
    ) -> PerformanceSnapshot:
        total_tickets = (
            single_tickets + subscription_tickets
            if single_tickets is not None and subscription_tickets is not None
            else None
        )
        fields: dict[str, Any] = dict(
            snapshot_id=snapshot_id_for(code, snapshot_date, source),
            performance_code=code,
            title="Test Concert",
            series=series,
            snapshot_date=snapshot_date,
            performance_date=performance_date,
            fiscal_year=fiscal_year_for(performance_date),
            fiscal_week=fiscal_week(performance_date),
            iso_week=iso_week(performance_date),
            snapshot_fiscal_week=fiscal_week(snapshot_date),
            snapshot_iso_week=iso_week(snapshot_date),
            single_tickets=single_tickets,
            single_revenue=None if total_revenue is None else round(total_revenue * 0.6, 2),
            subscription_tickets=subscription_tickets,
            subscription_revenue=None if total_revenue is None else round(total_revenue * 0.4, 2),
            total_tickets=total_tickets,
            total_revenue=total_revenue,
            source=source,
            source_document="test.xlsx",
        )
        fields.update(overrides)
        return PerformanceSnapshot(**fields)

    return _make
