"""Marts (Gold) layer: season-to-date totals per snapshot week.

This module is part of the Marts (Gold) layer in the ETL pipeline.
It rolls performance snapshots up to one row per (fiscal_year, snapshot_date):
how many tickets and how much revenue the whole season had sold as of that
report, and how many performances the report covered. These are the numbers
the year-over-year comparison charts plot week by week.

Grain:
    fiscal_year x snapshot_date (one row per weekly report per season)
"""

from __future__ import annotations

from collections.abc import Iterable

import pandas as pd

from boxoffice_core.qa.snapshot_checks import snapshots_to_frame
from boxoffice_core.types import PerformanceSnapshot

SUM_COLUMNS = [
    "single_tickets",
    "single_revenue",
    "subscription_tickets",
    "subscription_revenue",
    "total_tickets",
    "total_revenue",
]

OUTPUT_COLUMNS = [
    "fiscal_year",
    "snapshot_date",
    "snapshot_fiscal_week",
    "performance_count",
    *SUM_COLUMNS,
]


def build_weekly_totals(
    snapshots: pd.DataFrame | Iterable[PerformanceSnapshot],
    series: str | None = None,
) -> pd.DataFrame:
    """Aggregate snapshots to season totals per snapshot date.

    Args:
        snapshots: Snapshot frame or snapshots.
        series: Restrict to one series (e.g. "Classical"); None for all.

    Returns:
        DataFrame with OUTPUT_COLUMNS, sorted by fiscal_year and snapshot_date.
        Sums skip missing values; revenue is rounded to cents.

    """
    df = snapshots if isinstance(snapshots, pd.DataFrame) else snapshots_to_frame(snapshots)
    if series is not None:
        df = df[df["series"] == series]
    if df.empty:
        return pd.DataFrame(columns=OUTPUT_COLUMNS)

    grouped = df.groupby(["fiscal_year", "snapshot_date"], as_index=False)
    out = grouped.agg(
        snapshot_fiscal_week=("snapshot_fiscal_week", "first"),
        performance_count=("performance_code", "nunique"),
        **{col: (col, "sum") for col in SUM_COLUMNS},
    )
    for col in SUM_COLUMNS:
        if col.endswith("_revenue"):
            out[col] = out[col].round(2)
        else:
            out[col] = out[col].astype("int64")
    return out[OUTPUT_COLUMNS].sort_values(["fiscal_year", "snapshot_date"]).reset_index(drop=True)
