"""QA checks for performance snapshot frames.

Each check takes a snapshot DataFrame (one row per PerformanceSnapshot, see
``snapshots_to_frame``) and returns the offending rows, or an empty frame.

Checks:
- duplicate snapshot_id
- duplicate (performance_code, snapshot_date, source)
- total_tickets != single_tickets + subscription_tickets where all are known
- negative ticket or revenue values
- snapshots whose series is the Unassigned sentinel
"""

from __future__ import annotations

from collections.abc import Iterable

import pandas as pd

from boxoffice_core.types import UNASSIGNED_SERIES, PerformanceSnapshot
from boxoffice_core.warehouse.base import SNAPSHOT_SCHEMA

REQUIRED_COLUMNS = [
    "snapshot_id",
    "performance_code",
    "series",
    "snapshot_date",
    "performance_date",
    "fiscal_year",
    "source",
]

TICKET_COLUMNS = ["single_tickets", "subscription_tickets", "total_tickets"]
REVENUE_COLUMNS = ["single_revenue", "subscription_revenue", "total_revenue"]


def snapshots_to_frame(snapshots: Iterable[PerformanceSnapshot]) -> pd.DataFrame:
    """One row per snapshot, columns in table order, dates as datetime64."""
    df = pd.DataFrame([s.to_row() for s in snapshots], columns=list(SNAPSHOT_SCHEMA))
    for col in ("snapshot_date", "performance_date"):
        df[col] = pd.to_datetime(df[col])
    for col in TICKET_COLUMNS + REVENUE_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def detect_duplicate_ids(df: pd.DataFrame) -> pd.DataFrame:
    return df[df.duplicated("snapshot_id", keep=False)].sort_values("snapshot_id")


def detect_duplicate_keys(df: pd.DataFrame) -> pd.DataFrame:
    """Same performance reported twice for one date by one source."""
    keys = ["performance_code", "snapshot_date", "source"]
    return df[df.duplicated(keys, keep=False)].sort_values(keys)


def detect_total_violations(df: pd.DataFrame) -> pd.DataFrame:
    known = df[TICKET_COLUMNS].notna().all(axis=1)
    derived = df["single_tickets"] + df["subscription_tickets"]
    return df[known & (df["total_tickets"] != derived)]


def detect_negative_values(df: pd.DataFrame) -> pd.DataFrame:
    cols = TICKET_COLUMNS + REVENUE_COLUMNS
    return df[(df[cols] < -1e-6).any(axis=1)]


def detect_unassigned_series(df: pd.DataFrame) -> pd.DataFrame:
    return df[df["series"] == UNASSIGNED_SERIES]
