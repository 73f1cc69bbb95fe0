"""Public API for snapshot QA.

This module runs the snapshot checks in memory, without reading or writing
any files. The batch driver runs it on every merged batch and the dry-run
report includes its summary.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

import pandas as pd

from boxoffice_core.exceptions import DataQualityError
from boxoffice_core.qa.snapshot_checks import (
    REQUIRED_COLUMNS,
    detect_duplicate_ids,
    detect_duplicate_keys,
    detect_negative_values,
    detect_total_violations,
    detect_unassigned_series,
    snapshots_to_frame,
)
from boxoffice_core.types import PerformanceSnapshot

logger = logging.getLogger(__name__)


@dataclass
class SnapshotQAResult:
    """Result of the snapshot QA checks.

    Attributes:
        summary: Dictionary with counts and flags.
        duplicate_ids: Rows sharing a snapshot_id, or None if none found.
        duplicate_keys: Rows sharing (performance_code, snapshot_date, source), or None.
        total_violations: Rows breaking total = single + subscription, or None.
        negative_values: Rows with a negative ticket/revenue value, or None.
        unassigned_series: Rows with the Unassigned series, or None.

    """

    summary: dict
    duplicate_ids: pd.DataFrame | None
    duplicate_keys: pd.DataFrame | None
    total_violations: pd.DataFrame | None
    negative_values: pd.DataFrame | None
    unassigned_series: pd.DataFrame | None

    @property
    def has_errors(self) -> bool:
        """True for findings that break table invariants (not just warnings)."""
        return any(
            frame is not None
            for frame in (
                self.duplicate_ids,
                self.duplicate_keys,
                self.total_violations,
                self.negative_values,
            )
        )


def _none_if_empty(df: pd.DataFrame) -> pd.DataFrame | None:
    return None if df.empty else df


def run_snapshot_qa(
    snapshots: pd.DataFrame | Iterable[PerformanceSnapshot],
) -> SnapshotQAResult:
    """Run every snapshot check.

    Args:
        snapshots: A snapshot frame (as built by ``snapshots_to_frame``) or
            the snapshots themselves.

    Returns:
        SnapshotQAResult with a summary and the offending rows per check.

    Raises:
        DataQualityError: If required columns are missing.

    """
    df = snapshots if isinstance(snapshots, pd.DataFrame) else snapshots_to_frame(snapshots)

    missing_cols = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing_cols:
        raise DataQualityError(
            f"Missing required columns in snapshot frame: {missing_cols}. "
            f"Required: {REQUIRED_COLUMNS}"
        )

    logger.debug("Running snapshot QA on %d rows", len(df))
    duplicate_ids = _none_if_empty(detect_duplicate_ids(df))
    duplicate_keys = _none_if_empty(detect_duplicate_keys(df))
    total_violations = _none_if_empty(detect_total_violations(df))
    negative_values = _none_if_empty(detect_negative_values(df))
    unassigned = _none_if_empty(detect_unassigned_series(df))

    def count(frame: pd.DataFrame | None) -> int:
        return 0 if frame is None else len(frame)

    summary = {
        "total_rows": len(df),
        "performances": int(df["performance_code"].nunique()) if not df.empty else 0,
        "min_snapshot_date": df["snapshot_date"].min().date().isoformat() if not df.empty else None,
        "max_snapshot_date": df["snapshot_date"].max().date().isoformat() if not df.empty else None,
        "duplicate_ids_count": count(duplicate_ids),
        "duplicate_keys_count": count(duplicate_keys),
        "total_violations_count": count(total_violations),
        "negative_values_count": count(negative_values),
        "unassigned_series_count": count(unassigned),
    }

    logger.info(
        "QA complete: %d duplicate ids, %d duplicate keys, %d total violations, "
        "%d negative rows, %d unassigned series",
        summary["duplicate_ids_count"],
        summary["duplicate_keys_count"],
        summary["total_violations_count"],
        summary["negative_values_count"],
        summary["unassigned_series_count"],
    )

    return SnapshotQAResult(
        summary=summary,
        duplicate_ids=duplicate_ids,
        duplicate_keys=duplicate_keys,
        total_violations=total_violations,
        negative_values=negative_values,
        unassigned_series=unassigned,
    )
