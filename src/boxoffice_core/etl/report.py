"""Diagnostics report for a batch run.

Builds a JSON-safe summary of a BatchResult: how many snapshots per series
and per fiscal year, which snapshot dates each season has, sample rows, and
every document error, dropped record, spike correction and QA finding. Dry
runs write it to disk; the CLI prints its headline numbers either way.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd

from boxoffice_core.etl.marts.weekly_totals import build_weekly_totals
from boxoffice_core.etl.pipeline import BatchResult
from boxoffice_core.qa.snapshot_checks import snapshots_to_frame
from boxoffice_core.types import UNASSIGNED_SERIES

logger = logging.getLogger(__name__)

SAMPLE_ROWS = 5


def _frame_records(df: pd.DataFrame) -> list[dict[str, Any]]:
    out = df.copy()
    for col in out.columns:
        if pd.api.types.is_datetime64_any_dtype(out[col]):
            out[col] = out[col].dt.strftime("%Y-%m-%d")
    return json.loads(out.to_json(orient="records"))


def build_report(result: BatchResult) -> dict[str, Any]:
    """Assemble the diagnostics report for ``result``."""
    df = snapshots_to_frame(result.snapshots)

    summary: dict[str, Any] = {
        "source": result.source_format.value,
        "fiscal_year_filter": result.fiscal_year,
        "documents": len(result.documents),
        "documents_parsed": len(result.parsed),
        "documents_failed": len(result.failed),
        "documents_skipped": len(result.skipped),
        "documents_from_cache": sum(1 for d in result.documents if d.from_cache),
        "snapshots": len(result.snapshots),
        "performances": int(df["performance_code"].nunique()) if not df.empty else 0,
        "dropped_records": len(result.dropped),
        "spike_corrections": len(result.corrections),
        "unassigned_series": int((df["series"] == UNASSIGNED_SERIES).sum()) if not df.empty else 0,
        "elapsed_seconds": round(result.elapsed, 2),
    }
    if not df.empty:
        summary["snapshot_date_range"] = [
            df["snapshot_date"].min().strftime("%Y-%m-%d"),
            df["snapshot_date"].max().strftime("%Y-%m-%d"),
        ]
        summary["performance_date_range"] = [
            df["performance_date"].min().strftime("%Y-%m-%d"),
            df["performance_date"].max().strftime("%Y-%m-%d"),
        ]

    by_series = df["series"].value_counts().sort_index().to_dict() if not df.empty else {}
    by_fiscal_year = df["fiscal_year"].value_counts().sort_index().to_dict() if not df.empty else {}
    snapshot_dates: dict[str, list[str]] = {}
    by_date: dict[str, int] = {}
    if not df.empty:
        for fy, group in df.groupby("fiscal_year"):
            dates = sorted(group["snapshot_date"].dt.strftime("%Y-%m-%d").unique())
            snapshot_dates[str(fy)] = dates
        by_date = (
            df.groupby(df["snapshot_date"].dt.strftime("%Y-%m-%d")).size().sort_index().to_dict()
        )

    return {
        "generated_at": datetime.now().isoformat(timespec="seconds"),
        "summary": summary,
        "by_series": {str(k): int(v) for k, v in by_series.items()},
        "by_fiscal_year": {str(k): int(v) for k, v in by_fiscal_year.items()},
        "by_snapshot_date": {str(k): int(v) for k, v in by_date.items()},
        "snapshot_dates_by_fiscal_year": snapshot_dates,
        "sample_records": [s.to_row() for s in result.snapshots[:SAMPLE_ROWS]],
        "documents": [
            {
                "document": d.document,
                "snapshot_date": d.snapshot_date.isoformat() if d.snapshot_date else None,
                "fiscal_year": d.fiscal_year,
                "snapshots": len(d.snapshots),
                "dropped": len(d.dropped),
                "layout_issues": d.layout_issues,
                "error": d.error,
                "skipped": d.skipped,
                "from_cache": d.from_cache,
            }
            for d in result.documents
        ],
        "document_errors": [
            {"document": d.document, "error": d.error} for d in result.failed
        ],
        "dropped_records": [asdict(r) for r in result.dropped],
        "corrections": [asdict(c) for c in result.corrections],
        "qa": result.qa.summary if result.qa is not None else None,
        "weekly_totals": _frame_records(build_weekly_totals(df)) if not df.empty else [],
        "ingest": result.ingest.to_dict() if result.ingest is not None else None,
    }


def write_report(report: dict[str, Any], path: Path) -> Path:
    """Write ``report`` as indented JSON; return the path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False, default=str)
    logger.info("Wrote report %s", path)
    return path
