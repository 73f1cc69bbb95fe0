"""Marts (Gold) layer - Aggregated tables built on performance snapshots.

- ``build_weekly_totals``: season-to-date totals per (fiscal_year, snapshot_date)
"""

from boxoffice_core.etl.marts.weekly_totals import build_weekly_totals

__all__ = ["build_weekly_totals"]
