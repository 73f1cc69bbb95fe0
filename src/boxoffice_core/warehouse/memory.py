"""In-memory snapshot table.

Used by dry runs (so the ingestor path is exercised without credentials) and
by tests. Rows are type-checked against SNAPSHOT_SCHEMA the way the real
table would check them, so a bad row is rejected on its own while the rest
of the chunk is stored.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Any

from boxoffice_core.types import PerformanceSnapshot
from boxoffice_core.warehouse.base import (
    REQUIRED_COLUMNS,
    SNAPSHOT_SCHEMA,
    InsertResult,
    RowFailure,
    WarehouseClient,
)

logger = logging.getLogger(__name__)


def validate_row(row: Mapping[str, Any]) -> str | None:
    """Return a rejection reason for ``row``, or None if it fits the schema."""
    unknown = set(row) - set(SNAPSHOT_SCHEMA)
    if unknown:
        return f"no such field: {sorted(unknown)[0]}"
    for col in REQUIRED_COLUMNS:
        if row.get(col) in (None, ""):
            return f"missing required field: {col}"
    for col, kind in SNAPSHOT_SCHEMA.items():
        value = row.get(col)
        if value is None:
            continue
        if kind == "STRING" and not isinstance(value, str):
            return f"{col}: expected STRING, got {type(value).__name__}"
        if kind == "INT64" and (isinstance(value, bool) or not isinstance(value, int)):
            return f"{col}: expected INT64, got {value!r}"
        if kind == "FLOAT64" and (isinstance(value, bool) or not isinstance(value, (int, float))):
            return f"{col}: expected FLOAT64, got {value!r}"
        if kind == "DATE":
            try:
                date.fromisoformat(str(value))
            except ValueError:
                return f"{col}: invalid DATE {value!r}"
    return None


class InMemoryWarehouse(WarehouseClient):
    """Dict-backed snapshot table keyed by ``snapshot_id``.

    Attributes:
        rows: Stored rows keyed by snapshot_id.
        insert_calls: Size of every insert_rows call, in order.

    """

    def __init__(self, rows: Iterable[Mapping[str, Any]] = ()) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.insert_calls: list[int] = []
        for row in rows:
            self.rows[row["snapshot_id"]] = dict(row)

    def __len__(self) -> int:
        return len(self.rows)

    def existing_ids(self, snapshot_ids: Sequence[str]) -> set[str]:
        return {sid for sid in snapshot_ids if sid in self.rows}

    def delete_partitions(self, partitions: Iterable[tuple[str, str]]) -> int:
        wanted = set(partitions)
        doomed = [
            sid for sid, row in self.rows.items() if (row["fiscal_year"], row["source"]) in wanted
        ]
        for sid in doomed:
            del self.rows[sid]
        logger.debug("Deleted %d rows for %s", len(doomed), sorted(wanted))
        return len(doomed)

    def insert_rows(self, rows: Sequence[Mapping[str, Any]]) -> InsertResult:
        self.insert_calls.append(len(rows))
        result = InsertResult()
        for row in rows:
            reason = validate_row(row)
            if reason:
                result.failed.append(RowFailure(str(row.get("snapshot_id")), reason))
                continue
            self.rows[row["snapshot_id"]] = dict(row)
            result.inserted += 1
        return result

    def snapshots(self) -> list[PerformanceSnapshot]:
        """Stored rows as snapshots, ordered by (performance_code, snapshot_date)."""
        snaps = [PerformanceSnapshot.from_row(r) for r in self.rows.values()]
        return sorted(snaps, key=lambda s: (s.performance_code, s.snapshot_date))
