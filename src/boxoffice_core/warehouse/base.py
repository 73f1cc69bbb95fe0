"""Warehouse client interface for the performance snapshot table.

This module defines the abstract base class that warehouse clients implement
so the ingestor can write through the same three calls regardless of backend
(the REST client for production, the in-memory client for dry runs and tests).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

# Column -> warehouse type for the snapshot table
SNAPSHOT_SCHEMA: dict[str, str] = {
    "snapshot_id": "STRING",
    "performance_code": "STRING",
    "title": "STRING",
    "series": "STRING",
    "snapshot_date": "DATE",
    "performance_date": "DATE",
    "fiscal_year": "STRING",
    "fiscal_week": "INT64",
    "iso_week": "INT64",
    "snapshot_fiscal_week": "INT64",
    "snapshot_iso_week": "INT64",
    "single_tickets": "INT64",
    "single_revenue": "FLOAT64",
    "subscription_tickets": "INT64",
    "subscription_revenue": "FLOAT64",
    "total_tickets": "INT64",
    "total_revenue": "FLOAT64",
    "source": "STRING",
    "source_document": "STRING",
    "correction_note": "STRING",
}

REQUIRED_COLUMNS = ("snapshot_id", "performance_code", "snapshot_date", "performance_date")


@dataclass(frozen=True)
class RowFailure:
    """One row the warehouse rejected while the rest of its chunk committed."""

    snapshot_id: str
    reason: str


@dataclass
class InsertResult:
    inserted: int = 0
    failed: list[RowFailure] = field(default_factory=list)


class WarehouseClient(ABC):
    """Abstract write boundary of the snapshot table.

    Implementations raise WarehouseWriteFailure for whole-call failures
    (auth, connectivity, malformed request) and report per-row rejections
    in InsertResult.failed.
    """

    @abstractmethod
    def existing_ids(self, snapshot_ids: Sequence[str]) -> set[str]:
        """Return the subset of ``snapshot_ids`` already stored."""
        pass

    @abstractmethod
    def delete_partitions(self, partitions: Iterable[tuple[str, str]]) -> int:
        """Delete rows matching any (fiscal_year, source) pair.

        Returns:
            Number of rows deleted (-1 if the backend does not report it).
        """
        pass

    @abstractmethod
    def insert_rows(self, rows: Sequence[Mapping[str, Any]]) -> InsertResult:
        """Insert rows keyed by ``snapshot_id``; report per-row failures."""
        pass
