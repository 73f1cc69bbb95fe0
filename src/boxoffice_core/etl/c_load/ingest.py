"""Load layer: write performance snapshots to the warehouse idempotently.

Two write modes, chosen by the caller:

- ``WriteMode.APPEND``: look up which snapshot_ids already exist and insert
  only the new ones. Running the same batch twice stores each snapshot once.
- ``WriteMode.CLEAR``: delete every row of the (fiscal_year, source) pairs
  present in the batch, then insert the batch. Used to rebuild a season from
  a full re-run without touching the other source's rows.

In both modes, duplicate snapshot_ids inside the batch are collapsed (last
occurrence wins) and inserts are chunked. Per-row rejections are collected in
the IngestReport; whole-call failures raise WarehouseWriteFailure.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from boxoffice_core.etl.utils import iter_batches
from boxoffice_core.types import PerformanceSnapshot
from boxoffice_core.warehouse.base import RowFailure, WarehouseClient

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


class WriteMode(str, Enum):
    APPEND = "append"
    CLEAR = "clear"


@dataclass
class IngestReport:
    """Outcome of one ``SnapshotIngestor.ingest`` call.

    Attributes:
        mode: Write mode used.
        submitted: Snapshots handed to the ingestor.
        duplicates_collapsed: In-batch duplicate snapshot_ids removed.
        skipped_existing: Snapshots already stored (APPEND only).
        deleted: Rows deleted before insert (CLEAR only; -1 if unknown).
        inserted: Rows the warehouse accepted.
        failed_rows: Rows the warehouse rejected, with reasons.
        batches: Insert calls made.

    """

    mode: WriteMode
    submitted: int = 0
    duplicates_collapsed: int = 0
    skipped_existing: int = 0
    deleted: int = 0
    inserted: int = 0
    failed_rows: list[RowFailure] = field(default_factory=list)
    batches: int = 0

    @property
    def ok(self) -> bool:
        return not self.failed_rows

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "submitted": self.submitted,
            "duplicates_collapsed": self.duplicates_collapsed,
            "skipped_existing": self.skipped_existing,
            "deleted": self.deleted,
            "inserted": self.inserted,
            "failed_rows": [{"snapshot_id": f.snapshot_id, "reason": f.reason} for f in self.failed_rows],
            "batches": self.batches,
        }


def collapse_duplicates(
    snapshots: Iterable[PerformanceSnapshot],
) -> tuple[list[PerformanceSnapshot], int]:
    """Keep the last snapshot per snapshot_id; return (unique, removed count)."""
    unique: dict[str, PerformanceSnapshot] = {}
    removed = 0
    for snap in snapshots:
        if snap.snapshot_id in unique:
            removed += 1
            logger.debug("Duplicate snapshot_id %s in batch; keeping the later one", snap.snapshot_id)
        unique[snap.snapshot_id] = snap
    return list(unique.values()), removed


class SnapshotIngestor:
    """Idempotent writer of PerformanceSnapshots.

    Args:
        client: Warehouse client to write through.
        batch_size: Maximum rows per lookup/insert call.

    Examples:
        >>> from boxoffice_core.warehouse import InMemoryWarehouse
        >>> ingestor = SnapshotIngestor(InMemoryWarehouse(), batch_size=500)
        >>> report = ingestor.ingest([], WriteMode.APPEND)
        >>> report.inserted
        0

    """

    def __init__(self, client: WarehouseClient, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.client = client
        self.batch_size = batch_size

    def ingest(
        self, snapshots: Iterable[PerformanceSnapshot], mode: WriteMode = WriteMode.APPEND
    ) -> IngestReport:
        """Write ``snapshots`` in the given mode.

        Raises:
            WarehouseWriteFailure: On auth/connectivity/request failures.

        """
        incoming = list(snapshots)
        report = IngestReport(mode=mode, submitted=len(incoming))
        unique, report.duplicates_collapsed = collapse_duplicates(incoming)
        if report.duplicates_collapsed:
            logger.info("Collapsed %d duplicate snapshot(s) in batch", report.duplicates_collapsed)
        if not unique:
            logger.info("No snapshots to write")
            return report

        if mode is WriteMode.CLEAR:
            partitions = sorted({(s.fiscal_year, s.source) for s in unique})
            logger.info("Clearing existing rows for %s", partitions)
            report.deleted = self.client.delete_partitions(partitions)
            pending = unique
        else:
            existing: set[str] = set()
            for chunk in iter_batches([s.snapshot_id for s in unique], self.batch_size):
                existing |= self.client.existing_ids(chunk)
            pending = [s for s in unique if s.snapshot_id not in existing]
            report.skipped_existing = len(unique) - len(pending)
            if report.skipped_existing:
                logger.info("Skipping %d existing snapshot(s)", report.skipped_existing)

        total_batches = (len(pending) + self.batch_size - 1) // self.batch_size
        for n, chunk in enumerate(iter_batches(pending, self.batch_size), start=1):
            result = self.client.insert_rows([s.to_row() for s in chunk])
            report.batches += 1
            report.inserted += result.inserted
            report.failed_rows.extend(result.failed)
            for failure in result.failed:
                logger.warning("Row rejected %s: %s", failure.snapshot_id, failure.reason)
            logger.info(
                "Inserted batch %d/%d (%d rows, %d rejected)",
                n,
                total_batches,
                result.inserted,
                len(result.failed),
            )

        logger.info(
            "Ingest %s: %d inserted, %d skipped, %d failed",
            mode.value,
            report.inserted,
            report.skipped_existing,
            len(report.failed_rows),
        )
        return report
