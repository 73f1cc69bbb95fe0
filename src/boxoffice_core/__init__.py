"""Box Office Core ETL - ticket-sales report ingestion.

This package turns periodic ticket-sales report documents into a canonical
time series of performance snapshots:

- **Raw (bronze)**: weekly ``.xlsx`` exports and vendor PDF sales summaries
- **Staging (silver)**: one ``PerformanceSnapshot`` per (performance, report date)
- **Marts (gold)**: season-to-date weekly totals

Module Structure:
    boxoffice_core.etl.raw: Document tokenizer (spreadsheets, PDFs)
    boxoffice_core.etl.staging: Layout detection, extraction, normalization
    boxoffice_core.etl.c_load: Spike correction and idempotent ingest
    boxoffice_core.etl.marts: Weekly totals
    boxoffice_core.etl.pipeline: Batch driver
    boxoffice_core.warehouse: Snapshot table clients
    boxoffice_core.qa: Snapshot data quality checks

Quick Start:
    >>> from pathlib import Path
    >>> from boxoffice_core.etl.pipeline import run_batch
    >>> from boxoffice_core.types import SourceFormat
    >>> from boxoffice_core.warehouse import InMemoryWarehouse
    >>>
    >>> table = InMemoryWarehouse()
    >>> result = run_batch(
    ...     sorted(Path("data/a_raw/excel/FY25").glob("*.xlsx")),
    ...     SourceFormat.XLSX_WEEKLY,
    ...     client=table,
    ... )
    >>> print(result.ingest.inserted)

Grain Reference:
    performance_snapshot: performance_code x snapshot_date x source
    weekly_totals: fiscal_year x snapshot_date
"""

__version__ = "0.1.0"

from boxoffice_core.config import DataPaths, WarehouseSettings
from boxoffice_core.exceptions import (
    BoxOfficeError,
    ConfigError,
    DataQualityError,
    ETLError,
    WarehouseWriteFailure,
)

__all__ = [
    "BoxOfficeError",
    "ConfigError",
    "DataPaths",
    "DataQualityError",
    "ETLError",
    "WarehouseSettings",
    "WarehouseWriteFailure",
    "__version__",
]
