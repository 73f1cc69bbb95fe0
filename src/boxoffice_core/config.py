"""Unified configuration for Box Office Core ETL.

This module provides the filesystem layout (DataPaths) and the warehouse
connection settings (WarehouseSettings) used across the pipeline.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from boxoffice_core.exceptions import ConfigError

DEFAULT_DATASET = "symphony_dashboard"
DEFAULT_TABLE = "ytd_performance_snapshots"


@dataclass
class DataPaths:
    """All filesystem paths used by the import pipeline.

    Attributes:
        data_root: Root directory for pipeline working data.

    Directory Structure:
        data_root/
        ├── a_raw/               # source documents as delivered
        │   ├── excel/           # weekly sales report exports (FYxx/ subfolders)
        │   └── pdf/             # vendor performance sales summaries
        ├── _cache/              # parsed-document cache (one JSON per document)
        └── reports/             # dry-run diagnostics reports

    """

    data_root: Path

    @classmethod
    def from_root(cls, data_root: str | Path) -> DataPaths:
        """Create DataPaths from a root directory.

        Args:
            data_root: Root directory for pipeline data.

        Returns:
            DataPaths instance.

        Examples:
            >>> paths = DataPaths.from_root("data")
            >>> paths.cache_dir
            PosixPath('data/_cache')

        """
        if isinstance(data_root, str):
            data_root = Path(data_root)
        return cls(data_root=data_root)

    @property
    def raw_excel(self) -> Path:
        """Weekly sales report spreadsheets."""
        return self.data_root / "a_raw" / "excel"

    @property
    def raw_pdf(self) -> Path:
        """Vendor PDF sales summaries."""
        return self.data_root / "a_raw" / "pdf"

    @property
    def cache_dir(self) -> Path:
        """Parsed-document cache."""
        return self.data_root / "_cache"

    @property
    def reports_dir(self) -> Path:
        """Dry-run diagnostics reports."""
        return self.data_root / "reports"

    def ensure_dirs(self) -> None:
        """Create all directories in the data structure."""
        for path in [self.raw_excel, self.raw_pdf, self.cache_dir, self.reports_dir]:
            path.mkdir(parents=True, exist_ok=True)


def _env(name: str) -> str | None:
    value = os.environ.get(name)
    if value is None:
        return None
    # Strip quotes left over from .env files
    value = value.strip().strip('"').strip("'")
    return value or None


@dataclass(frozen=True)
class WarehouseSettings:
    """Connection settings for the analytic warehouse snapshot table.

    Attributes:
        project: Warehouse project id.
        dataset: Dataset holding the snapshot table.
        table: Snapshot table name.
        access_token: OAuth bearer token used for REST calls.
        timeout: Per-request timeout in seconds.
        retries: Bounded retry count for transient failures.
        base_url: REST API root.

    """

    project: str
    dataset: str
    table: str
    access_token: str
    timeout: float = 60.0
    retries: int = 3
    base_url: str = "https://bigquery.googleapis.com/bigquery/v2"

    @classmethod
    def from_env(cls) -> WarehouseSettings:
        """Build settings from environment variables.

        Environment:
            BQ_PROJECT: Project id (required).
            BQ_ACCESS_TOKEN: Bearer token (required).
            BQ_DATASET: Dataset (default: symphony_dashboard).
            BQ_TABLE: Table (default: ytd_performance_snapshots).
            BQ_TIMEOUT: Seconds per request (default: 60).
            BQ_RETRIES: Retry attempts (default: 3).

        Raises:
            ConfigError: If a required variable is missing or a number is invalid.

        """
        project = _env("BQ_PROJECT")
        token = _env("BQ_ACCESS_TOKEN")
        missing = [n for n, v in (("BQ_PROJECT", project), ("BQ_ACCESS_TOKEN", token)) if not v]
        if missing:
            raise ConfigError(f"Missing warehouse credentials: {', '.join(missing)}")

        try:
            timeout = float(_env("BQ_TIMEOUT") or "60")
            retries = int(_env("BQ_RETRIES") or "3")
        except ValueError as e:
            raise ConfigError(f"Invalid BQ_TIMEOUT/BQ_RETRIES value: {e}") from e

        return cls(
            project=project,  # type: ignore[arg-type]
            dataset=_env("BQ_DATASET") or DEFAULT_DATASET,
            table=_env("BQ_TABLE") or DEFAULT_TABLE,
            access_token=token,  # type: ignore[arg-type]
            timeout=timeout,
            retries=retries,
        )
