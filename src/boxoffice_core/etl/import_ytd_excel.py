"""Import weekly sales report spreadsheets as performance snapshots.

Each ``YYYY.MM.DD ... .xlsx`` export is one snapshot date; every performance
row in it becomes one snapshot. Files are usually kept in ``FYxx/`` folders,
which also tells the parser which season yearless dates ("Nov. 1-3") fall in.

Usage:
    boxoffice-import-excel data/a_raw/excel --dry-run
    boxoffice-import-excel data/a_raw/excel/FY25 --year FY25 --clear
    python -m boxoffice_core.etl.import_ytd_excel data/a_raw/excel --workers 4 -v

Environment (required unless --dry-run):
    BQ_PROJECT, BQ_ACCESS_TOKEN; optional BQ_DATASET, BQ_TABLE, BQ_TIMEOUT, BQ_RETRIES
"""

from __future__ import annotations

import sys
from collections.abc import Sequence

from boxoffice_core.etl.cli import EXIT_INTERRUPTED, run_cli
from boxoffice_core.types import SourceFormat


def main(argv: Sequence[str] | None = None) -> int:
    return run_cli(
        argv,
        SourceFormat.XLSX_WEEKLY,
        prog="boxoffice-import-excel",
        description="Import weekly sales report spreadsheets into the snapshot table",
    )


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(EXIT_INTERRUPTED)
