"""Import vendor "Performance Sales Summary" PDFs as performance snapshots.

The snapshot date is the report's own "Run by ... on M/D/YYYY" date; when the
footer is missing, the file name (``..._YYYY-MM-DD.pdf``) or a ``YYYY/MM/``
folder pair is used instead.

Usage:
    boxoffice-import-pdf data/a_raw/pdf --dry-run --report-path pdf_dry_run.json
    python -m boxoffice_core.etl.import_pdf_reports data/a_raw/pdf/2025/10 -v

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
        SourceFormat.PDF_SALES_SUMMARY,
        prog="boxoffice-import-pdf",
        description="Import vendor PDF sales summaries into the snapshot table",
    )


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(EXIT_INTERRUPTED)
