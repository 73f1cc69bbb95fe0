"""Shared command-line front end for the two import tools.

``boxoffice-import-excel`` and ``boxoffice-import-pdf`` take the same flags
and differ only in the document format they read; both call ``run_cli``.

Exit codes:
    0    success (per-row warehouse rejections are reported, not fatal)
    1    fatal: missing credentials, warehouse failure, nothing parsable
    2    bad path or arguments
    130  interrupted
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from boxoffice_core.config import DataPaths
from boxoffice_core.etl.c_load.ingest import WriteMode
from boxoffice_core.etl.cache import ParseCache
from boxoffice_core.etl.pipeline import SUFFIXES, BatchResult, run_batch
from boxoffice_core.etl.report import build_report, write_report
from boxoffice_core.etl.staging.normalize import normalize_fiscal_year
from boxoffice_core.etl.utils import format_duration, iter_documents, slugify
from boxoffice_core.exceptions import ConfigError, WarehouseWriteFailure
from boxoffice_core.types import SourceFormat
from boxoffice_core.warehouse.base import WarehouseClient
from boxoffice_core.warehouse.bigquery_rest import BigQueryRestWarehouse
from boxoffice_core.warehouse.memory import InMemoryWarehouse

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

MAX_PRINTED_ERRORS = 20


def _build_parser(prog: str, description: str) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog=prog, description=description)
    p.add_argument("path", type=Path, help="Document or directory (searched recursively)")
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and report without writing to the warehouse",
    )
    p.add_argument(
        "--clear",
        action="store_true",
        help="Delete existing rows for the batch's fiscal years (this source only) before insert",
    )
    p.add_argument("--year", metavar="FYxx", help="Only process this fiscal year (e.g. FY25)")
    p.add_argument("--workers", type=int, default=1, help="Parser processes (default: 1)")
    p.add_argument("--report-path", type=Path, help="Where to write the JSON diagnostics report")
    p.add_argument("--data-root", type=Path, default=Path("data"), help="Data root (default: data)")
    p.add_argument("--no-cache", action="store_true", help="Ignore and do not fill the parse cache")
    p.add_argument("--batch-size", type=int, default=500, help="Rows per warehouse call")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def _print_summary(result: BatchResult, dry_run: bool) -> None:
    print(f"\nDocuments: {len(result.documents)} "
          f"({len(result.parsed)} parsed, {len(result.failed)} failed, "
          f"{len(result.skipped)} skipped)")
    print(f"Snapshots: {len(result.snapshots)}  "
          f"Dropped records: {len(result.dropped)}  "
          f"Spike corrections: {len(result.corrections)}")

    series_counts: dict[str, int] = {}
    dates_by_fy: dict[str, set[str]] = {}
    for s in result.snapshots:
        series_counts[s.series] = series_counts.get(s.series, 0) + 1
        dates_by_fy.setdefault(s.fiscal_year, set()).add(s.snapshot_date.isoformat())
    if series_counts:
        print("\nSeries distribution:")
        for name, n in sorted(series_counts.items(), key=lambda kv: -kv[1]):
            print(f"  {name}: {n}")
        print("\nSnapshot dates per fiscal year:")
        for fy in sorted(dates_by_fy):
            print(f"  {fy}: {len(dates_by_fy[fy])} unique dates")

    errors = [f"{d.document}: {d.error}" for d in result.failed]
    errors += [f"{r.document}@{r.location}: {r.reason}" for r in result.dropped]
    if errors:
        print(f"\nErrors ({len(errors)}):")
        for line in errors[:MAX_PRINTED_ERRORS]:
            print(f"  {line}")
        if len(errors) > MAX_PRINTED_ERRORS:
            print(f"  ... and {len(errors) - MAX_PRINTED_ERRORS} more")

    if result.ingest is not None:
        r = result.ingest
        label = "Would insert" if dry_run else "Inserted"
        print(f"\n{label}: {r.inserted}  Skipped existing: {r.skipped_existing}  "
              f"Failed rows: {len(r.failed_rows)}")
        for failure in r.failed_rows[:MAX_PRINTED_ERRORS]:
            print(f"  {failure.snapshot_id}: {failure.reason}")
    print(f"\nDone in {format_duration(result.elapsed)}")


def run_cli(
    argv: Sequence[str] | None, source_format: SourceFormat, prog: str, description: str
) -> int:
    """Parse ``argv`` and run one import. Returns the process exit code."""
    args = _build_parser(prog, description).parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        return _run(args, source_format)
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED


def _run(args: argparse.Namespace, source_format: SourceFormat) -> int:
    if args.workers < 1 or args.batch_size < 1:
        print("--workers and --batch-size must be >= 1", file=sys.stderr)
        return EXIT_USAGE
    try:
        fiscal_year = normalize_fiscal_year(args.year) if args.year else None
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        documents = iter_documents(args.path, SUFFIXES[source_format])
    except FileNotFoundError:
        print(f"Error: path not found: {args.path}", file=sys.stderr)
        return EXIT_USAGE
    if not documents:
        print(f"Error: no {'/'.join(SUFFIXES[source_format])} documents under {args.path}",
              file=sys.stderr)
        return EXIT_FATAL

    client: WarehouseClient
    if args.dry_run:
        client = InMemoryWarehouse()
    else:
        try:
            client = BigQueryRestWarehouse.from_env()
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_FATAL

    paths = DataPaths.from_root(args.data_root)
    cache = None if args.no_cache else ParseCache(paths.cache_dir)
    mode = WriteMode.CLEAR if args.clear else WriteMode.APPEND

    logger.info(
        "Importing %d %s document(s) from %s%s",
        len(documents),
        source_format.value,
        args.path,
        " (dry run)" if args.dry_run else "",
    )
    try:
        result = run_batch(
            documents,
            source_format,
            client=client,
            mode=mode,
            fiscal_year=fiscal_year,
            workers=args.workers,
            cache=cache,
            batch_size=args.batch_size,
        )
    except WarehouseWriteFailure as e:
        logger.error("Warehouse write failed: %s", e)
        return EXIT_FATAL

    _print_summary(result, args.dry_run)

    if args.dry_run or args.report_path:
        report_path = args.report_path or (
            paths.reports_dir
            / f"dry_run_{slugify(source_format.value)}_{datetime.now():%Y%m%d_%H%M%S}.json"
        )
        write_report(build_report(result), report_path)
        print(f"Report: {report_path}")

    if not result.parsed:
        logger.error("No document could be parsed")
        return EXIT_FATAL
    return EXIT_OK
