"""Batch driver: documents in, snapshots written.

Runs every stage in order, each returning its output before the next begins:

    parse (per document, optionally in worker processes)
      -> merge (document order)
      -> spike correction (whole batch)
      -> QA
      -> ingest (unless dry run)

A bad document never aborts the batch: its error is recorded on its
DocumentResult and the rest continue. Warehouse failures (auth,
connectivity) propagate as WarehouseWriteFailure.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from boxoffice_core.etl.c_load.ingest import IngestReport, SnapshotIngestor, WriteMode
from boxoffice_core.etl.c_load.spike_correction import SpikeCorrection, correct_spikes
from boxoffice_core.etl.cache import ParseCache
from boxoffice_core.etl.raw.tokenizer import tokenize_pdf, tokenize_workbook
from boxoffice_core.etl.staging.layout import detect_layout
from boxoffice_core.etl.staging.normalize import (
    NormalizationContext,
    fiscal_year_for,
    normalize_fiscal_year,
    normalize_records,
)
from boxoffice_core.etl.staging.pdf_extractor import extract_pdf_records
from boxoffice_core.etl.staging.xlsx_extractor import extract_sheet_records
from boxoffice_core.etl.utils import (
    fiscal_year_hint_from_path,
    format_duration,
    is_skipped_document,
    snapshot_date_from_path,
)
from boxoffice_core.exceptions import DateUnresolvable, ETLError
from boxoffice_core.qa import SnapshotQAResult, run_snapshot_qa
from boxoffice_core.types import DroppedRecord, PerformanceSnapshot, SourceFormat
from boxoffice_core.warehouse.base import WarehouseClient

logger = logging.getLogger(__name__)

SUFFIXES = {
    SourceFormat.XLSX_WEEKLY: (".xlsx",),
    SourceFormat.PDF_SALES_SUMMARY: (".pdf",),
}


@dataclass
class DocumentResult:
    """Outcome of parsing one document.

    Attributes:
        document: File name.
        source_format: Format tag of the document.
        snapshot_date: Report date the document describes (None if unknown).
        fiscal_year: Fiscal-year context used for yearless dates.
        snapshots: Normalized snapshots, in row/token order.
        dropped: Rows/token runs excluded, with reasons.
        layout_issues: Fields the layout detector could not resolve.
        error: Why the whole document failed, if it did.
        skipped: True for documents on the known-bad skip list.
        from_cache: True if the result came from the parse cache.

    """

    document: str
    source_format: SourceFormat
    snapshot_date: date | None = None
    fiscal_year: str | None = None
    snapshots: list[PerformanceSnapshot] = field(default_factory=list)
    dropped: list[DroppedRecord] = field(default_factory=list)
    layout_issues: list[str] = field(default_factory=list)
    error: str | None = None
    skipped: bool = False
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe form for the parse cache."""
        return {
            "document": self.document,
            "source_format": self.source_format.value,
            "snapshot_date": self.snapshot_date.isoformat() if self.snapshot_date else None,
            "fiscal_year": self.fiscal_year,
            "snapshots": [s.to_row() for s in self.snapshots],
            "dropped": [asdict(d) for d in self.dropped],
            "layout_issues": list(self.layout_issues),
        }

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> DocumentResult:
        return cls(
            document=data["document"],
            source_format=SourceFormat(data["source_format"]),
            snapshot_date=date.fromisoformat(data["snapshot_date"]) if data["snapshot_date"] else None,
            fiscal_year=data["fiscal_year"],
            snapshots=[PerformanceSnapshot.from_row(r) for r in data["snapshots"]],
            dropped=[DroppedRecord(**d) for d in data["dropped"]],
            layout_issues=list(data.get("layout_issues", [])),
            from_cache=True,
        )


@dataclass
class BatchResult:
    """Everything one run produced, for the CLI summary and the dry-run report."""

    source_format: SourceFormat
    documents: list[DocumentResult]
    snapshots: list[PerformanceSnapshot]
    corrections: list[SpikeCorrection]
    qa: SnapshotQAResult | None
    ingest: IngestReport | None = None
    fiscal_year: str | None = None
    elapsed: float = 0.0

    @property
    def parsed(self) -> list[DocumentResult]:
        return [d for d in self.documents if d.ok]

    @property
    def failed(self) -> list[DocumentResult]:
        return [d for d in self.documents if d.error is not None]

    @property
    def skipped(self) -> list[DocumentResult]:
        return [d for d in self.documents if d.skipped]

    @property
    def dropped(self) -> list[DroppedRecord]:
        return [r for d in self.documents for r in d.dropped]


def _parse_workbook(path: Path, fiscal_year: str | None) -> DocumentResult:
    result = DocumentResult(document=path.name, source_format=SourceFormat.XLSX_WEEKLY)
    snapshot_date = snapshot_date_from_path(path)
    if snapshot_date is None:
        raise DateUnresolvable(f"No snapshot date in file name {path.name!r}")
    context_fy = fiscal_year or fiscal_year_hint_from_path(path) or fiscal_year_for(snapshot_date)
    result.snapshot_date = snapshot_date
    result.fiscal_year = normalize_fiscal_year(context_fy)

    grid = tokenize_workbook(path)
    layout = detect_layout(grid)
    result.layout_issues = list(layout.issues)
    extraction = extract_sheet_records(grid, layout, path.name)
    context = NormalizationContext(snapshot_date, result.fiscal_year, path.name)
    result.snapshots, dropped = normalize_records(extraction.records, context)
    result.dropped = extraction.dropped + dropped
    return result


def _parse_pdf(path: Path) -> DocumentResult:
    result = DocumentResult(document=path.name, source_format=SourceFormat.PDF_SALES_SUMMARY)
    tokens = tokenize_pdf(path)
    extraction = extract_pdf_records(tokens, path.name)
    snapshot_date = extraction.report_date or snapshot_date_from_path(path)
    if snapshot_date is None:
        raise DateUnresolvable(f"No run date in {path.name!r} and none in its name")
    result.snapshot_date = snapshot_date
    result.fiscal_year = fiscal_year_for(snapshot_date)
    context = NormalizationContext(snapshot_date, None, path.name)
    result.snapshots, dropped = normalize_records(extraction.records, context)
    result.dropped = extraction.dropped + dropped
    return result


def parse_document(
    path: Path, source_format: SourceFormat, fiscal_year: str | None = None
) -> DocumentResult:
    """Parse one document into snapshots; never raises for document-level problems.

    Module-level so it can run in a worker process.
    """
    path = Path(path)
    started = time.perf_counter()
    try:
        if source_format is SourceFormat.XLSX_WEEKLY:
            result = _parse_workbook(path, fiscal_year)
        else:
            result = _parse_pdf(path)
    except ETLError as e:
        logger.error("Failed to process %s: %s: %s", path.name, type(e).__name__, e)
        return DocumentResult(
            document=path.name, source_format=source_format, error=f"{type(e).__name__}: {e}"
        )
    logger.info(
        "%s -> %d snapshots, %d dropped (%s)",
        path.name,
        len(result.snapshots),
        len(result.dropped),
        format_duration(time.perf_counter() - started),
    )
    return result


def _cache_key(cache: ParseCache, path: Path, fmt: SourceFormat, fiscal_year: str | None) -> str:
    return cache.key_for(
        path,
        fmt.value,
        path.name,
        fiscal_year or "",
        fiscal_year_hint_from_path(path) or "",
    )


def parse_documents(
    paths: Sequence[Path],
    source_format: SourceFormat,
    *,
    fiscal_year: str | None = None,
    workers: int = 1,
    cache: ParseCache | None = None,
) -> list[DocumentResult]:
    """Parse documents independently; results come back in input order.

    Args:
        paths: Documents to parse.
        source_format: Format of every document in ``paths``.
        fiscal_year: FY restriction/context (spreadsheets use it for yearless dates).
        workers: Worker processes; 1 parses in this process.
        cache: Parse cache consulted before parsing and filled after.

    """
    results: list[DocumentResult | None] = [None] * len(paths)
    todo: list[int] = []

    for i, path in enumerate(paths):
        if is_skipped_document(path):
            logger.info("%s -> SKIPPED (known data quality issue)", path.name)
            results[i] = DocumentResult(path.name, source_format, skipped=True)
            continue
        hint = fiscal_year_hint_from_path(path)
        if (
            fiscal_year
            and source_format is SourceFormat.XLSX_WEEKLY
            and hint
            and normalize_fiscal_year(hint) != fiscal_year
        ):
            logger.debug("%s -> skipped (belongs to %s, not %s)", path.name, hint, fiscal_year)
            results[i] = DocumentResult(path.name, source_format, skipped=True)
            continue
        if cache is not None:
            key = _cache_key(cache, path, source_format, fiscal_year)
            payload = cache.get(key)
            if payload is not None:
                try:
                    results[i] = DocumentResult.from_payload(payload)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning("Discarding malformed cache entry for %s: %r", path.name, e)
                    cache.invalidate(key)
                else:
                    logger.info(
                        "%s -> %d snapshots (cached)", path.name, len(results[i].snapshots)
                    )
                    continue
        todo.append(i)

    if workers > 1 and len(todo) > 1:
        logger.info("Parsing %d documents with %d workers", len(todo), workers)
        with ProcessPoolExecutor(max_workers=workers) as pool:
            future_to_idx = {
                pool.submit(parse_document, paths[i], source_format, fiscal_year): i for i in todo
            }
            for future in as_completed(future_to_idx):
                results[future_to_idx[future]] = future.result()
    else:
        for i in todo:
            results[i] = parse_document(paths[i], source_format, fiscal_year)

    if cache is not None:
        for i in todo:
            res = results[i]
            if res is not None and res.ok:
                key = _cache_key(cache, paths[i], source_format, fiscal_year)
                cache.put(key, res.to_payload(), document=res.document)

    return [r for r in results if r is not None]


def run_batch(
    paths: Sequence[Path],
    source_format: SourceFormat,
    *,
    client: WarehouseClient | None = None,
    mode: WriteMode = WriteMode.APPEND,
    fiscal_year: str | None = None,
    workers: int = 1,
    cache: ParseCache | None = None,
    batch_size: int = 500,
) -> BatchResult:
    """Parse, correct, check and (if a client is given) ingest a batch.

    Args:
        paths: Documents, all of ``source_format``.
        source_format: Format tag of the batch.
        client: Warehouse client; None for a dry run (nothing is written).
        mode: APPEND (skip existing ids) or CLEAR (replace the batch's seasons).
        fiscal_year: Restrict the run to one FY label (e.g. "FY25").
        workers: Parser worker processes.
        cache: Parse cache owned by the caller.
        batch_size: Rows per warehouse call.

    Returns:
        BatchResult with per-document outcomes, corrected snapshots, QA and
        the ingest report (None on dry runs).

    Raises:
        ConfigError: If ``fiscal_year`` is not a valid FY label.
        WarehouseWriteFailure: If the warehouse rejects the write as a whole.

    """
    started = time.perf_counter()
    fy = normalize_fiscal_year(fiscal_year) if fiscal_year else None

    documents = parse_documents(
        paths, source_format, fiscal_year=fy, workers=workers, cache=cache
    )
    merged = [s for d in documents for s in d.snapshots]
    if fy:
        kept = [s for s in merged if s.fiscal_year == fy]
        if len(kept) != len(merged):
            logger.info("Keeping %d of %d snapshots in %s", len(kept), len(merged), fy)
        merged = kept

    corrected = correct_spikes(merged)
    qa = run_snapshot_qa(corrected.snapshots) if corrected.snapshots else None

    ingest_report = None
    if client is not None:
        ingestor = SnapshotIngestor(client, batch_size=batch_size)
        ingest_report = ingestor.ingest(corrected.snapshots, mode)

    return BatchResult(
        source_format=source_format,
        documents=documents,
        snapshots=corrected.snapshots,
        corrections=corrected.corrections,
        qa=qa,
        ingest=ingest_report,
        fiscal_year=fy,
        elapsed=time.perf_counter() - started,
    )
