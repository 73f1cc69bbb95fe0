"""Tests for PDF sales summary tokenizing and token-run extraction."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import fitz  # PyMuPDF
import pytest

from boxoffice_core.etl.raw.tokenizer import tokenize_pdf
from boxoffice_core.etl.staging.pdf_extractor import (
    extract_pdf_records,
    extract_report_date,
    is_performance_code,
    split_line_tokens,
)
from boxoffice_core.exceptions import DocumentUnreadable, LayoutUnresolved
from boxoffice_core.types import RawToken, SourceFormat


def tokens(*texts: str) -> list[RawToken]:
    return [RawToken(text=t, page=1) for t in texts]


# code, date, time, budget %, fixed, non-fixed, single, subtotal, total, available, capacity
PLAIN_LINE = (
    "251010E", "10/10/2025", "7:30 PM", "85.0%",
    "120", "4,800.00", "30", "1,050.00", "200", "9,500.00",
    "15,350.00", "15,350.00", "1,150", "22.5%",
)  # fmt: skip

# Same shape plus a reserved count and reserved revenue before the total
RESERVED_LINE = (
    "251011M", "10/11/2025", "2:00 PM", "40.0%",
    "10", "400.00", "5", "150.00", "60", "2,400.00",
    "2,950.00", "4", "120.00", "3,070.00", "1,421", "5.3%",
)  # fmt: skip


class TestExtractPdfRecords:
    """Performance lines found by token shape."""

    def test_plain_line(self) -> None:
        """Channels are read in order and subscription = fixed + non-fixed."""
        result = extract_pdf_records(tokens(*PLAIN_LINE), "summary.pdf")

        assert len(result.records) == 1
        rec = result.records[0]
        assert rec.vendor_code == "251010E"
        assert rec.title == "251010E"
        assert rec.date_raw == "10/10/2025 7:30 PM"
        assert rec.single_tickets == 200
        assert rec.single_revenue == 9500.0
        assert rec.subscription_tickets == 150
        assert rec.subscription_revenue == 5850.0
        assert rec.total_revenue == 15350.0
        assert rec.total_tickets is None
        assert rec.source_format is SourceFormat.PDF_SALES_SUMMARY
        assert rec.channel_detail["available_seats"] == 1150
        assert rec.channel_detail["capacity_percent"] == 22.5
        assert rec.channel_detail["reserved_tickets"] == 0

    def test_reserved_block_detected_by_token_class(self) -> None:
        """A count after the subtotal opens the reserved block."""
        result = extract_pdf_records(tokens(*RESERVED_LINE), "summary.pdf")

        rec = result.records[0]
        assert rec.channel_detail["reserved_tickets"] == 4
        assert rec.channel_detail["reserved_revenue"] == 120.0
        assert rec.total_revenue == 3070.0
        assert rec.channel_detail["available_seats"] == 1421

    def test_consecutive_lines(self) -> None:
        """Parsing resumes right after the previous line."""
        result = extract_pdf_records(tokens(*PLAIN_LINE, *RESERVED_LINE), "summary.pdf")
        assert [r.vendor_code for r in result.records] == ["251010E", "251011M"]
        assert result.dropped == []

    def test_total_lines_are_ignored(self) -> None:
        """A code preceded by a 'Total' token is a summary line."""
        toks = tokens("Performance Total", *PLAIN_LINE, *RESERVED_LINE)
        assert not is_performance_code(toks, 1)
        result = extract_pdf_records(toks, "summary.pdf")
        assert [r.vendor_code for r in result.records] == ["251011M"]

    def test_malformed_line_is_dropped(self) -> None:
        """A wrong token shape drops the line and scanning continues."""
        broken = list(PLAIN_LINE)
        broken[3] = "n/a"
        result = extract_pdf_records(tokens(*broken, *RESERVED_LINE), "summary.pdf")

        assert [r.vendor_code for r in result.records] == ["251011M"]
        assert len(result.dropped) == 1
        assert "251010E" in result.dropped[0].reason
        assert "budget %" in result.dropped[0].reason

    def test_truncated_line_is_dropped(self) -> None:
        """A line cut off before its required values is dropped."""
        result = extract_pdf_records(tokens(*PLAIN_LINE[:6]), "summary.pdf")
        assert result.records == []
        assert len(result.dropped) == 1

    def test_line_drawn_as_one_span(self) -> None:
        """A whole performance line in one text run is split into its values."""
        result = extract_pdf_records(tokens(" ".join(PLAIN_LINE)), "summary.pdf")

        assert [r.vendor_code for r in result.records] == ["251010E"]
        rec = result.records[0]
        assert rec.date_raw == "10/10/2025 7:30 PM"
        assert rec.total_revenue == 15350.0
        assert rec.channel_detail["capacity_percent"] == 22.5

    def test_code_glued_to_date(self) -> None:
        """'251011M10/11/2025 ...' still starts a performance line."""
        glued = RESERVED_LINE[0] + " ".join(RESERVED_LINE[1:])
        result = extract_pdf_records(tokens(*PLAIN_LINE, glued), "summary.pdf")
        assert [r.vendor_code for r in result.records] == ["251010E", "251011M"]
        assert result.records[1].channel_detail["reserved_tickets"] == 4

    def test_footer_and_titles_are_not_split(self) -> None:
        toks = split_line_tokens(tokens("Run by jsmith on 10/6/2025 8:01:12 AM", "$ 1.00"))
        assert [t.text for t in toks] == ["Run by jsmith on 10/6/2025 8:01:12 AM", "$ 1.00"]

    def test_summary_without_performance_lines(self) -> None:
        """A summary the parser finds nothing in is an error, not an empty report."""
        with pytest.raises(LayoutUnresolved):
            extract_pdf_records(
                tokens("Performance Sales Summary", "Run by jsmith on 10/6/2025 8:01:12 AM"),
                "summary.pdf",
            )


def test_report_date_from_footer() -> None:
    """The run date comes from the 'Run by ... on M/D/YYYY' footer."""
    toks = tokens("Performance Sales Summary", "Run by jsmith on 10/6/2025 8:01:12 AM")
    assert extract_report_date(toks) == date(2025, 10, 6)
    assert extract_report_date(tokens("no footer")) is None


class TestTokenizePdf:
    """Span extraction through PyMuPDF."""

    @pytest.fixture
    def pdf_bytes(self) -> bytes:
        """A one-page PDF with a header, one performance line and a footer."""
        doc = fitz.open()
        page = doc.new_page()
        page.insert_text((36, 60), "Performance Sales Summary")
        y = 100
        for text in PLAIN_LINE:
            page.insert_text((36, y), text)
            y += 14
        page.insert_text((36, 760), "Run by jsmith on 10/6/2025 8:01:12 AM")
        data = doc.tobytes()
        doc.close()
        return data

    def test_tokenize_bytes(self, pdf_bytes: bytes) -> None:
        """Every text span becomes a token with its page number."""
        toks = tokenize_pdf(pdf_bytes)
        texts = [t.text for t in toks]

        assert "251010E" in texts
        assert "Run by jsmith on 10/6/2025 8:01:12 AM" in texts
        assert all(t.page == 1 for t in toks)

    def test_tokenize_path_and_extract(self, tmp_path: Path, pdf_bytes: bytes) -> None:
        """A PDF on disk yields the same performance line."""
        path = tmp_path / "summary.pdf"
        path.write_bytes(pdf_bytes)
        result = extract_pdf_records(tokenize_pdf(path), path.name)

        assert [r.vendor_code for r in result.records] == ["251010E"]
        assert result.report_date == date(2025, 10, 6)

    def test_not_a_pdf(self, tmp_path: Path) -> None:
        """Garbage bytes and missing files raise DocumentUnreadable."""
        with pytest.raises(DocumentUnreadable):
            tokenize_pdf(b"this is not a pdf")
        with pytest.raises(DocumentUnreadable):
            tokenize_pdf(tmp_path / "missing.pdf")
