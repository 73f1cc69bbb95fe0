"""Raw (Bronze) layer: turn report documents into positional tokens.

This module is part of the Raw (Bronze) layer in the ETL pipeline.
It opens the two delivered document formats and exposes their text in reading
order, without interpreting any of it:

- Weekly sales spreadsheets (``.xlsx``) -> ``TokenGrid`` (rows x columns,
  empty cells preserved so column offsets stay meaningful)
- Vendor "Performance Sales Summary" PDFs -> flat list of ``RawToken``
  (one per text span, in the order the page emits them)

Data directory mapping:
    data/a_raw/excel/ -> weekly spreadsheet exports
    data/a_raw/pdf/   -> vendor PDF summaries

Any open/decode failure raises ``DocumentUnreadable``; callers skip the
document and continue with the batch.
"""

from __future__ import annotations

import logging
from pathlib import Path

import fitz  # PyMuPDF
import pandas as pd

from boxoffice_core.etl.cleaning_utils import strip_invisibles
from boxoffice_core.exceptions import DocumentUnreadable
from boxoffice_core.types import RawToken, TokenGrid

logger = logging.getLogger(__name__)


def tokenize_workbook(path: Path | str, sheet_name: str | int | None = None) -> TokenGrid:
    """Read one sheet of a spreadsheet into a TokenGrid.

    The sheet is read with no header inference and ``dtype=object`` so that
    numbers, dates and labels arrive untouched; the layout detector decides
    what is a header.

    Args:
        path: Path to the ``.xlsx`` file.
        sheet_name: Sheet to read. Defaults to the first sheet.

    Returns:
        TokenGrid with one token per cell.

    Raises:
        DocumentUnreadable: If the file cannot be opened or parsed.

    """
    path = Path(path)
    sheet = 0 if sheet_name is None else sheet_name
    try:
        with pd.ExcelFile(path) as xls:
            resolved = xls.sheet_names[sheet] if isinstance(sheet, int) else sheet
            df = xls.parse(sheet_name=resolved, header=None, dtype=object)
    except Exception as e:  # openpyxl raises its own zip/XML errors
        raise DocumentUnreadable(f"Cannot read workbook {path.name}: {e}") from e

    logger.debug("Read %s sheet %r: %d rows x %d cols", path.name, resolved, *df.shape)
    rows = [list(r) for r in df.itertuples(index=False, name=None)]
    return TokenGrid.from_values(rows, sheet_name=str(resolved))


def tokenize_pdf(source: Path | str | bytes) -> list[RawToken]:
    """Extract text spans from a PDF as a flat token list.

    Walks ``page.get_text("dict")`` blocks -> lines -> spans, keeping every
    non-empty span as one token with its 1-based page number.

    Args:
        source: Path to the PDF or its raw bytes.

    Returns:
        Tokens in reading order across all pages.

    Raises:
        DocumentUnreadable: If the PDF cannot be opened or decoded.

    """
    label = "<bytes>" if isinstance(source, (bytes, bytearray)) else Path(source).name
    try:
        if isinstance(source, (bytes, bytearray)):
            doc = fitz.open(stream=bytes(source), filetype="pdf")
        else:
            doc = fitz.open(str(source))
    except Exception as e:  # fitz raises FileDataError/RuntimeError depending on version
        raise DocumentUnreadable(f"Cannot open PDF {label}: {e}") from e

    tokens: list[RawToken] = []
    try:
        for page_no, page in enumerate(doc, start=1):
            blocks = page.get_text("dict").get("blocks", [])
            for block in blocks:
                if block.get("type", 0) != 0:  # image blocks
                    continue
                for line in block.get("lines", []):
                    for span in line.get("spans", []):
                        text = strip_invisibles(span.get("text", ""))
                        if text:
                            tokens.append(RawToken(text=text, page=page_no))
    except Exception as e:
        raise DocumentUnreadable(f"Cannot decode PDF {label}: {e}") from e
    finally:
        doc.close()

    logger.debug("Tokenized %s: %d spans", label, len(tokens))
    return tokens
