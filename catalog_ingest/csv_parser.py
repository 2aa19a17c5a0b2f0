"""
Catalog Ingest - Tabular Content Parser

Quote-aware scanner for comma-separated, double-quote-escaped text.
  - CRLF / CR are normalized to LF before scanning
  - quoted cells may contain commas and newlines
  - "" inside a quoted cell is one literal quote
  - rows made only of blank cells are dropped
"""
from __future__ import annotations
import logging
from typing import Iterable, Optional

from catalog_ingest.errors import CSVStructureError

logger = logging.getLogger(__name__)

Row = tuple[str, ...]

DELIMITER = ","
QUOTE = '"'
BOM = "\ufeff"


def normalize_line_endings(content: str) -> str:
    return content.replace("\r\n", "\n").replace("\r", "\n")


def parse_csv_content(content: str, strict_quotes: bool = True) -> list[Row]:
    """
    Split raw file text into rows of cell strings.

    Cells are returned untrimmed; callers decide how to clean values.
    With strict_quotes, a quote still open at end of content raises
    CSVStructureError; otherwise the open cell is flushed as-is.
    """
    if content.startswith(BOM):
        content = content[1:]
    text = normalize_line_endings(content)

    rows: list[Row] = []
    row: list[str] = []
    cell: list[str] = []
    in_quotes = False
    line = 1
    quote_opened_at: Optional[int] = None

    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == QUOTE:
            if in_quotes and i + 1 < n and text[i + 1] == QUOTE:
                cell.append(QUOTE)
                i += 1
            else:
                in_quotes = not in_quotes
                quote_opened_at = line if in_quotes else None
        elif ch == DELIMITER and not in_quotes:
            row.append("".join(cell))
            cell = []
        elif ch == "\n" and not in_quotes:
            row.append("".join(cell))
            cell = []
            _flush_row(rows, row)
            row = []
            line += 1
        else:
            if ch == "\n":
                line += 1
            cell.append(ch)
        i += 1

    if in_quotes:
        if strict_quotes:
            raise CSVStructureError(
                f"Unterminated quoted field starting on line {quote_opened_at}",
                line=quote_opened_at,
            )
        logger.warning(
            "Unterminated quoted field starting on line %s; "
            "flushing to end of content", quote_opened_at)

    if cell or row:
        row.append("".join(cell))
        _flush_row(rows, row)

    return rows


def _flush_row(rows: list[Row], row: list[str]) -> None:
    if any(c.strip() for c in row):
        rows.append(tuple(row))


# ============================================================
# Writing
# ============================================================

def format_csv_cell(value: object) -> str:
    """Quote a cell when it holds a delimiter, quote, or line break."""
    text = "" if value is None else str(value)
    if any(ch in text for ch in (DELIMITER, QUOTE, "\n", "\r")):
        return QUOTE + text.replace(QUOTE, QUOTE * 2) + QUOTE
    return text


def format_csv_row(cells: Iterable[object]) -> str:
    return DELIMITER.join(format_csv_cell(c) for c in cells)
