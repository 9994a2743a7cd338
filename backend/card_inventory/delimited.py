"""Delimiter-agnostic parsing and writing of CSV/TSV style exports."""

import io
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .models import ParsedTable

CANDIDATE_DELIMITERS = (",", "\t", ";", "|")
QUOTE = '"'
BOM = "\ufeff"

DELIMITER_NAMES = {
    ",": "COMMA (CSV)",
    "\t": "TAB (TSV)",
    ";": "SEMICOLON",
    "|": "PIPE",
}


def split_fields(record: str, delimiter: str) -> List[str]:
    """Split one logical record into cells, honouring double quotes.

    A quoted cell may contain the delimiter and newlines; ``""`` inside quotes
    is a literal quote character.
    """
    cells = []
    current = []
    in_quotes = False
    i = 0
    length = len(record)
    while i < length:
        ch = record[i]
        if ch == QUOTE:
            if in_quotes and i + 1 < length and record[i + 1] == QUOTE:
                current.append(QUOTE)
                i += 2
                continue
            in_quotes = not in_quotes
        elif ch == delimiter and not in_quotes:
            cells.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    cells.append("".join(current))
    return cells


def detect_delimiter(header_line: str) -> str:
    """Pick the candidate delimiter that splits the header into the most fields.

    Ties keep the earlier candidate, so comma wins when nothing splits.
    """
    best = CANDIDATE_DELIMITERS[0]
    best_count = 0
    for candidate in CANDIDATE_DELIMITERS:
        count = len(split_fields(header_line, candidate))
        if count > best_count:
            best = candidate
            best_count = count
    return best


def iter_records(text: str) -> Iterable[str]:
    """Group physical lines into logical records.

    Quote state flips on every line with an odd number of quote characters,
    so a doubled quote never flips it. Blank records are dropped and a trailing
    unterminated record is still yielded.
    """
    buffer: Optional[str] = None
    in_quotes = False
    for line in text.split("\n"):
        if line.endswith("\r"):
            line = line[:-1]
        buffer = line if buffer is None else f"{buffer}\n{line}"
        if line.count(QUOTE) % 2 == 1:
            in_quotes = not in_quotes
        if not in_quotes:
            if buffer.strip():
                yield buffer
            buffer = None
    if buffer is not None and buffer.strip():
        yield buffer


def _to_mapping(headers: Sequence[str], cells: Sequence[str]) -> Dict[str, str]:
    row: Dict[str, str] = {}
    for index, header in enumerate(headers):
        cell = cells[index].strip() if index < len(cells) else ""
        # Repeated labels keep the first non-blank cell.
        if header in row and (row[header] or not cell):
            continue
        row[header] = cell
    return row


def parse_delimited(text: str, delimiter: Optional[str] = None) -> ParsedTable:
    """Parse delimited text into headers and row mappings.

    Args:
        text: Raw file contents.
        delimiter: Force a delimiter instead of detecting it from the header.

    Returns:
        ParsedTable; empty (no headers or no rows) rather than raising when the
        input holds no data.
    """
    if text.startswith(BOM):
        text = text[len(BOM):]

    records = iter(iter_records(text))
    header_record = next(records, None)
    if header_record is None:
        return ParsedTable(delimiter=delimiter or CANDIDATE_DELIMITERS[0])

    if delimiter is None:
        delimiter = detect_delimiter(header_record.split("\n", 1)[0])

    headers = [h.strip() for h in split_fields(header_record, delimiter)]
    if not any(headers):
        return ParsedTable(delimiter=delimiter)

    rows = [_to_mapping(headers, split_fields(record, delimiter)) for record in records]
    return ParsedTable(headers=_unique(headers), rows=rows, delimiter=delimiter)


def _unique(headers: Iterable[str]) -> List[str]:
    seen = []
    for header in headers:
        if header not in seen:
            seen.append(header)
    return seen


def format_delimited(
    headers: Sequence[str],
    rows: Iterable[Dict[str, str]],
    delimiter: str = ",",
) -> str:
    """Render rows as delimited text with minimal quoting.

    Missing cells are written as empty strings. The result parses back with
    ``parse_delimited``.
    """
    frame = pd.DataFrame(list(rows), columns=list(headers), dtype=object).fillna("")
    buffer = io.StringIO()
    frame.to_csv(buffer, sep=delimiter, index=False, lineterminator="\n")
    return buffer.getvalue()
