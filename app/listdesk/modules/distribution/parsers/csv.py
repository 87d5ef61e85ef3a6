from __future__ import annotations

import csv
import io
from collections.abc import Iterator
from pathlib import Path

from app.listdesk.modules.distribution.errors import ParseError
from app.listdesk.modules.distribution.parsers import check_header, rows_from_table


def _decode(file_bytes: bytes) -> str:
    try:
        return file_bytes.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"CSV is not valid UTF-8 text: {e.reason} at byte {e.start}.") from e


def parse_csv_bytes(file_bytes: bytes) -> Iterator[dict[str, str]]:
    """
    Parse comma-delimited text with a header row.

    Expected headers (case sensitive):
    - FirstName
    - Phone

    Optional headers:
    - Notes

    Any other columns are carried through untouched and ignored downstream.
    """
    text = _decode(file_bytes)
    if "\x00" in text:
        raise ParseError("CSV contains binary data.")
    try:
        table = list(csv.reader(io.StringIO(text, newline="")))
    except csv.Error as e:
        raise ParseError(f"Malformed CSV: {e}") from e

    if not table:
        raise ParseError("CSV has no header row.")
    header = [(h or "").strip() for h in table[0]]
    check_header(header)
    return rows_from_table(header, table[1:])


def parse_csv(path: str | Path) -> Iterator[dict[str, str]]:
    with open(path, "rb") as f:
        data = f.read()
    return parse_csv_bytes(data)
