from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

from app.listdesk.modules.distribution.errors import ParseError
from app.listdesk.modules.distribution.parsers import check_header, rows_from_table

logger = logging.getLogger(__name__)


def cell_to_str(value: Any) -> str:
    """
    Convert a spreadsheet cell value to a string, uniformly for XLS and XLSX.

    Excel stores numbers as IEEE 754 doubles, so a phone number like
    905551234567 comes back as 905551234567.0. Whole-number floats are
    rendered as integers so the digits survive intact.

    - None -> ""
    - bool -> "TRUE" / "FALSE"
    - int, whole float -> integer digits
    - other float -> shortest round-trip repr
    - datetime -> YYYY-MM-DD at midnight, else YYYY-MM-DDTHH:MM:SS
    - date -> YYYY-MM-DD, time -> HH:MM:SS
    - anything else -> str(value)
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value == value and value not in (float("inf"), float("-inf")) and value == int(value):
            return str(int(value))
        return str(value)
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.replace(microsecond=0).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.replace(microsecond=0).isoformat()
    return str(value)


def _split_table(rows: list[list[Any]]) -> tuple[list[str], list[list[str]]]:
    if not rows:
        raise ParseError("Spreadsheet has no header row.")
    header = [cell_to_str(c).strip() for c in rows[0]]
    body = [[cell_to_str(c) for c in r] for r in rows[1:]]
    return header, body


def parse_xlsx(path: str | Path) -> Iterator[dict[str, str]]:
    """Read the first worksheet of an .xlsx workbook entirely into memory."""
    from openpyxl import load_workbook

    try:
        wb = load_workbook(str(path), read_only=True, data_only=True)
    except Exception as e:
        raise ParseError(f"Invalid XLSX file: {e}") from e
    try:
        if not wb.worksheets:
            raise ParseError("Workbook has no worksheets.")
        ws = wb.worksheets[0]
        rows = [list(r) for r in ws.iter_rows(values_only=True)]
    finally:
        wb.close()

    header, body = _split_table(rows)
    check_header(header)
    logger.debug("xlsx parsed: sheet=%s data_rows=%d", ws.title, len(body))
    return rows_from_table(header, body)


def _xls_cell_value(cell: Any, datemode: int) -> Any:
    import xlrd

    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype == xlrd.XL_CELL_DATE:
        try:
            return xlrd.xldate.xldate_as_datetime(cell.value, datemode)
        except (xlrd.xldate.XLDateError, ValueError, OverflowError):
            return cell.value
    return cell.value


def parse_xls(path: str | Path) -> Iterator[dict[str, str]]:
    """Read the first sheet of a legacy .xls workbook entirely into memory."""
    import xlrd

    try:
        book = xlrd.open_workbook(str(path), on_demand=True)
    except Exception as e:
        raise ParseError(f"Invalid XLS file: {e}") from e
    try:
        if book.nsheets < 1:
            raise ParseError("Workbook has no worksheets.")
        sheet = book.sheet_by_index(0)
        rows = [
            [_xls_cell_value(cell, book.datemode) for cell in sheet.row(rx)]
            for rx in range(sheet.nrows)
        ]
    finally:
        book.release_resources()

    header, body = _split_table(rows)
    check_header(header)
    logger.debug("xls parsed: sheet=%s data_rows=%d", sheet.name, len(body))
    return rows_from_table(header, body)
