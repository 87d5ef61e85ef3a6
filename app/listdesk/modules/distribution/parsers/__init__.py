from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from app.listdesk.modules.distribution.errors import ParseError

REQUIRED_COLUMNS = ("FirstName", "Phone")
SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls")


def normalize_extension(filename: str) -> str:
    return Path(filename or "").suffix.lower()


def check_header(header: list[str]) -> None:
    """Raise ParseError unless every required column is present in the header row."""
    missing = [c for c in REQUIRED_COLUMNS if c not in header]
    if missing:
        raise ParseError(f"File must contain {' and '.join(REQUIRED_COLUMNS)} columns (missing: {', '.join(missing)}).")


def rows_from_table(header: list[str], body: list[list[str]]) -> Iterator[dict[str, str]]:
    """
    Zip an in-memory table into row mappings.
    Short rows are padded with "", extra cells beyond the header are ignored,
    and fully empty rows are skipped.
    """
    width = len(header)
    for values in body:
        if all((v or "").strip() == "" for v in values):
            continue
        padded = list(values[:width]) + [""] * (width - len(values))
        yield {name: padded[i] for i, name in enumerate(header) if name}


def parse_file(path: str | Path, extension: str) -> Iterator[dict[str, str]]:
    """
    Parse an uploaded file into raw row mappings (header -> string value) in file order.

    Header problems surface as ParseError before the first row is yielded.
    """
    from app.listdesk.modules.distribution.parsers.csv import parse_csv
    from app.listdesk.modules.distribution.parsers.excel import parse_xls, parse_xlsx

    ext = (extension or "").lower()
    if ext == ".csv":
        return parse_csv(path)
    if ext == ".xlsx":
        return parse_xlsx(path)
    if ext == ".xls":
        return parse_xls(path)
    raise ParseError(f"Unsupported file type {ext or '(none)'!r}. Only CSV, XLSX, and XLS files are allowed.")
