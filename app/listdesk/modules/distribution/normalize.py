from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class NormalizedRecord:
    first_name: str
    phone: str
    notes: str = ""


def _clean(v: object) -> str:
    return str(v).strip() if v is not None else ""


def normalize_record(raw: Mapping[str, object]) -> NormalizedRecord | None:
    """
    Map a raw row onto the canonical record shape.

    Returns None (row dropped) when FirstName or Phone is empty after trimming.
    """
    first_name = _clean(raw.get("FirstName"))
    phone = _clean(raw.get("Phone"))
    if not first_name or not phone:
        return None
    return NormalizedRecord(first_name=first_name, phone=phone, notes=_clean(raw.get("Notes")))


def normalize_rows(rows: Iterable[Mapping[str, object]]) -> tuple[list[NormalizedRecord], int]:
    """Normalize every row, keeping order. Returns (records, dropped_count)."""
    records: list[NormalizedRecord] = []
    dropped = 0
    for raw in rows:
        rec = normalize_record(raw)
        if rec is None:
            dropped += 1
            continue
        records.append(rec)
    return records, dropped
