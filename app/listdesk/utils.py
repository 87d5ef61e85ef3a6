from __future__ import annotations

import re
from typing import Any, Mapping

EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+\-']+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$")
MIN_PASSWORD_LENGTH = 6


def normalize_text(s: Any) -> str:
    return ("" if s is None else str(s)).strip()


def normalize_email(s: Any) -> str:
    return normalize_text(s).lower()


def validate_email(email: str) -> bool:
    return bool(EMAIL_RE.fullmatch(normalize_text(email)))


def parse_int(s: Any) -> int | None:
    s = normalize_text(s)
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        return None


def request_payload(req) -> Mapping[str, Any]:
    """JSON body when present, else form fields."""
    if req.is_json:
        data = req.get_json(silent=True)
        return data if isinstance(data, dict) else {}
    return req.form
