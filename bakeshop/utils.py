from __future__ import annotations

import json
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def to_date(v: Any) -> Optional[date]:
    """Accepts a date, a datetime or an ISO string; empty values become None."""
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v).strip()[:10])
    except ValueError:
        raise ValueError(f"Invalid date: {v!r}")


def dump_list(items: Iterable[str]) -> str:
    return json.dumps([str(i) for i in items])


def load_list(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return [str(i) for i in data] if isinstance(data, list) else []


def clean_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s if s else None
