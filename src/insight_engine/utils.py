"""Utility helpers."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def next_update_iso(interval_days: int, now: datetime | None = None) -> str:
    base = now or utc_now()
    return (base + timedelta(days=interval_days)).isoformat()


def normalize_subject(subject: str) -> str:
    return (subject or "").strip()


def json_dumps(data: Dict[str, Any] | list[Any] | None) -> str:
    return json.dumps(data if data is not None else {}, ensure_ascii=True, sort_keys=True)


def json_loads_list(text: str | None) -> list[Any]:
    if not text:
        return []
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return []
    if isinstance(payload, list):
        return payload
    return []

