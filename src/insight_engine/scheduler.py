"""Scheduler runners for the weekly insight refresh."""

from __future__ import annotations

from typing import Any, Dict

from .orchestrator import build_generator, refresh_all_insights, refresh_due_insights
from .utils import utc_now_iso


def run_weekly_refresh(conn, config: Dict[str, Any], provider=None) -> Dict[str, Any]:
    generator = build_generator(conn, config, provider=provider)
    return refresh_all_insights(conn, config, generator)


def run_due_refresh(conn, config: Dict[str, Any], provider=None) -> Dict[str, Any]:
    generator = build_generator(conn, config, provider=provider)
    return refresh_due_insights(conn, config, generator, now_iso=utc_now_iso())
