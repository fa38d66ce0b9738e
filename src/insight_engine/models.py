"""SQLite schema, migrations, and data access helpers."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Dict, List

from .insights import DemandLevel, GenerationResult, MarketOutlook, SalaryRange
from .utils import json_dumps, json_loads_list, utc_now_iso

MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version INTEGER PRIMARY KEY,
            applied_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS industry_insights (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            industry TEXT NOT NULL UNIQUE,
            salary_ranges_json TEXT NOT NULL DEFAULT '[]',
            growth_rate REAL NOT NULL DEFAULT 0,
            demand_level TEXT NOT NULL,
            top_skills_json TEXT NOT NULL DEFAULT '[]',
            market_outlook TEXT NOT NULL,
            key_trends_json TEXT NOT NULL DEFAULT '[]',
            recommended_skills_json TEXT NOT NULL DEFAULT '[]',
            source TEXT NOT NULL DEFAULT 'llm',
            last_updated TEXT NOT NULL,
            next_update TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS llm_calls (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            stage TEXT NOT NULL,
            provider TEXT NOT NULL,
            model TEXT NOT NULL,
            tokens_in INTEGER NOT NULL DEFAULT 0,
            tokens_out INTEGER NOT NULL DEFAULT 0,
            cost_usd REAL NOT NULL DEFAULT 0,
            latency_ms INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            meta_json TEXT NOT NULL DEFAULT '{}'
        );

        CREATE INDEX IF NOT EXISTS idx_insights_next_update ON industry_insights(next_update);
        CREATE INDEX IF NOT EXISTS idx_llm_calls_stage_created ON llm_calls(stage, created_at);
        """,
    ),
]


def get_connection(db_path: str) -> sqlite3.Connection:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def apply_migrations(db_path: str) -> None:
    with get_connection(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                applied_at TEXT NOT NULL
            )
            """
        )
        applied = {
            row["version"]
            for row in conn.execute("SELECT version FROM schema_migrations").fetchall()
        }
        for version, sql in MIGRATIONS:
            if version in applied:
                continue
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                (version, utc_now_iso()),
            )
        conn.commit()


def _row_to_dict(row: sqlite3.Row | None) -> Dict[str, Any] | None:
    if row is None:
        return None
    return dict(row)


def insight_from_row(row: Dict[str, Any]) -> GenerationResult:
    return GenerationResult(
        salary_ranges=[
            SalaryRange(
                role=item["role"],
                min=item["min"],
                max=item["max"],
                median=item["median"],
                location=item.get("location", ""),
            )
            for item in json_loads_list(row["salary_ranges_json"])
        ],
        growth_rate=float(row["growth_rate"]),
        demand_level=DemandLevel(row["demand_level"]),
        top_skills=json_loads_list(row["top_skills_json"]),
        market_outlook=MarketOutlook(row["market_outlook"]),
        key_trends=json_loads_list(row["key_trends_json"]),
        recommended_skills=json_loads_list(row["recommended_skills_json"]),
    )


def get_insight(conn: sqlite3.Connection, industry: str) -> Dict[str, Any] | None:
    row = conn.execute("SELECT * FROM industry_insights WHERE industry = ?", (industry,)).fetchone()
    return _row_to_dict(row)


def list_industries(conn: sqlite3.Connection) -> List[str]:
    rows = conn.execute("SELECT industry FROM industry_insights ORDER BY industry ASC").fetchall()
    return [row["industry"] for row in rows]


def list_due_industries(conn: sqlite3.Connection, now_iso: str) -> List[str]:
    rows = conn.execute(
        """
        SELECT industry FROM industry_insights
        WHERE next_update <= ?
        ORDER BY next_update ASC, industry ASC
        """,
        (now_iso,),
    ).fetchall()
    return [row["industry"] for row in rows]


def upsert_insight(
    conn: sqlite3.Connection,
    industry: str,
    result: GenerationResult,
    next_update: str,
    source: str = "llm",
) -> Dict[str, Any]:
    """Creates the row for ``industry`` if absent, otherwise updates it in place."""
    payload = result.to_dict()
    conn.execute(
        """
        INSERT INTO industry_insights(
            industry, salary_ranges_json, growth_rate, demand_level, top_skills_json,
            market_outlook, key_trends_json, recommended_skills_json, source, last_updated, next_update
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(industry) DO UPDATE SET
            salary_ranges_json = excluded.salary_ranges_json,
            growth_rate = excluded.growth_rate,
            demand_level = excluded.demand_level,
            top_skills_json = excluded.top_skills_json,
            market_outlook = excluded.market_outlook,
            key_trends_json = excluded.key_trends_json,
            recommended_skills_json = excluded.recommended_skills_json,
            source = excluded.source,
            last_updated = excluded.last_updated,
            next_update = excluded.next_update
        """,
        (
            industry,
            json_dumps(payload["salaryRanges"]),
            payload["growthRate"],
            payload["demandLevel"],
            json_dumps(payload["topSkills"]),
            payload["marketOutlook"],
            json_dumps(payload["keyTrends"]),
            json_dumps(payload["recommendedSkills"]),
            source,
            utc_now_iso(),
            next_update,
        ),
    )
    conn.commit()
    return get_insight(conn, industry) or {}


def log_llm_call(
    conn: sqlite3.Connection,
    stage: str,
    provider: str,
    model: str,
    tokens_in: int,
    tokens_out: int,
    cost_usd: float,
    latency_ms: int,
    meta: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    cur = conn.execute(
        """
        INSERT INTO llm_calls(stage, provider, model, tokens_in, tokens_out, cost_usd, latency_ms, created_at, meta_json)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            stage,
            provider,
            model,
            tokens_in,
            tokens_out,
            cost_usd,
            latency_ms,
            utc_now_iso(),
            json_dumps(meta),
        ),
    )
    conn.commit()
    row = conn.execute("SELECT * FROM llm_calls WHERE id = ?", (cur.lastrowid,)).fetchone()
    return dict(row)
