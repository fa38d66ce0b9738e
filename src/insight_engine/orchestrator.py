"""Orchestration functions: dashboard lookup, batch refresh, and resume improvement."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List

from .config import generation_settings_from_config
from .generator import InsightGenerator
from .llm.errors import GenerationError
from .llm.providers.base import TextGenerator
from .llm.registry import build_provider
from .llm.types import LLMResult
from .models import get_insight, insight_from_row, list_due_industries, list_industries, log_llm_call, upsert_insight
from .utils import next_update_iso, normalize_subject, utc_now_iso

logger = logging.getLogger(__name__)


def estimate_cost(config: Dict[str, Any], provider: str, model: str, tokens_in: int, tokens_out: int) -> float:
    key = f"{provider}:{model}"
    pricing = config.get("pricing", {}).get(key)
    if not pricing:
        return 0.0
    in_price = float(pricing.get("input_per_1k", 0.0))
    out_price = float(pricing.get("output_per_1k", 0.0))
    return ((tokens_in / 1000.0) * in_price) + ((tokens_out / 1000.0) * out_price)


def make_call_logger(conn, config: Dict[str, Any]) -> Callable[[str, LLMResult, Dict[str, Any]], None]:
    def _log(stage: str, result: LLMResult, meta: Dict[str, Any]) -> None:
        log_llm_call(
            conn,
            stage=stage,
            provider=result.provider,
            model=result.model,
            tokens_in=result.tokens_in,
            tokens_out=result.tokens_out,
            cost_usd=estimate_cost(config, result.provider, result.model, result.tokens_in, result.tokens_out),
            latency_ms=result.latency_ms,
            meta=meta,
        )

    return _log


def build_generator(
    conn,
    config: Dict[str, Any],
    provider: TextGenerator | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> InsightGenerator:
    settings = generation_settings_from_config(config)
    return InsightGenerator(
        provider=provider or build_provider(settings),
        settings=settings,
        sleep=sleep,
        call_logger=make_call_logger(conn, config) if conn is not None else None,
    )


def _interval_days(config: Dict[str, Any]) -> int:
    return int(config.get("refresh", {}).get("interval_days", 7))


def insight_view(row: Dict[str, Any]) -> Dict[str, Any]:
    view = insight_from_row(row).to_dict()
    view.update(
        {
            "industry": row["industry"],
            "source": row["source"],
            "lastUpdated": row["last_updated"],
            "nextUpdate": row["next_update"],
        }
    )
    return view


def get_or_create_insight(conn, config: Dict[str, Any], generator: InsightGenerator, industry: str) -> Dict[str, Any]:
    """Returns the stored insight for ``industry``, generating and storing it first if absent."""
    key = normalize_subject(industry)
    if not key:
        return {"ok": False, "reason": "empty_industry", "created": False, "insight": None}

    existing = get_insight(conn, key)
    if existing:
        return {"ok": True, "reason": None, "created": False, "insight": existing}

    result, source = generator.generate_with_source(key)
    row = upsert_insight(
        conn,
        industry=key,
        result=result,
        next_update=next_update_iso(_interval_days(config)),
        source=source,
    )
    logger.info("Created insight industry=%s source=%s", key, source)
    return {"ok": True, "reason": None, "created": True, "insight": row}


def refresh_industry(conn, config: Dict[str, Any], generator: InsightGenerator, industry: str) -> Dict[str, Any]:
    result, source = generator.generate_with_source(industry)
    row = upsert_insight(
        conn,
        industry=industry,
        result=result,
        next_update=next_update_iso(_interval_days(config)),
        source=source,
    )
    return {"ok": True, "industry": industry, "status": "updated", "source": source, "insight": row}


def _refresh_many(conn, config: Dict[str, Any], generator: InsightGenerator, industries: Iterable[str]) -> Dict[str, Any]:
    results: List[Dict[str, Any]] = []
    for industry in industries:
        # One industry at a time; each resolves to model output or fallback before the next starts.
        results.append(refresh_industry(conn, config, generator, industry))
        logger.info("Refreshed insight industry=%s source=%s", industry, results[-1]["source"])

    fallbacks = sum(1 for item in results if item["source"] == "fallback")
    return {
        "message": "Industry insights generated successfully",
        "count": len(results),
        "fallbacks": fallbacks,
        "results": results,
    }


def refresh_all_insights(conn, config: Dict[str, Any], generator: InsightGenerator) -> Dict[str, Any]:
    """Weekly batch: regenerates every known industry."""
    return _refresh_many(conn, config, generator, list_industries(conn))


def refresh_due_insights(
    conn,
    config: Dict[str, Any],
    generator: InsightGenerator,
    now_iso: str | None = None,
) -> Dict[str, Any]:
    """Regenerates only industries whose next_update has passed."""
    return _refresh_many(conn, config, generator, list_due_industries(conn, now_iso or utc_now_iso()))


def improve_section(generator: InsightGenerator, current: str, section_type: str, industry: str) -> Dict[str, Any]:
    try:
        improved = generator.improve_text(current, section_type, industry)
    except ValueError as exc:
        return {"ok": False, "reason": "invalid_input", "error": str(exc), "content": None}
    except GenerationError as exc:
        logger.error("All attempts failed. kind=%s last_error=%s", exc.kind.value, exc)
        return {"ok": False, "reason": exc.kind.value, "error": exc.user_message, "content": None}
    return {"ok": True, "reason": None, "error": None, "content": improved}
